"""로깅 설정

변환 서비스 전용 로거("fig2psd")를 한 번만 구성합니다.
컴포넌트는 대괄호 접두어로 구분합니다 ([Session], [Handshake], [Export], [Coordinator], [API] ...).
"""
import logging
import sys
import os
from src.core.config import settings


# Production 환경에서는 DEBUG 로그 비활성화 (신호 요약/세션 ID가 대량으로 남음)
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

_PRODUCTION_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_DEVELOPMENT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(name: str) -> int:
    level = name.upper()
    if IS_PRODUCTION and level == "DEBUG":
        level = "INFO"
    return getattr(logging, level, logging.INFO)


def setup_logging() -> logging.Logger:
    """로거 초기화 및 설정 (중복 호출해도 핸들러는 하나)"""
    logger = logging.getLogger("fig2psd")
    level = _resolve_level(settings.log_level)
    logger.setLevel(level)
    # uvicorn 루트 핸들러와 중복 출력 방지
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter(
                fmt=_PRODUCTION_FORMAT if IS_PRODUCTION else _DEVELOPMENT_FORMAT,
                datefmt=_DATE_FORMAT,
            )
        )
        logger.addHandler(handler)

    return logger


logger = setup_logging()


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """업로드 파일명 등 외부 입력을 로그에 남길 수 있는 형태로 정리

    Args:
        value: 로깅할 문자열
        max_length: 최대 길이

    Returns:
        제어 문자가 제거되고 길이가 제한된 문자열
    """
    if not value:
        return "[empty]"

    # 로그 위조 방지: 개행/제어 문자 제거
    result = "".join(ch if ch.isprintable() else "?" for ch in value)

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
