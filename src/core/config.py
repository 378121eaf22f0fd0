"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 원격 에디터 (Photopea)
    editor_url: str = "https://www.photopea.com"
    editor_sentinel: str = "done"

    # 변환 대상 포맷
    source_suffix: str = ".fig"
    target_format: str = "psd"
    target_magic: str = "8BPS"
    target_media_type: str = "application/x-photoshop"

    # 브라우저
    browser_executable_path: Optional[str] = None
    browser_headless: bool = True
    browser_launch_timeout_s: float = 30.0

    # 브라우저 동시성 제한(서버 터짐 방지)
    # 세션은 재사용하지 않으며, 동시에 열 수 있는 브라우저 개수만 제한합니다.
    max_concurrent_sessions: int = 2

    # 단계별 예산 (초)
    handshake_timeout_s: float = 60.0
    load_timeout_s: float = 45.0
    export_timeout_s: float = 60.0
    settle_delay_s: float = 5.0
    poll_interval_s: float = 0.25
    job_timeout_slack_s: float = 5.0

    # 신호 판별 전략
    # - readiness_strategy: "event" | "poll"
    # - load_strategy: "signal" | "poll" | "settle" (settle = 고정 대기, 저하 모드)
    # - sentinel_policy: "positional" | "ready_only"
    readiness_strategy: str = "event"
    load_strategy: str = "signal"
    sentinel_policy: str = "positional"
    export_await_trailing_sentinel: bool = True

    # 업로드
    max_upload_mb: int = 100

    # API
    api_title: str = "Fig to PSD 변환 서비스"
    api_version: str = "1.0.0"
    api_description: str = "원격 에디터를 헤드리스 브라우저로 구동해 .fig 파일을 .psd로 변환합니다."
    port: int = 3000

    # 로깅
    log_level: str = "INFO"

    @field_validator(
        "browser_launch_timeout_s",
        "handshake_timeout_s",
        "load_timeout_s",
        "export_timeout_s",
        "poll_interval_s",
    )
    @classmethod
    def validate_budgets(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("budgets must be positive")
        return v

    @field_validator("settle_delay_s", "job_timeout_slack_s")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("max_concurrent_sessions", "max_upload_mb")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("target_magic")
    @classmethod
    def validate_target_magic(cls, v: str) -> str:
        if len(v.encode("latin-1")) != 4:
            raise ValueError("target_magic must be exactly 4 characters")
        return v

    @field_validator("readiness_strategy")
    @classmethod
    def validate_readiness_strategy(cls, v: str) -> str:
        if v not in ("event", "poll"):
            raise ValueError("readiness_strategy must be 'event' or 'poll'")
        return v

    @field_validator("load_strategy")
    @classmethod
    def validate_load_strategy(cls, v: str) -> str:
        if v not in ("signal", "poll", "settle"):
            raise ValueError("load_strategy must be 'signal', 'poll' or 'settle'")
        return v

    @field_validator("sentinel_policy")
    @classmethod
    def validate_sentinel_policy(cls, v: str) -> str:
        if v not in ("positional", "ready_only"):
            raise ValueError("sentinel_policy must be 'positional' or 'ready_only'")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
