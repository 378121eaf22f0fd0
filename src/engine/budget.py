"""Budget Manager - Per-phase Time Budget Management

예산 구조 (기본값):
- Launch: 30초 (브라우저 기동)
- Handshake: 60초 (에디터 로딩 + 초기화 신호)
- Load: 45초 (파일 전달 + 로드 완료 신호)
- Export: 60초 (내보내기 결과 + 후행 신호)

단계별 예산은 서로 독립적입니다. 전체 작업 예산(job_timeout_s)은
각 단계 최악의 경우를 합산한 값으로, 호출자에게 노출되고 최후 방어선으로만 쓰입니다.
"""

from dataclasses import dataclass
from time import monotonic
from typing import Optional

from .outcome import Phase


@dataclass
class PhaseBudgetConfig:
    """단계별 예산 설정 (초)"""

    launch_timeout: float = 30.0
    handshake_timeout: float = 60.0
    load_timeout: float = 45.0
    export_timeout: float = 60.0
    settle_delay: float = 5.0  # 저하 모드(고정 대기)에서만 사용
    slack: float = 5.0  # 스케줄링/정리 여유

    def __post_init__(self):
        """설정 검증"""
        for name in ("launch_timeout", "handshake_timeout", "load_timeout", "export_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.settle_delay < 0 or self.slack < 0:
            raise ValueError("settle_delay and slack must be >= 0")
        if self.settle_delay > self.load_timeout:
            raise ValueError(
                f"settle_delay ({self.settle_delay}s) exceeds load_timeout ({self.load_timeout}s)"
            )

    @property
    def job_timeout_s(self) -> float:
        """전체 작업 예산 = 모든 단계 예산 합 + 여유"""
        return (
            self.launch_timeout
            + self.handshake_timeout
            + self.load_timeout
            + self.export_timeout
            + self.slack
        )

    def timeout_for(self, phase: Phase) -> float:
        """단계별 예산 조회"""
        if phase == Phase.LAUNCH:
            return self.launch_timeout
        if phase == Phase.HANDSHAKE:
            return self.handshake_timeout
        if phase == Phase.LOAD:
            return self.load_timeout
        if phase == Phase.EXPORT:
            return self.export_timeout
        raise ValueError(f"Unknown phase: {phase}")

    @classmethod
    def from_settings(cls, settings) -> "PhaseBudgetConfig":
        return cls(
            launch_timeout=settings.browser_launch_timeout_s,
            handshake_timeout=settings.handshake_timeout_s,
            load_timeout=settings.load_timeout_s,
            export_timeout=settings.export_timeout_s,
            settle_delay=settings.settle_delay_s,
            slack=settings.job_timeout_slack_s,
        )


class BudgetManager:
    """작업 단위 시간 측정기

    한 번의 변환 작업 동안 경과 시간과 단계별 체크포인트를 기록합니다.
    작업마다 새 인스턴스를 만들어 쓰며, 작업 간에 공유하지 않습니다.

    Usage:
        manager = BudgetManager(config)
        manager.start()
        manager.checkpoint("handshake_ready")
        report = manager.get_report()
    """

    def __init__(self, config: Optional[PhaseBudgetConfig] = None):
        self.config = config or PhaseBudgetConfig()
        self.start_time: Optional[float] = None
        self._checkpoints: dict[str, float] = {}

    def start(self) -> None:
        """예산 측정 시작"""
        self.start_time = monotonic()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> None:
        """체크포인트 기록

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Budget not started. Call start() first.")
        self._checkpoints[name] = monotonic() - self.start_time

    def elapsed(self) -> float:
        """경과 시간 반환 (초). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return monotonic() - self.start_time

    def elapsed_ms(self) -> float:
        return self.elapsed() * 1000

    def remaining(self) -> float:
        """전체 작업 예산 중 남은 시간 (초). 음수가 되지 않도록 보장"""
        return max(0.0, self.config.job_timeout_s - self.elapsed())

    def get_report(self) -> dict:
        """예산 사용 리포트 생성"""
        return {
            "job_timeout_s": self.config.job_timeout_s,
            "elapsed_s": round(self.elapsed(), 3),
            "remaining_s": round(self.remaining(), 3),
            "checkpoints": {k: round(v, 3) for k, v in self._checkpoints.items()},
        }
