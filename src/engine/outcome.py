"""Phase Outcome - 단계별 실행 결과

프로토콜 단계(handshake/load/export)는 예외를 던지는 대신 PhaseOutcome을 반환합니다.
타임아웃은 흔한 실패 경로이므로 값으로 다루고, 분류는 오케스트레이터가 담당합니다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Phase(str, Enum):
    """변환 프로토콜 단계"""

    LAUNCH = "launch"
    HANDSHAKE = "handshake"
    LOAD = "load"
    EXPORT = "export"


@dataclass(frozen=True)
class Success:
    """조건 충족 (value: 단계 결과값)"""

    value: Any = None


@dataclass(frozen=True)
class TimedOut:
    """예산 안에 조건이 충족되지 않음"""

    phase: str
    budget_s: float
    elapsed_s: float = 0.0


@dataclass(frozen=True)
class ChannelError:
    """메시지 채널 오류 (해석 불가 신호, evaluate 실패 등)"""

    cause: Any


@dataclass(frozen=True)
class ProcessError:
    """브라우저 프로세스/페이지 오류"""

    cause: Any


PhaseOutcome = Union[Success, TimedOut, ChannelError, ProcessError]


def is_success(outcome: PhaseOutcome) -> bool:
    return isinstance(outcome, Success)
