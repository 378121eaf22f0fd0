"""Protocol Signals - 원격 에디터 메시지 해석

원격 에디터는 메시지에 태그를 붙이지 않습니다. 같은 센티널 문자열("done")이
초기화 완료, 파일 로드 완료, 기타 작업 완료를 모두 뜻하므로,
세션마다 센티널이 몇 번째로 도착했는지로 의미를 부여합니다.

이 순서는 에디터 버전에 따라 달라질 수 있는 외부 가정입니다(검증하지 않음).
그래서 해석 규칙은 SentinelPolicy로 분리해 설정으로 교체할 수 있게 둡니다.
"""

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from src.core.logging import logger


class SignalKind(str, Enum):
    """채널에서 수신한 신호 종류"""

    READY = "ready"  # 센티널
    BINARY_RESULT = "binary_result"
    TEXT = "text"
    UNRECOGNIZED = "unrecognized"


class SentinelMeaning(str, Enum):
    """센티널의 위치 기반 의미"""

    EDITOR_READY = "editor_ready"
    LOAD_COMPLETE = "load_complete"
    OPERATION_DONE = "operation_done"


@dataclass(frozen=True)
class ProtocolSignal:
    """채널 신호 (tagged union)

    Attributes:
        kind: 신호 종류
        payload: BINARY_RESULT면 bytes, TEXT면 str, UNRECOGNIZED면 원본 값
        ordinal: READY일 때 세션 내 센티널 순번 (1부터)
        meaning: READY일 때 정책이 부여한 의미
    """

    kind: SignalKind
    payload: Any = None
    ordinal: int = 0
    meaning: Optional[SentinelMeaning] = None

    @classmethod
    def ready(cls) -> "ProtocolSignal":
        return cls(kind=SignalKind.READY)

    @classmethod
    def binary(cls, data: bytes) -> "ProtocolSignal":
        return cls(kind=SignalKind.BINARY_RESULT, payload=bytes(data))

    @classmethod
    def text(cls, value: str) -> "ProtocolSignal":
        return cls(kind=SignalKind.TEXT, payload=value)

    @classmethod
    def unrecognized(cls, raw: Any) -> "ProtocolSignal":
        return cls(kind=SignalKind.UNRECOGNIZED, payload=raw)

    @property
    def is_sentinel(self) -> bool:
        return self.kind == SignalKind.READY

    def describe(self) -> str:
        """로그용 요약 (바이너리 내용은 출력하지 않음)"""
        if self.kind == SignalKind.READY:
            meaning = self.meaning.value if self.meaning else "?"
            return f"ready#{self.ordinal}({meaning})"
        if self.kind == SignalKind.BINARY_RESULT:
            return f"binary({len(self.payload)} bytes)"
        if self.kind == SignalKind.TEXT:
            return f"text({str(self.payload)[:40]!r})"
        return f"unrecognized({str(self.payload)[:60]!r})"


class SentinelPolicy(Protocol):
    """센티널 순번 → 의미 매핑 규칙"""

    name: str

    def meaning_for(self, ordinal: int) -> SentinelMeaning:
        ...


class PositionalSentinelPolicy:
    """기본 정책: 첫 번째 = 초기화 완료, 두 번째 = 로드 완료, 이후 = 일반 작업 완료"""

    name = "positional"

    def meaning_for(self, ordinal: int) -> SentinelMeaning:
        if ordinal <= 1:
            return SentinelMeaning.EDITOR_READY
        if ordinal == 2:
            return SentinelMeaning.LOAD_COMPLETE
        return SentinelMeaning.OPERATION_DONE


class ReadyOnlySentinelPolicy:
    """첫 번째만 의미를 갖고 이후 센티널은 모두 일반 작업 완료로 취급

    로드 완료 신호를 신뢰할 수 없는 배포(settle 모드)에서 사용합니다.
    """

    name = "ready_only"

    def meaning_for(self, ordinal: int) -> SentinelMeaning:
        if ordinal <= 1:
            return SentinelMeaning.EDITOR_READY
        return SentinelMeaning.OPERATION_DONE


SENTINEL_POLICIES: dict[str, Callable[[], SentinelPolicy]] = {
    PositionalSentinelPolicy.name: PositionalSentinelPolicy,
    ReadyOnlySentinelPolicy.name: ReadyOnlySentinelPolicy,
}


def get_sentinel_policy(name: str) -> SentinelPolicy:
    """이름으로 정책 생성

    Raises:
        ValueError: 알 수 없는 정책 이름
    """
    factory = SENTINEL_POLICIES.get(name)
    if factory is None:
        raise ValueError(f"Unknown sentinel policy: {name}")
    return factory()


def classify_message(raw: Any, sentinel: str) -> ProtocolSignal:
    """페이지 브리지가 넘긴 메시지를 ProtocolSignal로 변환

    브리지 메시지 형식:
        {"kind": "text", "value": "<string>"}
        {"kind": "binary", "data": "<base64>"}
        {"kind": "unknown", "type": "<js type tag>"}

    형식이 어긋나면 UNRECOGNIZED로 분류합니다 (예외를 던지지 않음).
    """
    if not isinstance(raw, dict):
        return ProtocolSignal.unrecognized(raw)

    kind = raw.get("kind")
    if kind == "text":
        value = raw.get("value")
        if not isinstance(value, str):
            return ProtocolSignal.unrecognized(raw)
        if value == sentinel:
            return ProtocolSignal.ready()
        return ProtocolSignal.text(value)

    if kind == "binary":
        data = raw.get("data")
        if not isinstance(data, str):
            return ProtocolSignal.unrecognized(raw)
        try:
            return ProtocolSignal.binary(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError):
            return ProtocolSignal.unrecognized({"kind": "binary", "data": "<invalid base64>"})

    return ProtocolSignal.unrecognized(raw)


SignalListener = Callable[[ProtocolSignal], None]


class SignalDispatcher:
    """세션 단위 신호 분배기

    - 원본 메시지 분류 (classify_message)
    - 센티널 순번/의미 부여 (SentinelPolicy)
    - 등록된 리스너에게 전달

    리스너 하나의 오류가 다른 리스너나 채널을 멈추지 않도록 격리합니다.
    """

    def __init__(self, sentinel: str = "done", policy: Optional[SentinelPolicy] = None):
        self.sentinel = sentinel
        self.policy = policy or PositionalSentinelPolicy()
        self._listeners: list[SignalListener] = []
        self._sentinel_count = 0
        self._history: list[str] = []

    @property
    def sentinel_count(self) -> int:
        return self._sentinel_count

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def history(self) -> list[str]:
        """수신 신호 요약 목록 (결과 바이트는 보관하지 않음)"""
        return list(self._history)

    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        """리스너 등록. 반환된 함수를 호출하면 해제 (여러 번 호출해도 안전)"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def clear(self) -> None:
        """모든 리스너 해제 (세션 종료 시)"""
        self._listeners.clear()

    def dispatch_raw(self, raw: Any) -> ProtocolSignal:
        return self.dispatch(classify_message(raw, self.sentinel))

    def dispatch(self, signal: ProtocolSignal) -> ProtocolSignal:
        """신호에 순번/의미를 붙여 리스너에게 전달"""
        if signal.kind == SignalKind.READY:
            self._sentinel_count += 1
            signal = ProtocolSignal(
                kind=SignalKind.READY,
                ordinal=self._sentinel_count,
                meaning=self.policy.meaning_for(self._sentinel_count),
            )

        self._history.append(signal.describe())
        logger.debug(f"[Channel] Signal received: {self._history[-1]}")

        for listener in list(self._listeners):
            try:
                listener(signal)
            except Exception as e:
                logger.warning(f"[Channel] Signal listener failed: {type(e).__name__}: {e}")
        return signal
