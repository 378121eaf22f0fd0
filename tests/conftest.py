"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 주입 (브라우저 프로세스 / 원격 에디터)
- 빠른 단계 예산 제공

금지:
- 실제 브라우저 기동
- 외부 네트워크 호출
"""

from __future__ import annotations

import asyncio
import base64
import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.engine.budget import PhaseBudgetConfig  # noqa: E402
from src.engine.signals import SignalDispatcher  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


PSD_4KB = b"8BPS" + b"\x00" * (4096 - 4)


class FakeController:
    """BrowserController 더미

    - launch마다 고유 핸들 발급
    - 동시에 살아 있는 프로세스 수의 최댓값(peak_active) 기록
    """

    def __init__(
        self,
        launch_error: Optional[Exception] = None,
        context_error: Optional[Exception] = None,
        terminate_error: Optional[Exception] = None,
        launch_delay: float = 0.0,
        context_delay: float = 0.0,
    ):
        self.launch_error = launch_error
        self.context_error = context_error
        self.terminate_error = terminate_error
        self.launch_delay = launch_delay
        self.context_delay = context_delay
        self.launched: list[str] = []
        self.terminated: list[str] = []
        self.active = 0
        self.peak_active = 0

    async def launch(self, options: Any) -> str:
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.launch_error:
            raise self.launch_error
        handle = f"browser-{len(self.launched) + 1}"
        self.launched.append(handle)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        return handle

    async def new_context(self, handle: str) -> str:
        if self.context_delay:
            await asyncio.sleep(self.context_delay)
        if self.context_error:
            raise self.context_error
        return f"page@{handle}"

    async def terminate(self, handle: str) -> None:
        self.terminated.append(handle)
        self.active -= 1
        if self.terminate_error:
            raise self.terminate_error


class FakeEditorChannel:
    """원격 에디터를 흉내 내는 MessageChannel

    실제 브리지와 같은 형식의 원본 메시지를 SignalDispatcher에 흘려보냅니다.

    Args:
        ready_on_navigate: 내비게이션 후 첫 센티널 전송
        load_signal: 바이트 수신 후 두 번째 센티널 전송
        export_payload: 내보내기 명령에 응답할 바이너리 (None이면 무응답)
        trailing_sentinel: 바이너리 뒤 센티널 전송
        extra_text: 센티널 전에 끼워 넣을 일반 텍스트 메시지
        unrecognized_on_export: 내보내기 응답 대신 해석 불가 메시지 전송
        delay: 각 응답 지연 (초)
    """

    def __init__(
        self,
        page: Any = None,
        ready_on_navigate: bool = True,
        load_signal: bool = True,
        export_payload: Optional[bytes] = PSD_4KB,
        trailing_sentinel: bool = True,
        extra_text: Optional[str] = None,
        unrecognized_on_export: bool = False,
        navigate_error: Optional[Exception] = None,
        delay: float = 0.01,
        policy: Any = None,
    ):
        self.page = page
        self.ready_on_navigate = ready_on_navigate
        self.load_signal = load_signal
        self.export_payload = export_payload
        self.trailing_sentinel = trailing_sentinel
        self.extra_text = extra_text
        self.unrecognized_on_export = unrecognized_on_export
        self.navigate_error = navigate_error
        self.delay = delay
        self.dispatcher = SignalDispatcher(sentinel="done", policy=policy)
        self.calls: list[str] = []
        self.received: list[bytes] = []
        self.commands: list[str] = []
        self.ready_flag = False
        self.attached = False
        self.closed = False
        self._timers: list[asyncio.TimerHandle] = []

    # --- 에디터 쪽 동작 ---
    def _schedule(self, *messages: Any) -> None:
        loop = asyncio.get_running_loop()
        for i, message in enumerate(messages):
            self._timers.append(loop.call_later(self.delay * (i + 1), self._emit, message))

    def _emit(self, message: Any) -> None:
        if self.closed:
            return
        if isinstance(message, dict) and message.get("value") == "done":
            self.ready_flag = True
        self.dispatcher.dispatch_raw(message)

    @staticmethod
    def sentinel() -> dict:
        return {"kind": "text", "value": "done"}

    @staticmethod
    def binary(data: bytes) -> dict:
        return {"kind": "binary", "data": base64.b64encode(data).decode("ascii")}

    # --- MessageChannel ---
    async def attach(self) -> None:
        self.attached = True

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        return self.dispatcher.subscribe(listener)

    async def navigate(self, url: str, timeout_s: float) -> None:
        self.calls.append("navigate")
        if self.navigate_error:
            raise self.navigate_error
        if self.ready_on_navigate:
            self._schedule(self.sentinel())

    async def post_bytes(self, data: bytes) -> None:
        self.calls.append("post_bytes")
        self.received.append(bytes(data))
        messages = []
        if self.extra_text:
            messages.append({"kind": "text", "value": self.extra_text})
        if self.load_signal:
            messages.append(self.sentinel())
        self._schedule(*messages)

    async def post_command(self, command: str) -> None:
        self.calls.append("post_command")
        self.commands.append(command)
        if self.unrecognized_on_export:
            self._schedule({"kind": "unknown", "type": "object"})
            return
        if self.export_payload is None:
            return
        messages = [self.binary(self.export_payload)]
        if self.trailing_sentinel:
            messages.append(self.sentinel())
        self._schedule(*messages)

    async def read_ready_flag(self) -> bool:
        return self.ready_flag

    async def reset_state(self) -> None:
        self.calls.append("reset_state")
        self.ready_flag = False

    def close(self) -> None:
        self.closed = True
        for timer in self._timers:
            timer.cancel()
        self.dispatcher.clear()


class FakeEditorFactory:
    """channel_factory 더미 - 만든 채널을 모두 기억

    per_channel을 주면 n번째로 만든 채널에 n번째 동작 설정을 덮어씁니다.
    """

    def __init__(self, per_channel: Optional[list[dict]] = None, **behavior: Any):
        self.behavior = behavior
        self.per_channel = per_channel or []
        self.channels: list[FakeEditorChannel] = []

    def __call__(self, page: Any) -> FakeEditorChannel:
        behavior = dict(self.behavior)
        if len(self.channels) < len(self.per_channel):
            behavior.update(self.per_channel[len(self.channels)])
        channel = FakeEditorChannel(page, **behavior)
        self.channels.append(channel)
        return channel


class FakeSession:
    """프로토콜 단계 단위 테스트용 세션"""

    def __init__(self, channel: FakeEditorChannel, session_id: str = "test0001"):
        self.channel = channel
        self.session_id = session_id
        self.is_open = True


def fast_budget(**overrides: float) -> PhaseBudgetConfig:
    """테스트용 짧은 예산"""
    values = dict(
        launch_timeout=1.0,
        handshake_timeout=0.3,
        load_timeout=0.3,
        export_timeout=0.3,
        settle_delay=0.05,
        slack=0.5,
    )
    values.update(overrides)
    return PhaseBudgetConfig(**values)


@pytest.fixture
def budget() -> PhaseBudgetConfig:
    return fast_budget()


@pytest.fixture
def make_budget() -> Callable[..., PhaseBudgetConfig]:
    return fast_budget


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest.fixture
def make_controller() -> Callable[..., FakeController]:
    return FakeController


@pytest.fixture
def make_editor() -> Callable[..., FakeEditorFactory]:
    return FakeEditorFactory


@pytest.fixture
def make_channel() -> Callable[..., FakeEditorChannel]:
    return FakeEditorChannel


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    return FakeSession


@pytest.fixture
def psd_payload() -> bytes:
    return PSD_4KB


@pytest.fixture
def build_orchestrator():
    """가짜 컨트롤러/에디터로 실제 엔진 조립"""
    from src.browser.session import BrowserSessionManager
    from src.editor import DocumentHandshakeProtocol, ExportProtocol, PayloadTransferProtocol
    from src.engine import ConversionOrchestrator, TimeoutGovernor
    from src.engine.strategy import build_load_strategy, build_readiness_strategy

    def _build(
        controller: FakeController,
        editor: FakeEditorFactory,
        budget: Optional[PhaseBudgetConfig] = None,
        readiness: str = "event",
        load: str = "signal",
        await_trailing: bool = True,
        max_concurrent: int = 4,
    ) -> ConversionOrchestrator:
        budget = budget or fast_budget()
        governor = TimeoutGovernor(poll_interval_s=0.01)
        sessions = BrowserSessionManager(
            controller=controller,
            channel_factory=editor,
            max_concurrent=max_concurrent,
        )
        return ConversionOrchestrator(
            sessions=sessions,
            handshake=DocumentHandshakeProtocol(
                governor=governor,
                strategy=build_readiness_strategy(readiness, interval_s=0.01),
                editor_url="https://editor.test",
                budget_s=budget.handshake_timeout,
            ),
            transfer=PayloadTransferProtocol(
                governor=governor,
                strategy=build_load_strategy(load, settle_delay_s=budget.settle_delay, interval_s=0.01),
                budget_s=budget.load_timeout,
            ),
            export=ExportProtocol(
                governor=governor,
                budget_s=budget.export_timeout,
                await_trailing_sentinel=await_trailing,
            ),
            budget_config=budget,
        )

    return _build
