"""원격 에디터와의 페이지 내 메시지 채널.

호스트 문서가 에디터를 iframe으로 임베드하고, window "message" 이벤트를
Python 쪽으로 넘기는 브리지 스크립트를 설치합니다.

- 에디터 → Python: expose_function 바인딩으로 {"kind": ..., ...} 형태 전달
- Python → 에디터: iframe.contentWindow.postMessage (바이트는 ArrayBuffer 그대로, 봉투 없음)
- 폴링용 상태: window.__oeBridge (sentinels, ready, resultBytes)
"""

from __future__ import annotations

import asyncio
import base64
import html
import json
from typing import Any, Callable, Optional, Protocol

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from src.core.exceptions import ChannelProtocolError, SessionLostError
from src.core.logging import logger
from src.engine.signals import SentinelPolicy, SignalDispatcher, SignalListener

BINDING_NAME = "__oeSignal"
BRIDGE_NAME = "__oeBridge"

_HOST_TEMPLATE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>converter host</title></head>
<body style="margin:0">
<iframe id="editor" src="{src}" style="border:0;width:100vw;height:100vh"></iframe>
<script>
(() => {{
  const SENTINEL = {sentinel};
  const frame = document.getElementById("editor");
  const state = {{ sentinels: 0, ready: false, resultBytes: -1 }};
  window.{bridge} = state;

  const encode = (view) => {{
    const bytes = new Uint8Array(view.buffer, view.byteOffset, view.byteLength);
    let binary = "";
    for (let i = 0; i < bytes.length; i += 0x8000) {{
      binary += String.fromCharCode.apply(null, bytes.subarray(i, i + 0x8000));
    }}
    return btoa(binary);
  }};

  window.addEventListener("message", (event) => {{
    if (event.source !== frame.contentWindow) return;
    const data = event.data;
    let message;
    if (data instanceof ArrayBuffer || ArrayBuffer.isView(data)) {{
      const view = data instanceof ArrayBuffer ? new Uint8Array(data) : data;
      state.resultBytes = view.byteLength;
      message = {{ kind: "binary", data: encode(view) }};
    }} else if (typeof data === "string") {{
      if (data === SENTINEL) {{
        state.sentinels += 1;
        state.ready = true;
      }}
      message = {{ kind: "text", value: data }};
    }} else {{
      message = {{ kind: "unknown", type: Object.prototype.toString.call(data) }};
    }}
    window.{binding}(message);
  }});

  window.{bridge}.post = (payload) => frame.contentWindow.postMessage(payload, "*");
}})();
</script>
</body>
</html>
"""

_POST_BYTES_JS = f"""(encoded) => {{
  const binary = atob(encoded);
  const bytes = new Uint8Array(binary.length);
  for (let i = 0; i < binary.length; i++) bytes[i] = binary.charCodeAt(i);
  window.{BRIDGE_NAME}.post(bytes.buffer);
}}"""

_POST_COMMAND_JS = f"(command) => window.{BRIDGE_NAME}.post(command)"
_READ_STATE_JS = f"() => ({{ sentinels: window.{BRIDGE_NAME}.sentinels, ready: window.{BRIDGE_NAME}.ready, resultBytes: window.{BRIDGE_NAME}.resultBytes }})"
_RESET_STATE_JS = f"() => {{ window.{BRIDGE_NAME}.ready = false; window.{BRIDGE_NAME}.resultBytes = -1; }}"


def render_host_document(editor_url: str, sentinel: str) -> str:
    """에디터를 임베드하는 호스트 문서 생성"""
    return _HOST_TEMPLATE.format(
        src=html.escape(editor_url, quote=True),
        sentinel=json.dumps(sentinel),
        bridge=BRIDGE_NAME,
        binding=BINDING_NAME,
    )


class MessageChannel(Protocol):
    """프로토콜 단계가 사용하는 채널 인터페이스"""

    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        ...

    async def navigate(self, url: str, timeout_s: float) -> None:
        ...

    async def post_bytes(self, data: bytes) -> None:
        ...

    async def post_command(self, command: str) -> None:
        ...

    async def read_ready_flag(self) -> bool:
        ...

    async def reset_state(self) -> None:
        ...

    def close(self) -> None:
        ...


class PlaywrightMessageChannel:
    """Playwright Page 위에 구현한 MessageChannel

    Playwright 예외는 여기서 변환합니다.
    - 타임아웃 → asyncio.TimeoutError
    - 페이지가 닫힘 → SessionLostError
    - 그 외 → ChannelProtocolError
    """

    def __init__(self, page: Page, sentinel: str = "done", policy: Optional[SentinelPolicy] = None):
        self._page = page
        self._dispatcher = SignalDispatcher(sentinel=sentinel, policy=policy)
        self._attached = False
        self._closed = False

    @property
    def dispatcher(self) -> SignalDispatcher:
        return self._dispatcher

    async def attach(self) -> None:
        """바인딩 등록 (내비게이션 전에 한 번)"""
        if self._attached:
            return
        await self._page.expose_function(BINDING_NAME, self._on_message)
        self._attached = True

    def _on_message(self, raw: Any) -> None:
        if self._closed:
            return
        self._dispatcher.dispatch_raw(raw)

    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        return self._dispatcher.subscribe(listener)

    def _translate(self, error: Exception, action: str) -> Exception:
        if isinstance(error, PlaywrightTimeoutError):
            return asyncio.TimeoutError(f"{action} timed out")
        if self._page.is_closed():
            return SessionLostError(f"page closed during {action}")
        return ChannelProtocolError(f"{action} failed: {error}", details={"action": action})

    async def navigate(self, url: str, timeout_s: float) -> None:
        """호스트 문서 로드 (에디터 iframe 로딩은 기다리지 않음 - 준비 신호로 판단)"""
        document = render_host_document(url, self._dispatcher.sentinel)
        try:
            await self._page.set_content(
                document,
                wait_until="domcontentloaded",
                timeout=timeout_s * 1000,
            )
        except PlaywrightError as e:
            raise self._translate(e, "navigate") from e

    async def post_bytes(self, data: bytes) -> None:
        encoded = base64.b64encode(data).decode("ascii")
        try:
            await self._page.evaluate(_POST_BYTES_JS, encoded)
        except PlaywrightError as e:
            raise self._translate(e, "post_bytes") from e

    async def post_command(self, command: str) -> None:
        try:
            await self._page.evaluate(_POST_COMMAND_JS, command)
        except PlaywrightError as e:
            raise self._translate(e, "post_command") from e

    async def read_state(self) -> dict:
        try:
            return await self._page.evaluate(_READ_STATE_JS)
        except PlaywrightError as e:
            raise self._translate(e, "read_state") from e

    async def read_ready_flag(self) -> bool:
        state = await self.read_state()
        return bool(state.get("ready"))

    async def reset_state(self) -> None:
        """이전 단계의 ready/result 플래그 초기화 (오탐 방지)"""
        try:
            await self._page.evaluate(_RESET_STATE_JS)
        except PlaywrightError as e:
            raise self._translate(e, "reset_state") from e

    def close(self) -> None:
        """리스너 해제. 이후 도착하는 신호는 버림"""
        if self._closed:
            return
        self._closed = True
        self._dispatcher.clear()
        logger.debug(
            f"[Channel] Closed ({self._dispatcher.sentinel_count} sentinels seen, "
            f"last signals: {self._dispatcher.history[-5:]})"
        )
