"""브라우저 프로세스 기동/종료 (Playwright Chromium).

Playwright 드라이버는 공유하고(지연 기동, 앱 종료 시 정리),
브라우저 프로세스는 작업마다 새로 띄웁니다. 브라우저는 절대 공유하지 않습니다.
"""

from __future__ import annotations

import asyncio
import platform
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from playwright.async_api import async_playwright, Browser, Page, Playwright

from src.core.config import settings
from src.core.logging import logger
from src.core.exceptions import ProcessLaunchError


# 격리된 비특권 환경(컨테이너)에서 렌더링 프로세스를 띄우기 위한 플래그
ISOLATION_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
)


def build_launch_args(extra: Optional[list[str]] = None) -> list[str]:
    args: list[str] = list(ISOLATION_ARGS) + [
        "--disable-gpu",
        "--disable-background-networking",
        "--disable-background-timer-throttling",
        "--disable-renderer-backgrounding",
        "--disable-default-apps",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
    ]

    if extra:
        args.extend(extra)

    deduped: list[str] = []
    seen: set[str] = set()
    for a in args:
        if a not in seen:
            seen.add(a)
            deduped.append(a)
    return deduped


@dataclass
class LaunchOptions:
    """브라우저 기동 옵션

    Attributes:
        headless: 헤드리스 여부
        executable_path: 번들 Chromium 대신 사용할 실행 파일 (없으면 Playwright 기본값)
        args: 실행 인자
        timeout_s: 기동 타임아웃 (초)
    """

    headless: bool = True
    executable_path: Optional[str] = None
    args: list[str] = field(default_factory=build_launch_args)
    timeout_s: float = 30.0

    @classmethod
    def from_settings(cls) -> "LaunchOptions":
        return cls(
            headless=settings.browser_headless,
            executable_path=settings.browser_executable_path or None,
            args=build_launch_args(),
            timeout_s=settings.browser_launch_timeout_s,
        )


class BrowserController(Protocol):
    """브라우저 프로세스 제어 인터페이스

    - launch: 프로세스 기동 → 프로세스 핸들
    - new_context: 격리된 컨텍스트 + 문서(페이지) 생성 → 문서 핸들
    - terminate: 프로세스 종료 (여러 번 호출해도 안전해야 함)
    """

    async def launch(self, options: LaunchOptions) -> Any:
        ...

    async def new_context(self, handle: Any) -> Any:
        ...

    async def terminate(self, handle: Any) -> None:
        ...


class PlaywrightController:
    """Playwright Chromium 기반 BrowserController"""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._orphans: set[asyncio.Future] = set()

    async def _ensure_driver(self) -> Playwright:
        async with self._lock:
            if self._playwright is None:
                logger.info("[Playwright] Starting driver...")
                self._playwright = await asyncio.wait_for(
                    async_playwright().start(),
                    timeout=20.0,  # 드라이버 시작에 최대 20초
                )
            return self._playwright

    async def launch(self, options: LaunchOptions) -> Browser:
        try:
            pw = await self._ensure_driver()
            launching = asyncio.ensure_future(
                pw.chromium.launch(
                    headless=options.headless,
                    executable_path=options.executable_path,
                    args=options.args,
                    timeout=options.timeout_s * 1000,
                )
            )
            try:
                browser = await asyncio.wait_for(asyncio.shield(launching), timeout=options.timeout_s + 5.0)
            except BaseException:
                # 대기를 포기해도 기동은 끝까지 진행될 수 있음 - 늦게 뜬 브라우저는 닫음
                launching.add_done_callback(self._close_orphan)
                raise
        except asyncio.TimeoutError as e:
            raise ProcessLaunchError(
                f"timed out after {options.timeout_s:.0f}s",
                details={"executable_path": options.executable_path},
            ) from e
        except Exception as e:
            raise ProcessLaunchError(
                f"{type(e).__name__}: {e}",
                details={"executable_path": options.executable_path, "platform": platform.system()},
            ) from e

        logger.info(f"[Playwright] Browser launched (version {browser.version})")
        return browser

    def _close_orphan(self, launching: "asyncio.Future[Browser]") -> None:
        if launching.cancelled() or launching.exception() is not None:
            return
        browser = launching.result()
        logger.warning("[Playwright] Closing browser that finished launching after the caller gave up")
        closing = asyncio.ensure_future(browser.close())
        self._orphans.add(closing)
        closing.add_done_callback(self._orphans.discard)

    async def new_context(self, handle: Browser) -> Page:
        context = await handle.new_context()
        return await context.new_page()

    async def terminate(self, handle: Browser) -> None:
        if handle is None or not handle.is_connected():
            return
        await handle.close()

    async def shutdown(self) -> None:
        """공유 드라이버 정리 (앱 종료 시)"""
        if self._orphans:
            await asyncio.gather(*self._orphans, return_exceptions=True)
        async with self._lock:
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning(f"[Playwright] Failed to stop driver: {type(e).__name__}: {e}")
                self._playwright = None
