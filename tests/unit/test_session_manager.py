"""BrowserSessionManager 테스트 - 획득/해제 균형과 동시성 제한."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.browser.launcher import LaunchOptions, PlaywrightController, build_launch_args
from src.browser.session import BrowserSessionManager
from src.core.exceptions import ProcessLaunchError


def _manager(controller, editor, max_concurrent=2):
    return BrowserSessionManager(
        controller=controller,
        channel_factory=editor,
        launch_options=LaunchOptions(headless=True),
        max_concurrent=max_concurrent,
    )


@pytest.mark.asyncio
async def test_session_scope_releases_on_success(controller, make_editor):
    editor = make_editor()
    manager = _manager(controller, editor)

    async with manager.session() as session:
        assert session.is_open
        assert session.channel is editor.channels[0]
        assert editor.channels[0].attached
        assert manager.active_count == 1

    assert not session.is_open
    assert controller.terminated == controller.launched == ["browser-1"]
    assert editor.channels[0].closed
    assert manager.stats() == {"acquired": 1, "released": 1, "active": 0, "max_concurrent": 2}


@pytest.mark.asyncio
async def test_session_scope_releases_on_error(controller, make_editor):
    manager = _manager(controller, make_editor())

    with pytest.raises(RuntimeError):
        async with manager.session():
            raise RuntimeError("phase failed")

    assert manager.acquired_count == manager.released_count == 1
    assert controller.terminated == ["browser-1"]


@pytest.mark.asyncio
async def test_session_scope_releases_on_cancel(controller, make_editor):
    manager = _manager(controller, make_editor())
    entered = asyncio.Event()

    async def job():
        async with manager.session():
            entered.set()
            await asyncio.sleep(10)

    task = asyncio.create_task(job())
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert manager.released_count == 1
    assert controller.active == 0


@pytest.mark.asyncio
async def test_release_is_idempotent(controller, make_editor):
    manager = _manager(controller, make_editor())
    session = await manager.acquire()

    await manager.release(session)
    await manager.release(session)
    await manager.release(None)

    assert controller.terminated == ["browser-1"]
    assert manager.released_count == 1


@pytest.mark.asyncio
async def test_launch_failure_raises_process_launch_error(make_controller, make_editor):
    controller = make_controller(launch_error=OSError("chromium not found"))
    manager = _manager(controller, make_editor())

    with pytest.raises(ProcessLaunchError) as exc_info:
        await manager.acquire()

    assert "chromium not found" in exc_info.value.message
    assert manager.acquired_count == 0


@pytest.mark.asyncio
async def test_context_failure_releases_process(make_controller, make_editor):
    controller = make_controller(context_error=RuntimeError("target closed"))
    manager = _manager(controller, make_editor())

    with pytest.raises(ProcessLaunchError):
        await manager.acquire()

    assert controller.terminated == ["browser-1"]
    assert manager.active_count == 0


@pytest.mark.asyncio
async def test_terminate_failure_is_not_fatal(make_controller, make_editor):
    controller = make_controller(terminate_error=RuntimeError("already dead"))
    manager = _manager(controller, make_editor())

    async with manager.session():
        pass

    assert manager.released_count == 1


@pytest.mark.asyncio
async def test_concurrency_bound(make_controller, make_editor):
    controller = make_controller(launch_delay=0.01)
    manager = _manager(controller, make_editor(), max_concurrent=2)

    async def job():
        async with manager.session():
            await asyncio.sleep(0.03)

    await asyncio.gather(*(job() for _ in range(5)))

    assert len(controller.launched) == 5
    assert controller.peak_active <= 2
    assert manager.active_count == 0


def test_max_concurrent_must_be_positive(controller, make_editor):
    with pytest.raises(ValueError):
        _manager(controller, make_editor(), max_concurrent=0)


def test_launch_args_contain_isolation_flags_once():
    args = build_launch_args(["--no-sandbox", "--lang=en-US"])
    assert args.count("--no-sandbox") == 1
    assert "--disable-dev-shm-usage" in args
    assert "--disable-features=IsolateOrigins,site-per-process" in args
    assert args[-1] == "--lang=en-US"


def _playwright_controller(launch):
    pw = MagicMock()
    pw.chromium.launch = launch
    controller = PlaywrightController()
    controller._ensure_driver = AsyncMock(return_value=pw)
    return controller


def _browser():
    browser = MagicMock()
    browser.version = "120.0"
    browser.close = AsyncMock()
    return browser


@pytest.mark.asyncio
async def test_browser_launched_after_cancel_is_closed():
    browser = _browser()

    async def slow_launch(**kwargs):
        await asyncio.sleep(0.05)
        return browser

    controller = _playwright_controller(slow_launch)
    task = asyncio.create_task(controller.launch(LaunchOptions(timeout_s=1.0)))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(0.1)
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_playwright_launch_success_keeps_browser_open():
    browser = _browser()

    async def launch(**kwargs):
        return browser

    controller = _playwright_controller(launch)
    assert await controller.launch(LaunchOptions(timeout_s=1.0)) is browser
    browser.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_playwright_launch_error_is_process_launch_error():
    async def launch(**kwargs):
        raise RuntimeError("Executable doesn't exist")

    controller = _playwright_controller(launch)
    with pytest.raises(ProcessLaunchError):
        await controller.launch(LaunchOptions(timeout_s=1.0))


@pytest.mark.asyncio
async def test_cancel_during_context_setup_releases_process(make_controller, make_editor):
    controller = make_controller(context_delay=5.0)
    manager = _manager(controller, make_editor())

    task = asyncio.create_task(manager.acquire())
    await asyncio.sleep(0.02)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.terminated == controller.launched == ["browser-1"]
    assert manager.acquired_count == manager.released_count == 1
