"""작업 단위 브라우저 세션 수명 관리.

세션 = 브라우저 프로세스 1개 + 문서(페이지) 1개 + 메시지 채널.
작업 하나가 세션 하나를 독점하며, 세션은 재사용/공유하지 않습니다.
해제는 `async with manager.session()`으로만 보장합니다.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

from src.core.exceptions import ProcessLaunchError
from src.core.logging import logger

from .launcher import BrowserController, LaunchOptions

# (document_handle) -> channel. 채널은 attach()를 제공해야 함
ChannelFactory = Callable[[Any], Any]


@dataclass
class BrowserSession:
    """브라우저 세션 (작업과 1:1)

    Attributes:
        session_id: 로그 추적용 ID
        process_handle: 브라우저 프로세스 핸들
        document_handle: 페이지 핸들 (초기화 도중 실패하면 None)
        channel: 메시지 채널 (초기화 도중 실패하면 None)
        is_open: 해제 전이면 True
    """

    process_handle: Any
    document_handle: Any = None
    channel: Any = None
    is_open: bool = True
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])


class BrowserSessionManager:
    """세션 획득/해제 관리자

    - acquire: 프로세스 기동 → 페이지 생성 → 채널 연결. 실패 시 ProcessLaunchError
    - release: 멱등. 종료 중 오류는 로그만 남기고 무시 (이미 죽은 프로세스는 정리 실패가 아님)
    - session: 동시 세션 수를 제한하고, 모든 종료 경로에서 release를 보장하는 컨텍스트 매니저
    """

    def __init__(
        self,
        controller: BrowserController,
        channel_factory: ChannelFactory,
        launch_options: Optional[LaunchOptions] = None,
        max_concurrent: int = 2,
    ):
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")
        self.controller = controller
        self.channel_factory = channel_factory
        self.launch_options = launch_options or LaunchOptions()
        self.max_concurrent = max_concurrent
        self._slots = asyncio.Semaphore(max_concurrent)
        self.acquired_count = 0
        self.released_count = 0

    @property
    def active_count(self) -> int:
        return self.acquired_count - self.released_count

    async def acquire(self) -> BrowserSession:
        """세션 획득

        Raises:
            ProcessLaunchError: 프로세스 기동 또는 페이지/채널 초기화 실패
        """
        try:
            handle = await self.controller.launch(self.launch_options)
        except ProcessLaunchError:
            raise
        except Exception as e:
            raise ProcessLaunchError(f"{type(e).__name__}: {e}") from e

        session = BrowserSession(process_handle=handle)
        self.acquired_count += 1
        logger.info(f"[Session:{session.session_id}] Browser process acquired (active={self.active_count})")

        try:
            session.document_handle = await self.controller.new_context(handle)
            channel = self.channel_factory(session.document_handle)
            await channel.attach()
            session.channel = channel
        except Exception as e:
            logger.error(f"[Session:{session.session_id}] Context setup failed: {type(e).__name__}: {e}")
            await self.release(session)
            raise ProcessLaunchError(
                f"context setup failed: {type(e).__name__}: {e}",
                details={"session_id": session.session_id},
            ) from e
        except BaseException:
            # 취소(작업 마감 등) - 프로세스만 정리하고 그대로 전파
            logger.warning(f"[Session:{session.session_id}] Context setup interrupted, releasing")
            await self.release(session)
            raise

        return session

    async def release(self, session: Optional[BrowserSession]) -> None:
        """세션 해제 (멱등, 부분 초기화 세션 허용)"""
        if session is None or not session.is_open:
            return
        session.is_open = False
        self.released_count += 1

        if session.channel is not None:
            try:
                session.channel.close()
            except Exception as e:
                logger.warning(f"[Session:{session.session_id}] Failed to close channel: {type(e).__name__}: {e}")

        try:
            await self.controller.terminate(session.process_handle)
            logger.info(f"[Session:{session.session_id}] Browser process released (active={self.active_count})")
        except Exception as e:
            # 이미 크래시한 프로세스 등 - 정리 관점에서는 치명적이지 않음
            logger.warning(
                f"[Session:{session.session_id}] Browser termination failed (ignored): {type(e).__name__}: {e}"
            )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """동시성 제한 + 해제 보장 세션 스코프

        Usage:
            async with manager.session() as session:
                ...
        """
        async with self._slots:
            session = await self.acquire()
            try:
                yield session
            finally:
                await self.release(session)

    def stats(self) -> dict:
        return {
            "acquired": self.acquired_count,
            "released": self.released_count,
            "active": self.active_count,
            "max_concurrent": self.max_concurrent,
        }
