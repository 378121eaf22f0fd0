"""Browser layer - Playwright 프로세스/세션/메시지 채널.

공개 API는 이 파일에서만 export합니다.
"""

from .channel import MessageChannel, PlaywrightMessageChannel, render_host_document
from .launcher import BrowserController, LaunchOptions, PlaywrightController, build_launch_args
from .session import BrowserSession, BrowserSessionManager

__all__ = [
    "BrowserController",
    "BrowserSession",
    "BrowserSessionManager",
    "LaunchOptions",
    "MessageChannel",
    "PlaywrightController",
    "PlaywrightMessageChannel",
    "build_launch_args",
    "render_host_document",
]
