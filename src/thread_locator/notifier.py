"""Hand-off of a found successor thread to the user."""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Callable, Protocol

from .models import LocatorConfig

_THREAD_URL = "https://boards.4chan.org/{board}/thread/{thread_id}#p{thread_id}"

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, thread_id: str) -> None: ...


def thread_page_url(board: str, thread_id: str) -> str:
    return _THREAD_URL.format(board=board, thread_id=thread_id)


def _console_confirm(message: str) -> bool:
    try:
        answer = input(f"{message} Open it? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


class BrowserNotifier:
    """Open the new thread in a browser, directly or after confirmation."""

    def __init__(
        self,
        config: LocatorConfig,
        *,
        opener: Callable[[str, int], object] | None = None,
        confirm: Callable[[str], bool] | None = None,
    ):
        self._config = config
        self._opener = opener or (lambda url, new: webbrowser.open(url, new=new))
        self._confirm = confirm or _console_confirm
        self.opened: list[str] = []

    async def notify(self, thread_id: str) -> None:
        url = thread_page_url(self._config.board, thread_id)
        if self._config.auto_open:
            await self._open(url)
            return
        message = f"New thread (id: {thread_id}) found!"
        logger.info("%s %s", message, url)
        # Blocking calls run in a worker thread.
        if await asyncio.to_thread(self._confirm, message):
            await self._open(url)

    async def _open(self, url: str) -> None:
        # webbrowser: 2 opens a new tab, 0 reuses the current window.
        new = 2 if self._config.open_in_new_tab else 0
        logger.info("Opening %s", url)
        await asyncio.to_thread(self._opener, url, new)
        self.opened.append(url)
