"""Live view of the thread being watched."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, Sequence

from .chan import ChanClient
from .models import ContentUnit, FetchStatus, LocatorConfig, PageState, Subscription
from .utils import compile_keywords, matches_keywords

logger = logging.getLogger(__name__)

NewPostsHandler = Callable[[Sequence[ContentUnit]], None]


class PageSource(Protocol):
    def read(self) -> PageState: ...

    def subscribe(self, handler: NewPostsHandler) -> Subscription: ...


class ThreadUnavailableError(RuntimeError):
    """Raised when the watched thread cannot be loaded."""


def build_page_state(
    thread_id: str, posts: Sequence[ContentUnit], config: LocatorConfig
) -> PageState:
    keywords = compile_keywords(config.keywords)
    opening = posts[0] if posts else None
    has_keywords = opening is not None and matches_keywords(
        keywords, opening.subject, opening.comment
    )
    return PageState(
        thread_id=thread_id,
        post_count=sum(1 for post in posts if post.is_post),
        image_count=sum(1 for post in posts if post.has_image),
        has_keywords=has_keywords,
        has_marker=any(post.image_md5 == config.marker_md5 for post in posts),
        transcript=tuple(posts),
    )


class LiveThreadPage:
    """Current thread loaded through the API and refreshed on an interval.

    Subscribers receive batches of posts newer than anything delivered
    before. The refresh loop ends on its own when the thread disappears;
    ``closed`` is set in that case.
    """

    def __init__(
        self,
        client: ChanClient,
        state: PageState,
        *,
        refresh_interval: float,
        timeout: float = 10.0,
        last_modified: str | None = None,
    ):
        self._client = client
        self._state = state
        self._refresh_interval = refresh_interval
        self._timeout = timeout
        self._last_modified = last_modified
        self._last_post_id = _max_post_id(state.transcript)
        self._handlers: list[NewPostsHandler] = []
        self._task: asyncio.Task[None] | None = None
        self.closed = asyncio.Event()

    @classmethod
    async def open(
        cls, client: ChanClient, thread_id: str, config: LocatorConfig
    ) -> "LiveThreadPage":
        result = await client.fetch_thread(thread_id, timeout=config.request_timeout)
        if result.status is not FetchStatus.FRESH or not result.posts:
            raise ThreadUnavailableError(
                f"thread {thread_id} could not be loaded: {result.error or 'empty payload'}"
            )
        state = build_page_state(thread_id, result.posts, config)
        logger.info(
            "Loaded thread %s: %d posts, %d images",
            thread_id,
            state.post_count,
            state.image_count,
        )
        return cls(
            client,
            state,
            refresh_interval=config.page_refresh_interval,
            timeout=config.request_timeout,
            last_modified=result.last_modified,
        )

    def read(self) -> PageState:
        return self._state

    def subscribe(self, handler: NewPostsHandler) -> Subscription:
        self._handlers.append(handler)
        if self._task is None and not self.closed.is_set():
            self._task = asyncio.create_task(self._refresh_loop(), name="live-thread")

        def cancel() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)
            if not self._handlers and self._task is not None:
                self._task.cancel()
                self._task = None

        return Subscription(cancel=cancel)

    async def _refresh_loop(self) -> None:
        thread_id = self._state.thread_id
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                result = await self._client.fetch_thread(
                    thread_id, timeout=self._timeout, if_modified_since=self._last_modified
                )
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Refresh of thread %s failed", thread_id)
                continue
            if result.last_modified:
                self._last_modified = result.last_modified
            if result.gone:
                logger.warning("Thread %s is gone, live updates stopped", thread_id)
                self._task = None
                self.closed.set()
                return
            if result.status is not FetchStatus.FRESH:
                continue
            fresh = [post for post in result.posts if _post_number(post) > self._last_post_id]
            if not fresh:
                continue
            self._last_post_id = max(self._last_post_id, _max_post_id(fresh))
            self._dispatch(fresh)

    def _dispatch(self, posts: Sequence[ContentUnit]) -> None:
        for handler in list(self._handlers):
            try:
                handler(posts)
            except Exception:
                logger.exception("New post handler failed")


def _post_number(post: ContentUnit) -> int:
    try:
        return int(post.post_id)
    except ValueError:
        return 0


def _max_post_id(posts: Sequence[ContentUnit]) -> int:
    return max((_post_number(post) for post in posts), default=0)
