"""Polling of candidate successor threads."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Protocol

from .models import FetchStatus, LocatorConfig, MonitorState, ThreadFetchResult
from .request_queue import QueuedRequest, RequestQueue
from .utils import compile_keywords, matches_keywords

logger = logging.getLogger(__name__)


class ThreadFetcher(Protocol):
    async def fetch_thread(
        self,
        thread_id: str,
        *,
        timeout: float = 10.0,
        if_modified_since: str | None = None,
    ) -> ThreadFetchResult: ...


class CandidateMonitor:
    """Poll one linked thread until it carries the marker or polling gives up.

    A fresh response is first checked for relevance: the opening post must
    mention one of the configured keywords, otherwise the candidate is dropped
    for good. Once a thread passes that check it is never re-checked. Every
    post is then scanned for the marker hash; a hit fires the registered
    callbacks exactly once. Anything else (no hit, not modified, transport
    failure, malformed payload) schedules another attempt after
    ``thread_update_interval`` until ``retry_limit`` attempts have been made.
    """

    def __init__(
        self,
        thread_id: str,
        *,
        client: ThreadFetcher,
        queue: RequestQueue,
        config: LocatorConfig,
        keyword_pattern: re.Pattern[str] | None = None,
    ):
        self.thread_id = thread_id
        self._client = client
        self._queue = queue
        self._config = config
        self._keywords = keyword_pattern or compile_keywords(config.keywords)
        self._callbacks: list[Callable[[str], None]] = []
        self._request: QueuedRequest | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._last_modified: str | None = None
        self.validated = False
        self.attempt_count = 0
        self.state = MonitorState.REQUESTING
        self._issue()

    @property
    def last_modified(self) -> str | None:
        return self._last_modified

    def add_callback(self, callback: Callable[[str], None]) -> None:
        self._callbacks.append(callback)

    def stop(self) -> None:
        self._cancel_pending()
        if not self.state.terminal:
            self.state = MonitorState.STOPPED

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._request is not None:
            self._request.abort()
            self._request = None

    def _limit_reached(self) -> bool:
        limit = self._config.retry_limit
        return limit > 0 and self.attempt_count >= limit

    def _issue(self) -> None:
        self._timer = None
        if self.state.terminal:
            return
        if self._limit_reached():
            self._finish(MonitorState.EXHAUSTED)
            return
        self.attempt_count += 1
        self.state = MonitorState.REQUESTING
        self._request = QueuedRequest(
            lambda: self._client.fetch_thread(
                self.thread_id,
                timeout=self._config.request_timeout,
                if_modified_since=self._last_modified,
            ),
            self._on_response,
            name=f"thread-{self.thread_id}-attempt-{self.attempt_count}",
        )
        logger.debug("Queued attempt %d for thread %s", self.attempt_count, self.thread_id)
        self._queue.enqueue(self._request)

    def _schedule_next(self) -> None:
        if self.state.terminal:
            return
        if self._limit_reached():
            self._finish(MonitorState.EXHAUSTED)
            return
        self.state = MonitorState.SCHEDULED
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._config.thread_update_interval, self._issue)

    def _on_response(self, result: ThreadFetchResult) -> None:
        self._request = None
        if self.state.terminal:
            return
        if result.last_modified:
            self._last_modified = result.last_modified

        if result.status is FetchStatus.FRESH:
            self._process_posts(result)
            return
        if result.gone:
            logger.info("Thread %s no longer exists, dropping it", self.thread_id)
            self._finish(MonitorState.DROPPED)
            return
        if result.status is FetchStatus.FAILED:
            logger.debug(
                "Attempt %d for thread %s failed: %s",
                self.attempt_count,
                self.thread_id,
                result.error,
            )
        self._schedule_next()

    def _process_posts(self, result: ThreadFetchResult) -> None:
        posts = result.posts
        if not posts:
            self._schedule_next()
            return
        if not self.validated:
            opening = posts[0]
            if not matches_keywords(self._keywords, opening.subject, opening.comment):
                logger.info("Thread %s does not look like a general, dropping it", self.thread_id)
                self._finish(MonitorState.DROPPED)
                return
            self.validated = True
        marker = self._config.marker_md5
        if any(post.image_md5 == marker for post in posts):
            logger.info("Marker found in thread %s", self.thread_id)
            self._finish(MonitorState.FOUND)
            for callback in list(self._callbacks):
                callback(self.thread_id)
            return
        self._schedule_next()

    def _finish(self, state: MonitorState) -> None:
        self._cancel_pending()
        self.state = state
        if state is MonitorState.EXHAUSTED:
            logger.info(
                "Giving up on thread %s after %d attempts", self.thread_id, self.attempt_count
            )
