"""Rate limited dispatch of thread requests."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable

from .models import FetchStatus, ThreadFetchResult

logger = logging.getLogger(__name__)


class QueuedRequest:
    """A request waiting for its turn; ``send`` starts it, ``abort`` cancels it."""

    def __init__(
        self,
        factory: Callable[[], Awaitable[ThreadFetchResult]],
        on_complete: Callable[[ThreadFetchResult], None],
        *,
        name: str = "thread-request",
    ):
        self._factory = factory
        self._on_complete = on_complete
        self._name = name
        self._task: asyncio.Task[ThreadFetchResult] | None = None
        self._aborted = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def sent(self) -> bool:
        return self._task is not None

    def send(self) -> None:
        if self._aborted or self._task is not None:
            return
        self._task = asyncio.create_task(self._factory(), name=self._name)
        self._task.add_done_callback(self._finished)

    def abort(self) -> None:
        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _finished(self, task: asyncio.Task[ThreadFetchResult]) -> None:
        if self._aborted or task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Request %s failed unexpectedly", self._name, exc_info=exc)
            self._on_complete(
                ThreadFetchResult(FetchStatus.FAILED, error=str(exc) or type(exc).__name__)
            )
            return
        self._on_complete(task.result())


class RequestQueue:
    """Send at most one queued request per ``interval`` seconds, oldest first."""

    def __init__(self, interval: float):
        self._interval = max(0.0, interval)
        self._pending: deque[QueuedRequest] = deque()
        self._ticker: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, request: QueuedRequest) -> None:
        if self._stopped:
            logger.debug("Request queue is stopped, dropping request")
            request.abort()
            return
        self._pending.append(request)
        if not self.running:
            self._ticker = asyncio.create_task(self._tick_loop(), name="request-queue")

    def stop(self) -> None:
        self._stopped = True
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        while self._pending:
            self._pending.popleft().abort()

    async def _tick_loop(self) -> None:
        # Parks once the queue is empty; the next enqueue waits a full interval again.
        while not self._stopped and self._pending:
            await asyncio.sleep(self._interval)
            if self._pending:
                self._pending.popleft().send()
        self._ticker = None
