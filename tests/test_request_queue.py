from __future__ import annotations

import asyncio
import time

from thread_locator.models import FetchStatus, ThreadFetchResult
from thread_locator.request_queue import QueuedRequest, RequestQueue


class RecordingFactory:
    def __init__(self) -> None:
        self.started: list[tuple[str, float]] = []
        self.completed: list[str] = []

    def request(self, name: str) -> QueuedRequest:
        async def fetch() -> ThreadFetchResult:
            self.started.append((name, time.perf_counter()))
            return ThreadFetchResult(FetchStatus.NOT_MODIFIED)

        return QueuedRequest(fetch, lambda result: self.completed.append(name), name=name)


def test_queue_dispatches_in_order_one_per_tick() -> None:
    async def runner() -> None:
        queue = RequestQueue(0.05)
        recorder = RecordingFactory()
        for name in ("a", "b", "c"):
            queue.enqueue(recorder.request(name))
        assert queue.running

        await asyncio.sleep(0.3)
        queue.stop()

        assert [name for name, _ in recorder.started] == ["a", "b", "c"]
        assert recorder.completed == ["a", "b", "c"]
        times = [moment for _, moment in recorder.started]
        assert all(later - earlier >= 0.04 for earlier, later in zip(times, times[1:]))

    asyncio.run(runner())


def test_stop_discards_pending_requests() -> None:
    async def runner() -> None:
        queue = RequestQueue(0.05)
        recorder = RecordingFactory()
        first = recorder.request("a")
        second = recorder.request("b")
        queue.enqueue(first)
        queue.enqueue(second)

        queue.stop()
        queue.stop()
        await asyncio.sleep(0.15)

        assert recorder.started == []
        assert first.aborted and second.aborted
        assert len(queue) == 0
        assert not queue.running

    asyncio.run(runner())


def test_enqueue_after_stop_is_never_sent() -> None:
    async def runner() -> None:
        queue = RequestQueue(0.01)
        queue.stop()
        recorder = RecordingFactory()
        request = recorder.request("late")
        queue.enqueue(request)

        await asyncio.sleep(0.05)

        assert request.aborted
        assert recorder.started == []
        assert not queue.running

    asyncio.run(runner())


def test_aborted_request_does_not_report_completion() -> None:
    async def runner() -> None:
        release = asyncio.Event()
        completed: list[ThreadFetchResult] = []

        async def fetch() -> ThreadFetchResult:
            await release.wait()
            return ThreadFetchResult(FetchStatus.NOT_MODIFIED)

        request = QueuedRequest(fetch, completed.append)
        request.send()
        await asyncio.sleep(0)
        request.abort()
        release.set()
        await asyncio.sleep(0.01)

        assert request.sent
        assert completed == []

    asyncio.run(runner())


def test_raising_request_reports_failure() -> None:
    async def runner() -> None:
        completed: list[ThreadFetchResult] = []

        async def fetch() -> ThreadFetchResult:
            raise RuntimeError("boom")

        request = QueuedRequest(fetch, completed.append)
        request.send()
        await asyncio.sleep(0.01)

        assert len(completed) == 1
        assert completed[0].status is FetchStatus.FAILED
        assert completed[0].error == "boom"

    asyncio.run(runner())


def test_ticker_parks_when_queue_is_empty() -> None:
    async def runner() -> None:
        queue = RequestQueue(0)
        recorder = RecordingFactory()
        queue.enqueue(recorder.request("a"))

        await asyncio.sleep(0.01)
        assert not queue.running
        assert [name for name, _ in recorder.started] == ["a"]

        queue.enqueue(recorder.request("b"))
        assert queue.running
        await asyncio.sleep(0.01)
        queue.stop()

        assert [name for name, _ in recorder.started] == ["a", "b"]

    asyncio.run(runner())
