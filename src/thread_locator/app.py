"""Application bootstrap for the thread locator."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import aiohttp

from .cache import PendingLinkCache
from .chan import ChanClient
from .extraction import collect_transcript_ids, cross_thread_ids
from .models import ContentUnit, LocatorConfig, Subscription, ThreadSnapshot
from .monitor import CandidateMonitor, ThreadFetcher
from .notifier import BrowserNotifier, Notifier
from .page import LiveThreadPage, PageSource, ThreadUnavailableError
from .request_queue import RequestQueue
from .utils import compile_keywords

logger = logging.getLogger(__name__)


class ThreadLocator:
    """High level coordinator tying together the live thread, the cache and monitors."""

    def __init__(
        self,
        config: LocatorConfig,
        *,
        page: PageSource,
        client: ThreadFetcher,
        notifier: Notifier,
        queue: RequestQueue | None = None,
    ):
        self._config = config
        self._page = page
        self._client = client
        self._notifier = notifier
        self._queue = queue
        self._keywords = compile_keywords(config.keywords)
        self._subscription: Subscription | None = None
        self._cache: PendingLinkCache | None = None
        self._found: asyncio.Future[str] | None = None
        self._handoff: asyncio.Task[None] | None = None
        self._finished = False
        self.snapshot: ThreadSnapshot | None = None
        self.monitors: dict[str, CandidateMonitor] = {}

    @property
    def active(self) -> bool:
        return self._cache is not None and not self._finished

    @property
    def cache(self) -> PendingLinkCache | None:
        return self._cache

    @property
    def queue(self) -> RequestQueue | None:
        return self._queue

    @property
    def succeeded(self) -> bool:
        return self._found is not None and self._found.done()

    @property
    def has_live_monitors(self) -> bool:
        return any(not monitor.state.terminal for monitor in self.monitors.values())

    def start(self) -> bool:
        """Read the thread and start watching it; False if it is not worth watching."""

        snapshot = ThreadSnapshot.from_page(self._page.read(), self._config)
        self.snapshot = snapshot
        if not (snapshot.has_keywords or snapshot.has_marker):
            logger.info("Thread %s is not a general, nothing to do", snapshot.thread_id)
            return False

        self._found = asyncio.get_running_loop().create_future()
        if self._queue is None:
            self._queue = RequestQueue(self._config.request_interval)
        self._cache = PendingLinkCache()
        self._subscription = self._page.subscribe(self._on_new_posts)
        logger.info(
            "Watching thread %s (%d/%d images, marker %s)",
            snapshot.thread_id,
            snapshot.images,
            snapshot.image_limit,
            "present" if snapshot.has_marker else "absent",
        )
        if snapshot.image_limit_reached:
            ids = collect_transcript_ids(
                self._page.read().transcript,
                snapshot.images,
                snapshot.image_limit,
                snapshot.thread_id,
            )
            if ids:
                logger.info("Found %d cross-thread links in the transcript", len(ids))
                self._cache.push(ids)
        if snapshot.has_marker:
            self._process_cache()
        return True

    async def wait(self) -> str:
        """Return the id of the successor thread once it has been found."""

        if self._found is None:
            raise RuntimeError("locator is not running")
        thread_id = await asyncio.shield(self._found)
        if self._handoff is not None:
            await asyncio.shield(self._handoff)
        return thread_id

    def _on_new_posts(self, units: Sequence[ContentUnit]) -> None:
        if not self.active or self.snapshot is None or self._cache is None:
            return
        snapshot = self.snapshot
        for unit in units:
            if not unit.is_post:
                continue
            snapshot.update(unit)
            if snapshot.image_limit_reached:
                self._cache.push(cross_thread_ids(unit, snapshot.thread_id))
        if snapshot.has_marker:
            self._process_cache()

    def _process_cache(self) -> None:
        if self._cache is None:
            return
        ids = self._cache.drain_all()
        if ids:
            self._on_cross_thread_links(ids)

    def _on_cross_thread_links(self, ids: Sequence[str]) -> None:
        queue = self._queue
        for thread_id in ids:
            if not self.active or queue is None:
                return
            if thread_id in self.monitors:
                continue
            logger.info("Monitoring linked thread %s", thread_id)
            monitor = CandidateMonitor(
                thread_id,
                client=self._client,
                queue=queue,
                config=self._config,
                keyword_pattern=self._keywords,
            )
            monitor.add_callback(self._on_new_thread_found)
            self.monitors[thread_id] = monitor

    def _on_new_thread_found(self, thread_id: str) -> None:
        if self._finished:
            logger.debug("Ignoring late success from thread %s", thread_id)
            return
        self.teardown()
        logger.info("New thread found: %s", thread_id)
        if self._found is not None and not self._found.done():
            self._found.set_result(thread_id)
        self._handoff = asyncio.get_running_loop().create_task(
            self._notifier.notify(thread_id), name="thread-locator-notify"
        )

    def teardown(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
        for monitor in self.monitors.values():
            monitor.stop()
        if self._queue is not None:
            self._queue.stop()


async def run_locator(
    thread_id: str,
    config: LocatorConfig,
    *,
    notifier: Notifier | None = None,
) -> str | None:
    """Watch ``thread_id`` until a successor is found; None if there is nothing to watch."""

    async with aiohttp.ClientSession() as session:
        client = ChanClient(
            session,
            board=config.board,
            api_base=config.api_base,
            user_agent=config.user_agent,
        )
        page = await LiveThreadPage.open(client, thread_id, config)
        locator = ThreadLocator(
            config,
            page=page,
            client=client,
            notifier=notifier or BrowserNotifier(config),
        )
        if not locator.start():
            return None

        found_task = asyncio.create_task(locator.wait(), name="thread-locator")
        try:
            while not found_task.done():
                await asyncio.wait({found_task}, timeout=max(1.0, config.thread_update_interval))
                # Links already being polled can still lead somewhere after the thread is gone.
                if page.closed.is_set() and not (locator.has_live_monitors or locator.succeeded):
                    break
        finally:
            if not found_task.done():
                found_task.cancel()
            locator.teardown()

        if found_task.done() and not found_task.cancelled():
            return found_task.result()
        raise ThreadUnavailableError(f"thread {thread_id} went away before a successor was found")
