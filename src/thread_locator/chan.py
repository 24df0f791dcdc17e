"""4chan read-only JSON API client."""

from __future__ import annotations

import asyncio
import html
import logging
import re
import time
from typing import Any, Mapping, Sequence

import aiohttp

from .models import ContentUnit, FetchStatus, ThreadFetchResult

_DEFAULT_API_BASE = "https://a.4cdn.org"
_DEFAULT_USER_AGENT = "thread-locator/1.0"

_ANCHOR_RE = re.compile(r"<a\b[^>]*>", re.IGNORECASE)
_HREF_RE = re.compile(r'href="([^"]*)"', re.IGNORECASE)
_CLASS_RE = re.compile(r'class="([^"]*)"', re.IGNORECASE)
_THREAD_HREF_RE = re.compile(r"^(?:/(?P<board>[a-z0-9]+)/(?:res|thread)/)?(?P<thread>\d+)")


logger = logging.getLogger(__name__)


class ChanClient:
    """Thin asynchronous wrapper around the thread endpoint of the 4chan API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        board: str = "mlp",
        api_base: str = _DEFAULT_API_BASE,
        user_agent: str | None = None,
    ):
        self._session = session
        self._board = board
        self._api_base = api_base.rstrip("/")
        self._user_agent = user_agent or _DEFAULT_USER_AGENT

    @property
    def board(self) -> str:
        return self._board

    def thread_url(self, thread_id: str) -> str:
        return f"{self._api_base}/{self._board}/thread/{thread_id}.json"

    async def fetch_thread(
        self,
        thread_id: str,
        *,
        timeout: float = 10.0,
        if_modified_since: str | None = None,
    ) -> ThreadFetchResult:
        headers = {
            "User-Agent": self._user_agent,
            "Accept": "application/json",
        }
        if if_modified_since:
            headers["If-Modified-Since"] = if_modified_since

        # Millisecond timestamp keeps intermediate caches from answering for the origin.
        url = f"{self.thread_url(thread_id)}?{int(time.time() * 1000)}"

        try:
            timeout_cfg = aiohttp.ClientTimeout(total=timeout)
            async with self._session.get(url, headers=headers, timeout=timeout_cfg) as resp:
                status = resp.status
                last_modified = resp.headers.get("Last-Modified")
                if status == 304:
                    return ThreadFetchResult(
                        FetchStatus.NOT_MODIFIED,
                        last_modified=last_modified or if_modified_since,
                        http_status=status,
                    )
                if status != 200:
                    logger.debug("API answered %s for thread %s", status, thread_id)
                    return ThreadFetchResult(
                        FetchStatus.FAILED, http_status=status, error=f"HTTP {status}"
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as exc:
                    logger.debug("Thread %s returned malformed JSON: %s", thread_id, exc)
                    data = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Could not fetch thread %s: %s", thread_id, exc or type(exc).__name__)
            return ThreadFetchResult(FetchStatus.FAILED, error=str(exc) or type(exc).__name__)

        return ThreadFetchResult(
            FetchStatus.FRESH,
            posts=parse_thread_payload(data, self._board),
            last_modified=last_modified,
            http_status=200,
        )


def parse_thread_payload(data: Any, board: str) -> Sequence[ContentUnit]:
    if not isinstance(data, Mapping):
        return ()
    posts = data.get("posts")
    if not isinstance(posts, list):
        return ()
    return tuple(parse_post(post, board) for post in posts if isinstance(post, Mapping))


def parse_post(payload: Mapping[str, Any], board: str) -> ContentUnit:
    number = payload.get("no")
    comment = str(payload.get("com") or "")
    md5 = payload.get("md5")
    return ContentUnit(
        post_id=str(number or ""),
        is_post=isinstance(number, int) and not isinstance(number, bool),
        subject=html.unescape(str(payload.get("sub") or "")),
        comment=comment,
        image_md5=str(md5) if md5 else None,
        cross_thread_ids=parse_cross_thread_ids(comment, board),
    )


def parse_cross_thread_ids(comment: str, board: str) -> tuple[str, ...]:
    """Return ids of threads on ``board`` quoted from ``comment`` markup.

    In-thread quotes (``#p123``) and links to other boards are ignored.
    """

    ids: list[str] = []
    for anchor in _ANCHOR_RE.findall(comment):
        class_match = _CLASS_RE.search(anchor)
        if not class_match or "quotelink" not in class_match.group(1).split():
            continue
        href_match = _HREF_RE.search(anchor)
        if not href_match:
            continue
        link = _THREAD_HREF_RE.match(html.unescape(href_match.group(1)))
        if not link:
            continue
        link_board = link.group("board")
        if link_board is not None and link_board != board:
            continue
        thread_id = link.group("thread")
        if thread_id not in ids:
            ids.append(thread_id)
    return tuple(ids)
