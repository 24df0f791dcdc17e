"""Data models used across the thread locator."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Sequence

DEFAULT_KEYWORDS: tuple[str, ...] = (
    "MLP General",
    "MLPG",
    "My Little Pony General",
    "Hub",
    "MLP",
    "Pony",
    "Ponies",
)
DEFAULT_MARKER_MD5 = "YgIC5DRjGYcY2F4I+vJkOw=="


@dataclass(slots=True)
class LocatorConfig:
    """Tunable behaviour of the locator."""

    keywords: tuple[str, ...] = DEFAULT_KEYWORDS
    marker_md5: str = DEFAULT_MARKER_MD5
    image_limit: int = 230
    request_interval: float = 1.0
    thread_update_interval: float = 10.0
    request_timeout: float = 10.0
    retry_limit: int = 0
    auto_open: bool = False
    open_in_new_tab: bool = True
    board: str = "mlp"
    api_base: str = "https://a.4cdn.org"
    page_refresh_interval: float = 10.0
    user_agent: str | None = None


@dataclass(slots=True)
class ContentUnit:
    """Single post of a thread as seen by the locator."""

    post_id: str
    is_post: bool = True
    subject: str = ""
    comment: str = ""
    image_md5: str | None = None
    cross_thread_ids: Sequence[str] = ()

    @property
    def has_image(self) -> bool:
        return bool(self.image_md5)


@dataclass(slots=True)
class PageState:
    """One-time read of the current thread."""

    thread_id: str
    post_count: int
    image_count: int
    has_keywords: bool
    has_marker: bool
    transcript: Sequence[ContentUnit] = ()


@dataclass(slots=True)
class ThreadSnapshot:
    """Running counters for the thread being watched."""

    thread_id: str
    image_limit: int
    marker_md5: str
    images: int = 0
    posts: int = 0
    has_keywords: bool = False
    has_marker: bool = False
    image_limit_reached: bool = False

    @classmethod
    def from_page(cls, page: PageState, config: LocatorConfig) -> "ThreadSnapshot":
        snapshot = cls(
            thread_id=page.thread_id,
            image_limit=config.image_limit,
            marker_md5=config.marker_md5,
            images=page.image_count,
            posts=page.post_count,
            has_keywords=page.has_keywords,
            has_marker=page.has_marker,
        )
        snapshot.image_limit_reached = snapshot.images >= snapshot.image_limit
        return snapshot

    def update(self, unit: ContentUnit) -> None:
        if not unit.is_post:
            return
        self.posts += 1
        if not unit.has_image:
            return
        self.images += 1
        if not self.has_marker and unit.image_md5 == self.marker_md5:
            self.has_marker = True
        if not self.image_limit_reached and self.images >= self.image_limit:
            self.image_limit_reached = True


class FetchStatus(enum.Enum):
    FRESH = "fresh"
    NOT_MODIFIED = "not_modified"
    FAILED = "failed"


@dataclass(slots=True)
class ThreadFetchResult:
    """Outcome of a single thread request."""

    status: FetchStatus
    posts: Sequence[ContentUnit] = ()
    last_modified: str | None = None
    http_status: int | None = None
    error: str | None = None

    @property
    def gone(self) -> bool:
        return self.status is FetchStatus.FAILED and self.http_status in {404, 410}


class MonitorState(enum.Enum):
    REQUESTING = "requesting"
    SCHEDULED = "scheduled"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    DROPPED = "dropped"
    STOPPED = "stopped"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {MonitorState.FOUND, MonitorState.EXHAUSTED, MonitorState.DROPPED, MonitorState.STOPPED}
)


@dataclass(slots=True)
class Subscription:
    """Handle returned by a live feed; ``unsubscribe`` is idempotent."""

    cancel: Callable[[], None] | None = None
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.cancel is not None:
            self.cancel()
