"""Holding area for cross-thread links found before the marker shows up."""
from __future__ import annotations

from typing import Iterable


class PendingLinkCache:
    """Track discovered thread ids until monitoring is allowed to start."""

    def __init__(self) -> None:
        self._known: dict[str, None] = {}

    def push(self, thread_ids: str | Iterable[str]) -> None:
        """Merge ``thread_ids`` into the cache, ignoring ones already held."""

        if isinstance(thread_ids, str):
            thread_ids = (thread_ids,)
        for thread_id in thread_ids:
            if thread_id:
                self._known.setdefault(thread_id, None)

    def drain_all(self) -> list[str]:
        """Return every held id and leave the cache empty."""

        drained, self._known = list(self._known), {}
        return drained

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._known

    def __len__(self) -> int:
        return len(self._known)
