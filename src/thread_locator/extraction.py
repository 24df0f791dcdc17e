"""Pick cross-thread links out of posts once a thread is near its image limit."""

from __future__ import annotations

from typing import Sequence

from .models import ContentUnit


def cross_thread_ids(unit: ContentUnit, current_id: str) -> list[str]:
    """Return the threads ``unit`` links to, without self links or repeats."""

    ids: list[str] = []
    for thread_id in unit.cross_thread_ids:
        if thread_id and thread_id != current_id and thread_id not in ids:
            ids.append(thread_id)
    return ids


def collect_transcript_ids(
    units: Sequence[ContentUnit],
    image_count: int,
    image_limit: int,
    current_id: str,
) -> list[str]:
    """Walk the transcript newest first while the image count is over the limit.

    Every post visited contributes its links; posts carrying an image lower the
    running count, and the walk ends once the count falls below ``image_limit``.
    Posts older than that point were written before the thread filled up and
    are not considered.
    """

    ids: list[str] = []
    remaining = image_count
    index = len(units) - 1
    while remaining >= image_limit and index >= 0:
        unit = units[index]
        for thread_id in cross_thread_ids(unit, current_id):
            if thread_id not in ids:
                ids.append(thread_id)
        if unit.has_image:
            remaining -= 1
        index -= 1
    return ids
