"""Final ordering and snapshot construction."""
from __future__ import annotations

from typing import Iterable

from ctxviewer.timeline.events import Event, EventType, LoadResult

# Intervals first, then lock markers, clears and bookmarks so the renderer
# draws leaf markers on top.
TYPE_RANK: dict[EventType, int] = {
    EventType.START: 0,
    EventType.LOCKW: 1,
    EventType.LOCKA: 1,
    EventType.LOCKR: 1,
    EventType.CLEAR: 2,
    EventType.BMARK: 3,
    EventType.ENDOK: 4,
    EventType.ENDER: 4,
}


def render_order_key(event: Event) -> tuple[int, int, int, float, float]:
    return (
        TYPE_RANK[event.start_type],
        event.thread_index,
        event.depth,
        event.start_time,
        -event.end_time,
    )


def assemble(
    events: Iterable[Event],
    thread_ids: Iterable[int],
    **details,
) -> LoadResult:
    """Sort reconstructed events into render order and freeze them.

    ``sorted`` is stable, so events with identical keys keep their
    reconstruction order.
    """
    ordered = tuple(sorted(events, key=render_order_key))
    return LoadResult(events=ordered, thread_ids=tuple(thread_ids), **details)
