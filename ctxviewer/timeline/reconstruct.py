"""Per-thread stack reconstruction over a time-ordered interval stream."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from ctxviewer.timeline.events import Event, canonical_key
from ctxviewer.timeline.merge import can_merge, merge
from ctxviewer.timeline.threads import ThreadIndexer

logger = logging.getLogger("ctxviewer.timeline")


class TimelineBuilder:
    """Private build context for one load pass.

    Rows are fed one at a time in canonical order (start ascending, end
    descending). Each thread keeps a stack of still-open START intervals; an
    incoming interval pops every entry that closed at or before its start,
    takes the remaining stack height as its depth, and is either folded into
    the last popped sibling or pushed and emitted.

    Nothing here is shared: the caller publishes ``events`` and
    ``thread_ids`` once ``finish()`` returns.
    """

    def __init__(self, coalesce: float = 0.0, *, match_text: bool = True):
        self.coalesce = coalesce
        self.match_text = match_text
        self.threads = ThreadIndexer()
        self.events: list[Event] = []
        self.rows_seen = 0
        self.out_of_order = False
        self._stacks: dict[int, list[Event]] = {}
        self._received: list[Event] = []
        self._last_key: Optional[tuple[float, float]] = None

    def add(self, event: Event) -> None:
        self.rows_seen += 1
        key = canonical_key(event)
        if self._last_key is not None and key < self._last_key:
            if not self.out_of_order:
                logger.warning(
                    "Event %s arrived out of order (start=%s end=%s); re-sorting at finish",
                    event.id, event.start_time, event.end_time,
                )
            self.out_of_order = True
        else:
            self._last_key = key
        # placed copies are mutated by merge(); the caller's rows never are
        self._received.append(event)
        if not self.out_of_order:
            self._place(replace(event))

    def extend(self, events: Iterable[Event]) -> TimelineBuilder:
        for event in events:
            self.add(event)
        return self

    def finish(self) -> tuple[list[Event], tuple[int, ...]]:
        if not self.out_of_order:
            return self.events, self.threads.thread_ids

        replay = TimelineBuilder(self.coalesce, match_text=self.match_text)
        for event in sorted(self._received, key=canonical_key):
            replay._place(replace(event))
        return replay.events, replay.threads.thread_ids

    def _place(self, event: Event) -> None:
        event.thread_index = self.threads.index_of(event.thread_id)

        if not event.start_type.opens_interval:
            self.events.append(event)
            return

        stack = self._stacks.setdefault(event.thread_index, [])
        previous: Optional[Event] = None
        while stack and stack[-1].end_time <= event.start_time:
            previous = stack.pop()
        event.depth = len(stack)

        if previous is not None and can_merge(
            previous, event, self.coalesce, match_text=self.match_text
        ):
            merge(previous, event)
            stack.append(previous)
        else:
            stack.append(event)
            self.events.append(event)


def reconstruct(
    events: Iterable[Event],
    coalesce: float = 0.0,
    *,
    match_text: bool = True,
) -> tuple[list[Event], tuple[int, ...]]:
    """Run a whole pass over an in-memory sequence."""
    return TimelineBuilder(coalesce, match_text=match_text).extend(events).finish()
