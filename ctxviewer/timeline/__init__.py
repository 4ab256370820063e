"""Timeline reconstruction: thread indexing, stack nesting, coalescing, ordering."""

from ctxviewer.timeline.events import Bookmark, Event, EventType, LoadResult, canonical_key
from ctxviewer.timeline.threads import ThreadIndexer
from ctxviewer.timeline.merge import MERGE_COMPATIBILITY, can_merge, merge, tags_compatible
from ctxviewer.timeline.reconstruct import TimelineBuilder, reconstruct
from ctxviewer.timeline.assemble import TYPE_RANK, assemble, render_order_key

__all__ = [
    "Bookmark",
    "Event",
    "EventType",
    "LoadResult",
    "canonical_key",
    "ThreadIndexer",
    "MERGE_COMPATIBILITY",
    "can_merge",
    "merge",
    "tags_compatible",
    "TimelineBuilder",
    "reconstruct",
    "TYPE_RANK",
    "assemble",
    "render_order_key",
]
