"""Coalescing of adjacent sibling intervals.

Two intervals on the same thread and depth are folded into one when the
second starts no later than ``threshold`` seconds after the first ends and
their classification tags are compatible. Compatibility is looked up in
``MERGE_COMPATIBILITY``, which lists every ``EventType`` explicitly.
"""
from __future__ import annotations

from ctxviewer.timeline.events import Event, EventType

# Absorbs float noise when gaps and thresholds are given in decimal seconds.
GAP_TOLERANCE = 1e-9

MERGE_COMPATIBILITY: dict[EventType, frozenset[EventType]] = {
    EventType.START: frozenset({EventType.START}),
    EventType.ENDOK: frozenset({EventType.ENDOK}),
    # ENDER and ENDOK runs are never folded together.
    EventType.ENDER: frozenset({EventType.ENDER}),
    EventType.BMARK: frozenset(),
    EventType.CLEAR: frozenset(),
    EventType.LOCKW: frozenset(),
    EventType.LOCKA: frozenset(),
    EventType.LOCKR: frozenset(),
}


def tags_compatible(left: EventType, right: EventType) -> bool:
    return right in MERGE_COMPATIBILITY[left]


def can_merge(
    previous: Event,
    candidate: Event,
    threshold: float,
    *,
    match_text: bool = True,
) -> bool:
    """Return True when ``candidate`` may be folded into ``previous``.

    A threshold of zero or less disables coalescing. With ``match_text`` the
    two intervals must also carry the same start label.
    """
    if threshold <= 0.0:
        return False
    if previous.thread_index != candidate.thread_index or previous.depth != candidate.depth:
        return False
    if not tags_compatible(previous.start_type, candidate.start_type):
        return False
    if not tags_compatible(previous.end_type, candidate.end_type):
        return False
    if match_text and previous.start_text != candidate.start_text:
        return False
    gap = candidate.start_time - previous.end_time
    return 0.0 <= gap <= threshold + GAP_TOLERANCE


def merge(previous: Event, candidate: Event) -> None:
    """Extend ``previous`` in place so it ends where ``candidate`` ends."""
    previous.end_time = candidate.end_time
    previous.end_type = candidate.end_type
    previous.end_text = candidate.end_text
    previous.end_location = candidate.end_location
