"""Timeline value types shared by the reconstruction pass and the API layer."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class EventType(str, Enum):
    """Classification tags written by the log compiler."""

    START = "START"
    ENDOK = "ENDOK"
    ENDER = "ENDER"
    BMARK = "BMARK"
    CLEAR = "CLEAR"
    LOCKW = "LOCKW"
    LOCKA = "LOCKA"
    LOCKR = "LOCKR"

    @property
    def opens_interval(self) -> bool:
        """Only START rows take part in stack nesting; everything else is a leaf."""
        return self is EventType.START


@dataclass
class Event:
    id: int
    thread_id: int
    start_location: str
    end_location: str
    start_time: float
    end_time: float
    start_type: EventType
    end_type: EventType
    start_text: str
    end_text: str
    thread_index: int = -1
    depth: int = 0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Event:
        """Build an event from a store row.

        Raises ValueError for anything missing or unparsable so callers can
        skip the row.
        """
        try:
            return cls(
                id=int(row["id"]),
                thread_id=int(row["thread_id"]),
                start_location=_text(row["start_location"]),
                end_location=_text(row["end_location"]),
                start_time=float(row["start_time"]),
                end_time=float(row["end_time"]),
                start_type=EventType(row["start_type"]),
                end_type=EventType(row["end_type"]),
                start_text=_text(row["start_text"]),
                end_text=_text(row["end_text"]),
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError(f"malformed event row: {exc!r}") from exc


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def canonical_key(event: Event) -> tuple[float, float]:
    """Input order the reconstruction relies on: start ascending, end descending."""
    return (event.start_time, -event.end_time)


@dataclass(frozen=True)
class Bookmark:
    time: float
    label: str


@dataclass(frozen=True)
class LoadResult:
    """A published, read-only view of one load pass."""

    events: tuple[Event, ...] = ()
    thread_ids: tuple[int, ...] = ()
    window_start: float = 0.0
    window_end: float = 0.0
    coalesce: float = 0.0
    cutoff: float = 0.0
    skipped_rows: int = 0
    complete: bool = True

    def max_depth(self, thread_index: int) -> int:
        """Deepest nesting level seen on a thread, -1 when it has no intervals."""
        depths = [
            e.depth for e in self.events
            if e.thread_index == thread_index and e.start_type.opens_interval
        ]
        return max(depths, default=-1)
