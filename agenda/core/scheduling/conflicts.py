"""
Conflict Detection

The one overlap predicate used by every availability and booking check.
Intervals are half-open: ``[start, end)``. Touching endpoints do not
conflict.
"""

from typing import Any, Callable, Iterable, NamedTuple, Optional, TypeVar

T = TypeVar("T")


class Interval(NamedTuple):
    """Blocking interval with the reason shown to clients."""

    start: Any
    end: Any
    reason: str = ""


def overlaps(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Check whether ``[a_start, a_end)`` and ``[b_start, b_end)`` overlap.

    Works for any mutually comparable values (datetimes, times, minutes).
    """
    return a_start < b_end and a_end > b_start


def contains_point(start: Any, end: Any, point: Any) -> bool:
    """Check whether ``point`` lies inside ``[start, end)``."""
    return start <= point < end


def find_conflicts(
    start: Any,
    end: Any,
    items: Iterable[T],
    span: Callable[[T], tuple[Any, Any]],
) -> list[T]:
    """Return every item whose span overlaps ``[start, end)``.

    Args:
        start: Interval start
        end: Interval end
        items: Candidates to test
        span: Extracts ``(start, end)`` from a candidate

    Returns:
        Overlapping items in their original order
    """
    conflicts = []
    for item in items:
        item_start, item_end = span(item)
        if overlaps(start, end, item_start, item_end):
            conflicts.append(item)
    return conflicts


def first_conflict(start: Any, end: Any, intervals: Iterable[Interval]) -> Optional[Interval]:
    """Return the first interval overlapping ``[start, end)``, if any."""
    for interval in intervals:
        if overlaps(start, end, interval.start, interval.end):
            return interval
    return None
