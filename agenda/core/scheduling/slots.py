"""
Slot Generation

Builds the fixed-granularity grid of candidate start times for a working
window. Coarser display grids are derived from this grid by filtering.
"""

from datetime import time
from typing import Sequence, TypeVar, Union

from agenda.core.scheduling.errors import InvalidArgument

GRID_MINUTES = 5

T = TypeVar("T")


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Time of day for minutes since midnight."""
    if not 0 <= minutes < 24 * 60:
        raise InvalidArgument(f"Minutes out of day range: {minutes}")
    return time(minutes // 60, minutes % 60)


def generate(start: time, end: time, granularity_minutes: int = GRID_MINUTES) -> list[time]:
    """Generate every ``start + k * granularity`` strictly before ``end``.

    Args:
        start: First candidate start time
        end: Exclusive upper bound
        granularity_minutes: Step between candidates

    Returns:
        Ascending start times; empty when the window is shorter than one step
    """
    if granularity_minutes <= 0:
        raise InvalidArgument("Granularity must be positive")

    start_m = to_minutes(start)
    end_m = to_minutes(end)
    if end_m - start_m < granularity_minutes:
        return []

    return [from_minutes(m) for m in range(start_m, end_m, granularity_minutes)]


def resample(points: Sequence[T], step_minutes: int) -> list[T]:
    """Keep only grid entries that fall on a coarser step (e.g. 15 minutes).

    Accepts plain times or anything with a ``time`` attribute (slots).
    """
    if step_minutes <= 0 or step_minutes % GRID_MINUTES:
        raise InvalidArgument(f"Step must be a positive multiple of {GRID_MINUTES}")

    def _time_of(point: Union[time, T]) -> time:
        return point if isinstance(point, time) else point.time

    return [p for p in points if to_minutes(_time_of(p)) % step_minutes == 0]
