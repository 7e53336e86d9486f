"""
Time Normalization

Converts every timestamp entering or leaving the engine into one canonical
value carrying both the business-local wall clock and the absolute UTC
instant. Storage uses naive UTC datetimes by convention.

Inputs whose offset cannot be determined raise ``AmbiguousTimezone``;
nothing is ever guessed.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Protocol, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agenda.core.scheduling.errors import AmbiguousTimezone, InvalidArgument

logger = logging.getLogger(__name__)

TimestampInput = Union["CivilInstant", datetime, date, str, tuple]


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a given instant. Used by tests and replays."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise AmbiguousTimezone("FixedClock requires an aware datetime")
        self._instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> None:
        """Move the clock forward by a timedelta given as keyword arguments."""
        self._instant += timedelta(**kwargs)


@dataclass(frozen=True)
class CivilInstant:
    """Business-local wall clock paired with the absolute instant."""

    local: datetime
    instant: datetime

    @property
    def date(self) -> date:
        return self.local.date()

    @property
    def time(self) -> time:
        return self.local.time()

    def to_storage(self) -> datetime:
        """Naive UTC datetime for persistence."""
        return self.instant.replace(tzinfo=None)


def day_of_week(value: date) -> int:
    """Weekday number with 0 = Sunday."""
    return (value.weekday() + 1) % 7


def to_storage(value: datetime) -> datetime:
    """Convert an aware datetime into the naive-UTC storage convention."""
    if value.tzinfo is None:
        raise AmbiguousTimezone("Cannot store a naive datetime as an instant")
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: datetime) -> datetime:
    """Attach UTC to a stored naive datetime."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc)
    return value.replace(tzinfo=timezone.utc)


def parse_date(value: Union[date, str]) -> date:
    """Parse a YYYY-MM-DD date."""
    if isinstance(value, datetime):
        raise InvalidArgument("Expected a date, got a datetime")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid date (expected YYYY-MM-DD): {value!r}")


def parse_time(value: Union[time, str]) -> time:
    """Parse an HH:MM time of day."""
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid time (expected HH:MM): {value!r}")


class TimeNormalizer:
    """
    Normalizes timestamps for one business timezone.

    Accepted inputs:
    - ``date`` or "YYYY-MM-DD": local midnight
    - ``(date, time)`` pair, either side may be a string: local wall clock
    - aware ``datetime`` or ISO-8601 string with an offset: absolute instant
    - ``CivilInstant``: returned unchanged

    Naive datetimes and offset-less ISO strings are rejected, as are wall
    clock times that fall into a DST gap or fold.
    """

    def __init__(self, tz_name: str, clock: Optional[Clock] = None):
        try:
            self.zone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise InvalidArgument(f"Unknown timezone: {tz_name}")
        self.tz_name = tz_name
        self.clock = clock or SystemClock()

    def normalize(self, value: TimestampInput) -> CivilInstant:
        """Normalize any supported representation."""
        if isinstance(value, CivilInstant):
            return value
        if isinstance(value, tuple):
            if len(value) != 2:
                raise InvalidArgument("Expected a (date, time) pair")
            return self.from_local(parse_date(value[0]), parse_time(value[1]))
        if isinstance(value, datetime):
            return self.from_instant(value)
        if isinstance(value, date):
            return self.from_local(value, time(0, 0))
        if isinstance(value, str):
            return self._from_string(value)
        raise InvalidArgument(f"Unsupported timestamp: {value!r}")

    def normalize_instant(self, value: Union[CivilInstant, datetime, str]) -> CivilInstant:
        """Normalize a value that must denote an absolute instant."""
        if isinstance(value, CivilInstant):
            return value
        if isinstance(value, datetime):
            return self.from_instant(value)
        if isinstance(value, str):
            parsed = self._parse_iso(value)
            return self.from_instant(parsed)
        raise InvalidArgument(f"Expected an absolute timestamp, got {value!r}")

    def from_instant(self, value: datetime) -> CivilInstant:
        """Build from an aware datetime."""
        if value.tzinfo is None or value.utcoffset() is None:
            raise AmbiguousTimezone(
                f"Timestamp {value.isoformat()} has no UTC offset"
            )
        instant = value.astimezone(timezone.utc)
        local = instant.astimezone(self.zone).replace(tzinfo=None)
        return CivilInstant(local=local, instant=instant)

    def from_local(self, day: date, at: time) -> CivilInstant:
        """Build from a business-local wall clock."""
        local = datetime.combine(day, at.replace(tzinfo=None))
        early = local.replace(tzinfo=self.zone, fold=0)
        late = local.replace(tzinfo=self.zone, fold=1)
        if early.utcoffset() != late.utcoffset():
            round_trip = early.astimezone(timezone.utc).astimezone(self.zone)
            if round_trip.replace(tzinfo=None) != local:
                raise AmbiguousTimezone(
                    f"{local.isoformat()} does not exist in {self.tz_name}"
                )
            raise AmbiguousTimezone(
                f"{local.isoformat()} occurs twice in {self.tz_name}"
            )
        return CivilInstant(local=local, instant=early.astimezone(timezone.utc))

    def from_storage(self, value: datetime) -> CivilInstant:
        """Build from a stored naive-UTC datetime."""
        return self.from_instant(from_storage(value))

    def local_to_instant(self, local: datetime) -> datetime:
        """Absolute instant for a local wall clock, resolving gaps forward.

        Only for range bounds (day start/end), never for booking times.
        """
        return local.replace(tzinfo=self.zone, fold=0).astimezone(timezone.utc)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Absolute ``[start, end)`` of a business-local calendar day."""
        start = self.local_to_instant(datetime.combine(day, time(0, 0)))
        end = self.local_to_instant(datetime.combine(day + timedelta(days=1), time(0, 0)))
        return start, end

    def local_span(self, day: date, start: time, end: time) -> tuple[datetime, datetime]:
        """Absolute ``[start, end)`` of a recurring wall-clock range on ``day``.

        Working windows and breaks; an end at midnight means the next day.
        """
        end_day = day + timedelta(days=1) if end == time(0, 0) else day
        return (
            self.local_to_instant(datetime.combine(day, start)),
            self.local_to_instant(datetime.combine(end_day, end)),
        )

    def now(self) -> CivilInstant:
        """Current instant from the injected clock."""
        return self.from_instant(self.clock.now())

    def today(self) -> date:
        """Current business-local date."""
        return self.now().date

    def _parse_iso(self, value: str) -> datetime:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise InvalidArgument(f"Invalid ISO-8601 timestamp: {value!r}")
        if parsed.tzinfo is None:
            raise AmbiguousTimezone(
                f"Timestamp {value!r} has no UTC offset; send an explicit offset or 'Z'"
            )
        return parsed

    def _from_string(self, value: str) -> CivilInstant:
        text = value.strip()
        if len(text) == 10:
            return self.from_local(parse_date(text), time(0, 0))
        return self.from_instant(self._parse_iso(text))
