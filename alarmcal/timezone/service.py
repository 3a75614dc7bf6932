"""Date/time values and timezone helpers for alarm scheduling.

Alarm times come in three flavours: aware times in a named zone (zoneinfo),
UTC times, and floating times (naive, interpreted in the local zone).
Any of them may carry a date-only bit, in which case the time of day is
supplied by the configured start-of-day when the value is evaluated.

Arithmetic follows two rules:
  - adding seconds or minutes is elapsed time, done in UTC;
  - adding days is wall-clock time, so a daily alarm keeps its local time
    across daylight saving changes.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone as dt_timezone, tzinfo
from functools import total_ordering
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytz
from dateutil import tz

logger = logging.getLogger(__name__)

UTC = dt_timezone.utc


class TimezoneError(Exception):
    """Raised when timezone operations fail."""


_local_zone: Optional[tzinfo] = None


def system_zone() -> tzinfo:
    """Return the local zone used for floating times.

    This is the zone set by set_local_zone(), or the system zone if none is set.
    """
    zone = globals()["_local_zone"]
    return zone if zone is not None else tz.tzlocal()


def set_local_zone(name: Optional[str]) -> None:
    """Set the zone in which floating times are interpreted.

    The setting is process wide. None or an empty name restores the system zone.

    Raises:
        TimezoneError: If the zone name is unknown.
    """
    zone = get_zone(name) if name else None
    globals()["_local_zone"] = zone
    if zone is not None:
        logger.debug(f"Floating times use zone {name}")


def get_zone(name: Optional[str]) -> tzinfo:
    """Get a tzinfo for an IANA zone name.

    Args:
        name: Zone name such as "Europe/London", "UTC", or None/empty for the
            system local zone.

    Returns:
        The zone object.

    Raises:
        TimezoneError: If the zone name is unknown.
    """
    if not name:
        return system_zone()
    if name.upper() in ("UTC", "Z"):
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimezoneError(f"Unknown timezone: {name}") from e


def normalize_tzinfo(zone: Optional[tzinfo]) -> Optional[tzinfo]:
    """Convert pytz and dateutil UTC zones to their zoneinfo/stdlib equivalent.

    pytz zones do not support wall-clock arithmetic through replace(), so
    anything arriving from a parser that still hands out pytz zones is
    switched to zoneinfo before it reaches the scheduling code.
    """
    if zone is None:
        return None
    if isinstance(zone, pytz.BaseTzInfo):
        name = getattr(zone, "zone", None) or "UTC"
        return UTC if name == "UTC" else get_zone(name)
    if isinstance(zone, tz.tzutc):
        return UTC
    return zone


def normalize_datetime(dt: datetime) -> datetime:
    """Return the same instant with its zone normalized (see normalize_tzinfo)."""
    zone = normalize_tzinfo(dt.tzinfo)
    if zone is dt.tzinfo:
        return dt
    return dt.astimezone(UTC).astimezone(zone)


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive values as local time."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=system_zone())
    return dt.astimezone(UTC)


def to_frame(dt: datetime, zone: Optional[tzinfo]) -> datetime:
    """Express ``dt`` in the frame of ``zone``.

    A None zone is the floating frame: the result is naive local
    time. Naive inputs are taken to be local time.
    """
    if zone is None:
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(system_zone()).replace(tzinfo=None)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=system_zone())
    return dt.astimezone(zone)


def add_elapsed(dt: datetime, seconds: int) -> datetime:
    """Add elapsed seconds, keeping the zone of ``dt``."""
    if dt.tzinfo is None:
        return dt + timedelta(seconds=seconds)
    return (dt.astimezone(UTC) + timedelta(seconds=seconds)).astimezone(dt.tzinfo)


def wall_candidates(wall: datetime, zone: Optional[tzinfo]):
    """Yield the aware datetimes a naive wall-clock time maps to in ``zone``.

    An ambiguous wall time (the repeated hour when clocks go back) yields
    both the first and the second occurrence, in that order.
    """
    if zone is None:
        yield wall
        return
    first = wall.replace(tzinfo=zone, fold=0)
    yield first
    if tz.datetime_ambiguous(first):
        yield tz.enfold(first, fold=1)


@total_ordering
@dataclass(frozen=True, eq=False)
class AlarmDateTime:
    """A date/time with a date-only bit.

    Ordering and equality compare instants; when either side is date-only
    they compare calendar dates in this value's zone.
    """

    value: datetime
    date_only: bool = False

    @classmethod
    def from_date(cls, d: date, zone: Optional[tzinfo] = None) -> "AlarmDateTime":
        return cls(datetime.combine(d, time(0), tzinfo=zone), True)

    @classmethod
    def coerce(cls, other: Union["AlarmDateTime", datetime, date]) -> "AlarmDateTime":
        if isinstance(other, AlarmDateTime):
            return other
        if isinstance(other, datetime):
            return cls(other)
        if isinstance(other, date):
            return cls.from_date(other)
        raise TypeError(f"Cannot convert {type(other).__name__} to AlarmDateTime")

    @property
    def tzinfo(self) -> Optional[tzinfo]:
        return self.value.tzinfo

    @property
    def is_floating(self) -> bool:
        return self.value.tzinfo is None

    @property
    def is_utc(self) -> bool:
        return self.value.tzinfo is UTC

    def date(self) -> date:
        return self.value.date()

    def effective(self, start_of_day: time = time(0)) -> datetime:
        """The datetime at which this value is due; date-only values use ``start_of_day``."""
        if self.date_only:
            return datetime.combine(self.value.date(), start_of_day, tzinfo=self.value.tzinfo)
        return self.value

    def instant(self, start_of_day: time = time(0)) -> datetime:
        return to_utc(self.effective(start_of_day))

    def in_frame(self, other: Union["AlarmDateTime", datetime]) -> datetime:
        """Express another value in this value's zone."""
        dt = other.value if isinstance(other, AlarmDateTime) else other
        return to_frame(dt, self.value.tzinfo)

    def with_date_only(self, date_only: bool) -> "AlarmDateTime":
        if date_only == self.date_only:
            return self
        return replace(self, date_only=date_only)

    def with_date(self, d: date) -> "AlarmDateTime":
        return replace(self, value=self.value.replace(year=d.year, month=d.month, day=d.day, fold=0))

    def add_secs(self, seconds: int) -> "AlarmDateTime":
        if self.date_only:
            # Whole days only, rounding toward zero
            days = abs(seconds) // 86400
            return self.add_days(days if seconds >= 0 else -days)
        return replace(self, value=add_elapsed(self.value, seconds))

    def add_mins(self, minutes: int) -> "AlarmDateTime":
        return self.add_secs(minutes * 60)

    def add_days(self, days: int) -> "AlarmDateTime":
        return replace(self, value=(self.value + timedelta(days=days)).replace(fold=0))

    def secs_to(self, other: "AlarmDateTime", start_of_day: time = time(0)) -> int:
        if self.date_only and other.date_only:
            return self.days_to(other) * 86400
        return int((other.instant(start_of_day) - self.instant(start_of_day)).total_seconds())

    def days_to(self, other: "AlarmDateTime") -> int:
        return (self.in_frame(other).date() - self.value.date()).days

    def _compare(self, other: Any) -> int:
        other = AlarmDateTime.coerce(other)
        if self.date_only or other.date_only:
            mine, theirs = self.value.date(), self.in_frame(other).date()
        else:
            mine, theirs = self.instant(), other.instant()
        return (mine > theirs) - (mine < theirs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (AlarmDateTime, datetime)):
            return NotImplemented
        other = AlarmDateTime.coerce(other)
        return self.date_only == other.date_only and self._compare(other) == 0

    def __lt__(self, other: Any) -> bool:
        return self._compare(other) < 0

    def __hash__(self) -> int:
        if self.date_only:
            return hash((self.value.date(), True))
        return hash(self.instant())

    def __str__(self) -> str:
        return self.format()

    def format(self) -> str:
        """Human readable form used in change reports."""
        zone = self.value.tzinfo
        zone_name = "" if zone is None else (self.value.tzname() or str(zone))
        text = self.value.strftime("%Y-%m-%d" if self.date_only else "%Y-%m-%d %H:%M")
        return f"{text} {zone_name}".rstrip()
