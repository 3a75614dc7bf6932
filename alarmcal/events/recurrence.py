"""Recurrence and sub-repetition arithmetic for alarm events.

Daily and longer recurrences are expanded by dateutil over naive wall-clock
times in the start's zone, so that an alarm keeps its local time across
daylight saving changes. A wall time which occurs twice when the clocks go
back yields both instants, first then second. Minutely recurrences step in
elapsed time.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from dateutil.rrule import (
    DAILY,
    HOURLY,
    MINUTELY,
    MONTHLY,
    WEEKLY,
    YEARLY,
    rrule,
    rruleset,
    weekday,
)
from icalendar.prop import vRecur

from ..exceptions import RecurrenceError
from ..timezone import AlarmDateTime, add_elapsed, normalize_datetime, to_frame, to_utc, wall_candidates

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

FREQUENCY_NAMES = {
    MINUTELY: "MINUTELY",
    DAILY: "DAILY",
    WEEKLY: "WEEKLY",
    MONTHLY: "MONTHLY",
    YEARLY: "YEARLY",
}
DAY_NAMES = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]

# Rule parts which alarm recurrences never use
UNSUPPORTED_PARTS = ("BYSETPOS", "BYYEARDAY", "BYWEEKNO", "BYHOUR", "BYMINUTE", "BYSECOND", "BYEASTER")

# Wall-clock slack when searching, larger than any daylight saving shift
SEARCH_MARGIN = timedelta(hours=3)


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


@dataclass(frozen=True)
class Duration:
    """A length of time in whole days or in seconds."""

    value: int = 0
    daily: bool = False

    @classmethod
    def days(cls, n: int) -> "Duration":
        return cls(n, True)

    @classmethod
    def seconds(cls, n: int) -> "Duration":
        return cls(n, False)

    def as_seconds(self) -> int:
        return self.value * SECONDS_PER_DAY if self.daily else self.value

    def as_days(self) -> int:
        return self.value if self.daily else self.value // SECONDS_PER_DAY

    def __bool__(self) -> bool:
        return self.value != 0

    def end(self, start: Union[AlarmDateTime, datetime]) -> Union[AlarmDateTime, datetime]:
        """Add this duration to a date/time; days are wall-clock days."""
        if isinstance(start, AlarmDateTime):
            return start.add_days(self.value) if self.daily else start.add_secs(self.value)
        if self.daily:
            return (start + timedelta(days=self.value)).replace(fold=0)
        return add_elapsed(start, self.value)

    def __str__(self) -> str:
        if self.daily:
            return f"{self.value} days"
        if self.value % 60 == 0:
            return f"{self.value // 60} minutes"
        return f"{self.value} seconds"


@dataclass(frozen=True)
class Repetition:
    """Sub-repetition of each recurrence: ``count`` repeats, ``interval`` apart.

    A zero interval or count means no sub-repetition.
    """

    interval: Duration = field(default_factory=Duration)
    count: int = 0

    def __post_init__(self) -> None:
        if not self.interval or self.count <= 0:
            object.__setattr__(self, "interval", Duration(0, self.interval.daily))
            object.__setattr__(self, "count", 0)

    def __bool__(self) -> bool:
        return self.count > 0

    @property
    def is_daily(self) -> bool:
        return self.interval.daily

    @property
    def interval_minutes(self) -> int:
        return self.interval.as_seconds() // 60

    @property
    def interval_days(self) -> int:
        return self.interval.as_days()

    @property
    def interval_seconds(self) -> int:
        return self.interval.as_seconds()

    def duration(self, n: Optional[int] = None) -> Duration:
        """Duration of ``n`` repeats, or of the whole repetition."""
        repeats = self.count if n is None else n
        return Duration(self.interval.value * repeats, self.interval.daily)

    def next_repeat_count(self, start: AlarmDateTime, pre: AlarmDateTime) -> int:
        """Number of the first repeat after ``pre`` of an occurrence at ``start``."""
        if not self:
            return 0
        if self.is_daily:
            return _trunc_div(start.days_to(pre), self.interval.value) + 1
        return _trunc_div(start.secs_to(pre), self.interval.value) + 1

    def previous_repeat_count(self, start: AlarmDateTime, after: AlarmDateTime) -> int:
        """Number of the last repeat before ``after`` of an occurrence at ``start``."""
        if not self:
            return 0
        if self.is_daily:
            return _trunc_div(start.days_to(after) - 1, self.interval.value)
        return _trunc_div(start.secs_to(after) - 1, self.interval.value)

    def __str__(self) -> str:
        if not self:
            return "None"
        return f"{self.count} x {self.interval}"


class RecurType(str, Enum):
    """Classification of a recurrence rule."""

    NO_RECUR = "no_recur"
    MINUTELY = "minutely"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY_DAY = "monthly_day"
    MONTHLY_POS = "monthly_pos"
    ANNUAL_DATE = "annual_date"
    ANNUAL_POS = "annual_pos"


ExDate = Union[datetime, date]


@dataclass(frozen=True)
class Recurrence:
    """A recurrence rule anchored at a start date/time.

    ``count`` is -1 for no end, or the number of occurrences; it is 0 when
    the rule ends at ``until``. ``by_weekday`` holds (day, position) pairs,
    Monday = 0 and position 0 meaning every such day.
    """

    start: datetime
    frequency: int
    interval: int = 1
    count: int = -1
    until: Optional[datetime] = None
    by_weekday: Tuple[Tuple[int, int], ...] = ()
    by_month_day: Tuple[int, ...] = ()
    by_month: Tuple[int, ...] = ()
    exdates: Tuple[ExDate, ...] = ()
    date_only: bool = False

    def __post_init__(self) -> None:
        frequency, interval = self.frequency, self.interval
        if frequency == HOURLY:
            frequency, interval = MINUTELY, interval * 60
        if frequency not in FREQUENCY_NAMES:
            raise RecurrenceError(f"Unsupported recurrence frequency {self.frequency}")
        if interval < 1:
            raise RecurrenceError(f"Invalid recurrence interval {self.interval}")
        if frequency == MINUTELY and self.date_only:
            raise RecurrenceError("A date-only recurrence cannot be minutely")

        set_ = object.__setattr__
        set_(self, "frequency", frequency)
        set_(self, "interval", interval)
        set_(self, "start", normalize_datetime(self.start))
        if self.until is not None:
            until = self.until
            if not isinstance(until, datetime):
                until = datetime.combine(until, time(0), tzinfo=self.start.tzinfo)
            set_(self, "until", normalize_datetime(until))
            set_(self, "count", 0)
        elif self.count == 0:
            set_(self, "count", -1)
        set_(self, "by_weekday", tuple((int(d), int(n)) for d, n in self.by_weekday))
        set_(self, "by_month_day", tuple(self.by_month_day))
        set_(self, "by_month", tuple(sorted(self.by_month)))
        set_(self, "exdates", tuple(self.exdates))

    # Construction helpers

    @classmethod
    def daily(cls, start: datetime, interval: int = 1, count: int = -1, date_only: bool = False) -> "Recurrence":
        return cls(start, DAILY, interval, count, date_only=date_only)

    @classmethod
    def minutely(cls, start: datetime, interval: int = 1, count: int = -1) -> "Recurrence":
        return cls(start, MINUTELY, interval, count)

    def with_start(self, start: datetime, date_only: Optional[bool] = None) -> "Recurrence":
        return replace(self, start=start, date_only=self.date_only if date_only is None else date_only)

    def with_exdates(self, exdates: Sequence[ExDate]) -> "Recurrence":
        return replace(self, exdates=tuple(exdates))

    # Properties

    @property
    def zone(self) -> Optional[tzinfo]:
        return self.start.tzinfo

    @property
    def type(self) -> RecurType:
        if self.frequency == MINUTELY:
            return RecurType.MINUTELY
        if self.frequency == DAILY:
            return RecurType.DAILY
        if self.frequency == WEEKLY:
            return RecurType.WEEKLY
        positional = any(n for _, n in self.by_weekday)
        if self.frequency == MONTHLY:
            return RecurType.MONTHLY_POS if positional else RecurType.MONTHLY_DAY
        return RecurType.ANNUAL_POS if positional else RecurType.ANNUAL_DATE

    @property
    def is_infinite(self) -> bool:
        return self.count < 0

    def _wall(self, dt: datetime) -> datetime:
        return to_frame(dt, self.zone).replace(tzinfo=None)

    @cached_property
    def _excluded_days(self) -> Set[date]:
        days = set()
        for ex in self.exdates:
            if isinstance(ex, datetime):
                if self.date_only:
                    days.add(self._wall(ex).date())
            else:
                days.add(ex)
        return days

    @cached_property
    def _excluded_instants(self) -> Set[datetime]:
        return {to_utc(ex) for ex in self.exdates if isinstance(ex, datetime)}

    @cached_property
    def _rule(self) -> rruleset:
        """The dateutil rule set over naive wall-clock times."""
        dtstart = self._wall(self.start)
        if self.date_only:
            dtstart = datetime.combine(dtstart.date(), time(0))
        kwargs: Dict[str, Any] = {
            "freq": self.frequency,
            "interval": self.interval,
            "dtstart": dtstart,
            "wkst": 0,
        }
        if self.count > 0:
            kwargs["count"] = self.count
        elif self.until is not None:
            until = self._wall(self.until)
            if self.date_only:
                until = datetime.combine(until.date(), time(0))
            kwargs["until"] = until
        if self.by_weekday:
            kwargs["byweekday"] = [weekday(d, n or None) for d, n in self.by_weekday]
        if self.by_month_day:
            kwargs["bymonthday"] = self.by_month_day
        if self.by_month:
            kwargs["bymonth"] = self.by_month

        rule_set = rruleset()
        rule_set.rrule(rrule(**kwargs))
        if not self.date_only:
            for ex in self.exdates:
                if isinstance(ex, datetime):
                    rule_set.exdate(self._wall(ex))
        return rule_set

    def _localize(self, wall: datetime) -> datetime:
        return wall if self.zone is None else wall.replace(tzinfo=self.zone)

    # Minutely recurrences step in elapsed time

    def _minutely_occurrence(self, k: int) -> Optional[datetime]:
        if k < 0 or (self.count > 0 and k >= self.count):
            return None
        occurrence = add_elapsed(self.start, k * self.interval * 60)
        if self.until is not None and to_utc(occurrence) > to_utc(self.until):
            return None
        return occurrence

    def _minutely_excluded(self, occurrence: datetime) -> bool:
        return to_utc(occurrence) in self._excluded_instants or self._wall(occurrence).date() in self._excluded_days

    def _minutely_last_index(self) -> Optional[int]:
        if self.count > 0:
            return self.count - 1
        if self.until is not None:
            elapsed = (to_utc(self.until) - to_utc(self.start)).total_seconds()
            return int(elapsed // (self.interval * 60))
        return None

    def _minutely_after(self, pre: datetime) -> Optional[datetime]:
        step = self.interval * 60
        elapsed = (to_utc(pre) - to_utc(self.start)).total_seconds()
        k = 0 if elapsed < 0 else int(elapsed // step) + 1
        while True:
            occurrence = self._minutely_occurrence(k)
            if occurrence is None or not self._minutely_excluded(occurrence):
                return occurrence
            k += 1

    def _minutely_before(self, after: datetime) -> Optional[datetime]:
        step = self.interval * 60
        elapsed = (to_utc(after) - to_utc(self.start)).total_seconds()
        if elapsed <= 0:
            return None
        k = -int(-elapsed // step) - 1
        last = self._minutely_last_index()
        if last is not None:
            k = min(k, last)
        while k >= 0:
            occurrence = self._minutely_occurrence(k)
            if occurrence is not None and not self._minutely_excluded(occurrence):
                return occurrence
            k -= 1
        return None

    # Occurrence queries

    def _walls_after(self, wall: datetime, inc: bool) -> Iterator[datetime]:
        for candidate in self._rule.xafter(wall, inc=inc):
            if candidate.date() not in self._excluded_days:
                yield candidate

    def next_after(self, pre: datetime) -> Optional[datetime]:
        """Return the first occurrence strictly after ``pre``, or None.

        For a date-only recurrence the result is midnight of the first
        recurring date after the date of ``pre`` in the start's zone.
        """
        if self.frequency == MINUTELY:
            return self._minutely_after(pre)
        if self.date_only:
            day = datetime.combine(self._wall(pre).date(), time(0))
            for wall in self._walls_after(day, inc=False):
                return self._localize(wall)
            return None

        pre_utc = to_utc(pre)
        for wall in self._walls_after(self._wall(pre) - SEARCH_MARGIN, inc=True):
            for candidate in wall_candidates(wall, self.zone):
                if to_utc(candidate) > pre_utc:
                    return candidate
        return None

    def previous_before(self, after: datetime) -> Optional[datetime]:
        """Return the last occurrence strictly before ``after``, or None."""
        if self.frequency == MINUTELY:
            return self._minutely_before(after)
        if self.date_only:
            cursor = datetime.combine(self._wall(after).date(), time(0))
            while True:
                wall = self._rule.before(cursor, inc=False)
                if wall is None:
                    return None
                if wall.date() not in self._excluded_days:
                    return self._localize(wall)
                cursor = wall

        after_utc = to_utc(after)
        cursor = self._wall(after) + SEARCH_MARGIN
        while True:
            wall = self._rule.before(cursor, inc=False)
            if wall is None:
                return None
            cursor = wall
            if wall.date() in self._excluded_days:
                continue
            for candidate in reversed(list(wall_candidates(wall, self.zone))):
                if to_utc(candidate) < after_utc:
                    return candidate

    def end_datetime(self) -> Optional[datetime]:
        """Return the last occurrence, or None if the recurrence has no end."""
        if self.is_infinite:
            return None
        if self.frequency == MINUTELY:
            last = self._minutely_last_index()
            while last is not None and last >= 0:
                occurrence = self._minutely_occurrence(last)
                if occurrence is not None and not self._minutely_excluded(occurrence):
                    return occurrence
                last -= 1
            return None

        final = None
        for wall in self._rule:
            if wall.date() not in self._excluded_days:
                final = wall
        if final is None:
            return None
        if self.date_only:
            return self._localize(final)
        return list(wall_candidates(final, self.zone))[-1]

    def recurs_on(self, day: date) -> bool:
        """Return whether any occurrence falls on ``day`` in the start's zone."""
        if self.frequency == MINUTELY:
            midnight = self._localize(datetime.combine(day, time(0)))
            occurrence = self._minutely_after(midnight - timedelta(microseconds=1))
            return occurrence is not None and self._wall(occurrence).date() == day
        if day in self._excluded_days:
            return False
        for wall in self._rule.xafter(datetime.combine(day, time(0)), inc=True):
            return wall.date() == day
        return False

    # Intervals

    def _weekdays(self) -> List[bool]:
        days = [False] * 7
        for d, n in self.by_weekday:
            if n == 0:
                days[d] = True
        return days

    def longest_interval(self) -> Duration:
        """Return the longest interval between recurrences, zero if it never recurs."""
        freq = self.interval
        kind = self.type
        if kind == RecurType.MINUTELY:
            return Duration.seconds(freq * 60)

        if kind == RecurType.DAILY:
            if not self.by_weekday:
                return Duration.days(freq)
            days = self._weekdays()
            start_day = self._wall(self.start).weekday()
            if freq % 7:
                # Every weekday recurs in some week or other
                first = last = -1
                max_gap = 1
                for i in range(0, freq * 7, freq):
                    if days[(start_day + i) % 7]:
                        if first < 0:
                            first = i
                        elif i - last > max_gap:
                            max_gap = i - last
                        last = i
                if first < 0:
                    return Duration()
                return Duration.days(max(max_gap, freq * 7 - last + first))
            return Duration.days(freq) if days[start_day] else Duration()

        if kind == RecurType.WEEKLY:
            days = self._weekdays() if self.by_weekday else [False] * 7
            if not self.by_weekday:
                days[self._wall(self.start).weekday()] = True
            first = last = -1
            max_gap = 1
            for i in range(7):
                if days[i]:
                    if first < 0:
                        first = i
                    elif i - last > max_gap:
                        max_gap = i - last
                    last = i
            if first < 0:
                return Duration()
            span = last - first
            if freq > 1:
                return Duration.days(freq * 7 - span)
            return Duration.days(max(7 - span, max_gap))

        if kind in (RecurType.MONTHLY_DAY, RecurType.MONTHLY_POS):
            return Duration.days(freq * 31)

        months = list(self.by_month) or [self._wall(self.start).month]
        if len(months) == 1:
            return Duration.days(freq * 365)
        max_gap = 0
        for prev, month in zip(months, months[1:]):
            max_gap = max(max_gap, (date(2001, month, 1) - date(2001, prev, 1)).days)
        span = (date(2001, months[-1], 1) - date(2001, months[0], 1)).days
        if freq > 1:
            return Duration.days(freq * 365 - span)
        return Duration.days(max(365 - span, max_gap))

    def regular_interval(self) -> Duration:
        """Return the interval between recurrences if it never varies, else zero."""
        freq = self.interval
        kind = self.type
        if kind == RecurType.MINUTELY:
            return Duration.seconds(freq * 60)
        if kind == RecurType.DAILY:
            if not self.by_weekday:
                return Duration.days(freq)
            days = self._weekdays()
            if freq % 7 == 0:
                return Duration.days(freq) if days[self._wall(self.start).weekday()] else Duration()
            n = sum(days)
            if n == 7:
                return Duration.days(freq)
            if n == 1:
                return Duration.days(freq * 7)
            return Duration()
        if kind == RecurType.WEEKLY:
            if not self.by_weekday:
                return Duration.days(freq * 7)
            n = sum(self._weekdays())
            if n == 7:
                return Duration.days(freq) if freq == 1 else Duration()
            if n == 1:
                return Duration.days(freq * 7)
        return Duration()

    # iCalendar conversion

    def to_ical(self) -> Dict[str, Any]:
        """Return the rule as a dict suitable for ``icalendar.prop.vRecur``."""
        rule: Dict[str, Any] = {"FREQ": FREQUENCY_NAMES[self.frequency]}
        if self.interval != 1:
            rule["INTERVAL"] = self.interval
        if self.count > 0:
            rule["COUNT"] = self.count
        elif self.until is not None:
            rule["UNTIL"] = self._wall(self.until).date() if self.date_only else to_utc(self.until)
        if self.by_weekday:
            rule["BYDAY"] = [f"{n}{DAY_NAMES[d]}" if n else DAY_NAMES[d] for d, n in self.by_weekday]
        if self.by_month_day:
            rule["BYMONTHDAY"] = list(self.by_month_day)
        if self.by_month:
            rule["BYMONTH"] = list(self.by_month)
        return rule

    @classmethod
    def from_ical(
        cls,
        rule: Union[vRecur, str],
        start: datetime,
        date_only: bool = False,
        exdates: Sequence[ExDate] = (),
    ) -> Optional["Recurrence"]:
        """Build a recurrence from an RRULE value.

        Returns:
            The recurrence, or None (with a warning logged) if the rule uses
            parts that alarms do not support or is malformed.
        """
        try:
            if isinstance(rule, str):
                rule = vRecur.from_ical(rule)
            parts = {key.upper(): value for key, value in rule.items()}

            unsupported = [part for part in UNSUPPORTED_PARTS if part in parts]
            if unsupported:
                raise RecurrenceError(f"Unsupported rule parts {unsupported}")

            freq_name = str(_first(parts.get("FREQ"), "")).upper()
            names = {name: value for value, name in FREQUENCY_NAMES.items()}
            names["HOURLY"] = HOURLY
            if freq_name not in names:
                raise RecurrenceError(f"Unsupported frequency {freq_name!r}")
            frequency = names[freq_name]

            by_weekday = tuple(_parse_byday(day) for day in _as_list(parts.get("BYDAY")))
            if frequency in (DAILY, WEEKLY) and any(n for _, n in by_weekday):
                raise RecurrenceError("Positional weekdays need a monthly or yearly frequency")

            until = _first(parts.get("UNTIL"))
            count = int(_first(parts.get("COUNT"), -1))
            return cls(
                start=start,
                frequency=frequency,
                interval=int(_first(parts.get("INTERVAL"), 1)),
                count=count,
                until=until,
                by_weekday=by_weekday,
                by_month_day=tuple(int(v) for v in _as_list(parts.get("BYMONTHDAY"))),
                by_month=tuple(int(v) for v in _as_list(parts.get("BYMONTH"))),
                exdates=tuple(exdates),
                date_only=date_only,
            )
        except (RecurrenceError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring recurrence rule {rule!r}: {e}")
            return None

    def __str__(self) -> str:
        return vRecur(self.to_ical()).to_ical().decode()


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _first(value: Any, default: Any = None) -> Any:
    values = _as_list(value)
    return values[0] if values else default


def _parse_byday(text: Any) -> Tuple[int, int]:
    """Parse a BYDAY entry such as ``MO``, ``2TU`` or ``-1FR``."""
    text = str(text).strip().upper()
    name = text[-2:]
    if name not in DAY_NAMES:
        raise ValueError(f"Invalid weekday {text!r}")
    position = text[:-2].lstrip("+")
    return DAY_NAMES.index(name), int(position) if position else 0
