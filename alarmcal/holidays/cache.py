"""Cached holiday lookups for a region."""

import logging
from datetime import date, timedelta
from enum import Enum
from typing import Callable, List, Optional

from .sources import HolidaySource

logger = logging.getLogger(__name__)

INITIAL_CACHE_DAYS = 366
DEFAULT_CACHE_YEARS = 1


class HolidayType(str, Enum):
    """Kind of holiday falling on a date."""

    NONE = "none"
    WORKING = "working"
    NON_WORKING = "non_working"


class HolidayCache:
    """Holiday data for a region, cached per day over a bounded horizon.

    The cache starts yesterday, to allow for the alarm time zone differing
    from the system one, and initially covers a year. Lookups past the end
    extend it to the end of the requested year, but never beyond the end of
    the year ``cache_years`` after the current one; later dates are looked
    up in the source directly. Dates before the start are not holidays.
    """

    def __init__(
        self,
        source: Optional[HolidaySource] = None,
        region: Optional[str] = None,
        cache_years: int = DEFAULT_CACHE_YEARS,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        """Initialize the cache.

        Args:
            source: Holiday data provider, None for no holidays
            region: Region code; defaults to the source's region code
            cache_years: Years after the current one to hold in the cache
            today: Callable returning today's date, for testing
        """
        self._today = today or date.today
        self.cache_years = cache_years
        self._source: Optional[HolidaySource] = None
        self._region = ""
        self._types: List[HolidayType] = []
        self._names: List[List[str]] = []
        self._start = self._today() - timedelta(days=1)
        self._no_cache = self._start
        self._initialise(source, region)

    @property
    def region_code(self) -> str:
        return self._region

    def is_valid(self) -> bool:
        return self._source is not None and self._source.is_valid()

    def set_region(self, source: Optional[HolidaySource], region: Optional[str] = None) -> None:
        """Switch to a new holiday region, discarding cached data if it changes."""
        new_region = region if region is not None else (source.region_code if source else "")
        if new_region == self._region and source is self._source:
            return
        logger.debug(f"Holiday region changed from {self._region!r} to {new_region!r}")
        self._initialise(source, region)

    def _initialise(self, source: Optional[HolidaySource], region: Optional[str]) -> None:
        self._source = source
        self._region = region if region is not None else (source.region_code if source else "")
        self._types = []
        self._names = []
        self._start = self._today() - timedelta(days=1)
        self._no_cache = self._start
        if self.is_valid():
            self._extend(self._start + timedelta(days=INITIAL_CACHE_DAYS - 1))

    def _extend(self, end: date) -> None:
        """Cache holiday data up to ``end``, capped at the cache horizon."""
        limit = date(self._today().year + self.cache_years, 12, 31)
        end = min(end, limit)
        if end < self._no_cache or self._source is None:
            return

        count = (end - self._start).days + 1
        self._types.extend([HolidayType.NONE] * (count - len(self._types)))
        self._names.extend([] for _ in range(count - len(self._names)))
        for holiday in self._source.holidays_between(self._no_cache, end):
            first = max((holiday.start - self._start).days, (self._no_cache - self._start).days)
            last = min((holiday.end - self._start).days, count - 1)
            for offset in range(first, last + 1):
                if holiday.non_working:
                    self._types[offset] = HolidayType.NON_WORKING
                elif self._types[offset] != HolidayType.NON_WORKING:
                    self._types[offset] = HolidayType.WORKING
                self._names[offset].append(holiday.name)
        self._no_cache = end + timedelta(days=1)

    def _in_cache(self, d: date) -> bool:
        if d < self._no_cache:
            return True
        self._extend(date(d.year, 12, 31))
        return d < self._no_cache

    def holiday_type(self, d: date) -> HolidayType:
        """Return the type of holiday on a date."""
        if d < self._today() - timedelta(days=1) or not self.is_valid():
            return HolidayType.NONE
        if self._in_cache(d):
            return self._types[(d - self._start).days]

        assert self._source is not None
        holidays = self._source.holidays_between(d, d)
        if any(h.non_working for h in holidays):
            return HolidayType.NON_WORKING
        return HolidayType.WORKING if holidays else HolidayType.NONE

    def is_holiday(self, d: date) -> bool:
        """Return whether a date is a non-working holiday."""
        return self.holiday_type(d) == HolidayType.NON_WORKING

    def names(self, d: date) -> List[str]:
        """Return the names of the holidays on a date."""
        if d < self._today() - timedelta(days=1) or not self.is_valid():
            return []
        if self._in_cache(d):
            return list(self._names[(d - self._start).days])

        assert self._source is not None
        return [h.name for h in self._source.holidays_between(d, d)]

    @property
    def cache_end(self) -> date:
        """First date not held in the cache."""
        return self._no_cache
