"""Scheduling context shared by alarm events."""

import logging
from dataclasses import dataclass, field
from datetime import time
from typing import FrozenSet, Optional, Tuple

from ..config.settings import AlarmCalSettings
from ..holidays import HolidayCache, YamlHolidaySource
from ..timezone import set_local_zone

logger = logging.getLogger(__name__)

DEFAULT_WORK_SEARCH_LIMIT = 2000


@dataclass
class ScheduleContext:
    """Configuration which affects when alarms trigger.

    Passed explicitly to the event model and serializer instead of being
    read from global state. The holiday cache is the only mutable part.
    """

    start_of_day: time = time(0, 0)
    work_days: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})
    work_start: time = time(9, 0)
    work_end: time = time(17, 0)
    holidays: HolidayCache = field(default_factory=HolidayCache)
    max_defer_minutes: Optional[int] = None
    work_search_limit: int = DEFAULT_WORK_SEARCH_LIMIT
    text_locale: str = "en"

    @classmethod
    def from_settings(cls, settings: AlarmCalSettings) -> "ScheduleContext":
        """Build a context from application settings, loading holiday data if configured.

        The configured timezone, if any, is applied process wide as the zone
        for floating times.

        Raises:
            TimezoneError: If the configured timezone is unknown.
        """
        set_local_zone(settings.timezone)
        holiday_settings = settings.holidays
        source = None
        if holiday_settings.region and holiday_settings.data_file:
            source = YamlHolidaySource(holiday_settings.data_file, holiday_settings.region)
        elif holiday_settings.region:
            logger.warning(f"Holiday region {holiday_settings.region!r} set without a data file")

        return cls(
            start_of_day=settings.start_of_day,
            work_days=frozenset(settings.work_time.work_days),
            work_start=settings.work_time.start,
            work_end=settings.work_time.end,
            holidays=HolidayCache(source, cache_years=holiday_settings.cache_years),
            max_defer_minutes=settings.max_defer_minutes,
            work_search_limit=settings.work_time_search_limit,
            text_locale=settings.text_locale,
        )

    @property
    def work_config_key(self) -> Tuple[FrozenSet[int], time, time, time]:
        """Hashable summary of the settings which affect working-time triggers."""
        return (self.work_days, self.work_start, self.work_end, self.start_of_day)

    def __deepcopy__(self, memo: dict) -> "ScheduleContext":
        # Shared by every event using it
        return self
