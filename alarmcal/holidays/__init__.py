"""Holiday region data and caching."""

from .cache import HolidayCache, HolidayType
from .sources import Holiday, HolidayEntry, HolidaySource, StaticHolidaySource, YamlHolidaySource

__all__ = [
    "Holiday",
    "HolidayCache",
    "HolidayEntry",
    "HolidaySource",
    "HolidayType",
    "StaticHolidaySource",
    "YamlHolidaySource",
]
