"""Configuration for alarmcal."""

from .settings import (
    AlarmCalSettings,
    HolidaySettings,
    LoggingSettings,
    WorkTimeSettings,
    get_settings,
    reset_settings,
)

__all__ = [
    "AlarmCalSettings",
    "HolidaySettings",
    "LoggingSettings",
    "WorkTimeSettings",
    "get_settings",
    "reset_settings",
]
