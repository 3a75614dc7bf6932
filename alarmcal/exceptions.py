"""Exceptions raised by alarmcal APIs."""

from typing import Optional

from .timezone import TimezoneError


class AlarmCalError(Exception):
    """Base exception for alarmcal errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CalendarDecodeError(AlarmCalError):
    """Exception raised when calendar data cannot be decoded into an alarm."""

    def __init__(self, message: str, error_kind: Optional[str] = None):
        super().__init__(message)
        self.error_kind = error_kind


class CalendarEncodeError(AlarmCalError):
    """Exception raised when calendar text cannot be written."""


class RecurrenceError(AlarmCalError):
    """Exception raised for recurrence rules which cannot be represented."""


class HolidayRegionError(AlarmCalError):
    """Exception raised when holiday region data cannot be loaded."""


__all__ = [
    "AlarmCalError",
    "CalendarDecodeError",
    "CalendarEncodeError",
    "HolidayRegionError",
    "RecurrenceError",
    "TimezoneError",
]
