"""Timezone handling for alarmcal."""

from .service import (
    UTC,
    AlarmDateTime,
    TimezoneError,
    add_elapsed,
    get_zone,
    normalize_datetime,
    normalize_tzinfo,
    set_local_zone,
    system_zone,
    to_frame,
    to_utc,
    wall_candidates,
)

__all__ = [
    "UTC",
    "AlarmDateTime",
    "TimezoneError",
    "add_elapsed",
    "get_zone",
    "normalize_datetime",
    "normalize_tzinfo",
    "set_local_zone",
    "system_zone",
    "to_frame",
    "to_utc",
    "wall_candidates",
]
