"""iCalendar encoding of alarm events.

The serializer lives in ``alarmcal.ics.serializer``; it depends on the event
model, which itself uses the property names defined here.
"""

from .flags import EventFlags, FlagDecodeResult, decode_event_flags, encode_alarm_flags, encode_event_flags
from .models import CalendarDecodeResult, DecodeErrorKind, DecodeResult, ReinstateResult

__all__ = [
    "CalendarDecodeResult",
    "DecodeErrorKind",
    "DecodeResult",
    "EventFlags",
    "FlagDecodeResult",
    "ReinstateResult",
    "decode_event_flags",
    "encode_alarm_flags",
    "encode_event_flags",
]
