"""alarmcal - alarm events and their iCalendar encoding.

Models scheduled reminder alarms (message, file, command, email and audio)
with recurrence, sub-repetition, reminders and deferrals, and converts them
to and from calendar events carrying X-KDE-KALARM properties.
"""

__version__ = "1.0.0"
__author__ = "alarmcal developers"
__description__ = "Alarm event model and iCalendar codec"

from .events import AlarmEvent, ScheduleContext, compare
from .ics.serializer import AlarmSerializer

__all__ = [
    "AlarmEvent",
    "AlarmSerializer",
    "ScheduleContext",
    "__author__",
    "__description__",
    "__version__",
    "compare",
]
