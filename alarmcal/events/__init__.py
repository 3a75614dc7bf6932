"""Alarm event model, recurrence arithmetic and event comparison."""

from .context import ScheduleContext
from .differ import DEFAULT_LABELS, Difference, EventFormatter, compare
from .event import AlarmEvent, event_uid, new_event_id
from .models import (
    Action,
    Alarm,
    AlarmType,
    AudioAction,
    CommandAction,
    CommandError,
    Deferral,
    DeferLimit,
    DisplayFormat,
    DisplayingState,
    EmailAction,
    EventCategory,
    FileAction,
    MessageAction,
    OccurOption,
    Occurrence,
    OccurType,
    ReminderState,
    SoundSettings,
    TriggerType,
)
from .recurrence import Duration, Recurrence, RecurType, Repetition
from .triggers import TriggerCache, calculate_triggers

__all__ = [
    "DEFAULT_LABELS",
    "Action",
    "Alarm",
    "AlarmEvent",
    "AlarmType",
    "AudioAction",
    "CommandAction",
    "CommandError",
    "DeferLimit",
    "Deferral",
    "Difference",
    "DisplayFormat",
    "DisplayingState",
    "Duration",
    "EmailAction",
    "EventCategory",
    "EventFormatter",
    "FileAction",
    "MessageAction",
    "OccurOption",
    "OccurType",
    "Occurrence",
    "RecurType",
    "Recurrence",
    "ReminderState",
    "Repetition",
    "ScheduleContext",
    "SoundSettings",
    "TriggerCache",
    "TriggerType",
    "calculate_triggers",
    "compare",
    "event_uid",
    "new_event_id",
]
