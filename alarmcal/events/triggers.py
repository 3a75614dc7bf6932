"""Trigger time calculation for alarm events.

Trigger times depend on the event, the holiday region and the working
hours, so results are cached against a key built from all three.
"""

import logging
from datetime import time
from typing import TYPE_CHECKING, Dict, Hashable, Optional

from ..timezone import AlarmDateTime
from .models import EventCategory, OccurOption, OccurType, TriggerType

if TYPE_CHECKING:
    from .event import AlarmEvent

logger = logging.getLogger(__name__)

Triggers = Dict[TriggerType, Optional[AlarmDateTime]]

HOLIDAY_SEARCH_LIMIT = 20
END_OF_DAY = time(23, 59, 59)


class TriggerCache:
    """Holds the last calculated trigger times and the key they were calculated for."""

    def __init__(self) -> None:
        self._key: Optional[Hashable] = None
        self._triggers: Optional[Triggers] = None

    def get(self, key: Hashable) -> Optional[Triggers]:
        if self._triggers is not None and key == self._key:
            return self._triggers
        return None

    def store(self, key: Hashable, triggers: Triggers) -> None:
        self._key = key
        self._triggers = triggers

    def clear(self) -> None:
        self._key = None
        self._triggers = None


def _empty() -> Triggers:
    return {kind: None for kind in (TriggerType.MAIN, TriggerType.ALL, TriggerType.WORK, TriggerType.ALL_WORK)}


def _earliest(*times: Optional[AlarmDateTime], start_of_day: time) -> Optional[AlarmDateTime]:
    found = [t for t in times if t is not None]
    if not found:
        return None
    return min(found, key=lambda t: t.instant(start_of_day))


def calculate_triggers(event: "AlarmEvent") -> Triggers:
    """Calculate the MAIN, ALL, WORK and ALL_WORK trigger times of an event.

    MAIN is the next main alarm (or normal deferral); ALL also allows for
    reminders and reminder deferrals. The WORK variants apply the event's
    work-time and holiday restrictions.
    """
    triggers = _empty()
    if event.category in (EventCategory.ARCHIVED, EventCategory.TEMPLATE):
        return triggers

    context = event.context
    sod = context.start_of_day
    deferral = event.deferral
    if deferral is not None and not deferral.reminder:
        # A normal deferral replaces the main alarm
        for kind in triggers:
            triggers[kind] = deferral.time
        return triggers

    main = event.main_date_time(True)
    reminder_deferral = deferral.time if deferral is not None else None
    reminder_time: Optional[AlarmDateTime] = None
    if event.reminder_active:
        if event.reminder_minutes < 0:
            reminder_time = event.reminder_after_time
        else:
            reminder_time = main.add_mins(-event.reminder_minutes)
    triggers[TriggerType.MAIN] = main
    triggers[TriggerType.ALL] = _earliest(reminder_deferral, main, reminder_time, start_of_day=sod)

    work = _work_trigger(event, main)
    triggers[TriggerType.WORK] = work
    if work is None:
        triggers[TriggerType.ALL_WORK] = None
    elif event.repetition:
        triggers[TriggerType.ALL_WORK] = work
    else:
        triggers[TriggerType.ALL_WORK] = work.add_mins(-max(event.reminder_minutes, 0))
    return triggers


def _work_trigger(event: "AlarmEvent", main: AlarmDateTime) -> Optional[AlarmDateTime]:
    """Find the first main occurrence which satisfies the working time restrictions."""
    restricted = event.work_time_only or event.exclude_holidays
    if not restricted or not event.recurs or event.is_working_time(main):
        return main

    context = event.context
    sod = context.start_of_day
    if event.work_time_only:
        # Working days and hours can combine with the recurrence in any way,
        # so step through occurrences up to a fixed limit.
        current = main
        for _ in range(context.work_search_limit):
            occurrence = event.next_occurrence(current.effective(sod), OccurOption.RETURN_REPETITION)
            if occurrence.type == OccurType.NO_OCCURRENCE or occurrence.when is None:
                return None
            current = occurrence.when
            if event.is_working_time(current):
                return current
        logger.warning(f"No working time trigger found for {event.id} within {context.work_search_limit} occurrences")
        return None

    # Holidays only: skip to the end of each holiday until a working day is found
    current = main
    for _ in range(HOLIDAY_SEARCH_LIMIT):
        pre = current.effective(sod).replace(hour=END_OF_DAY.hour, minute=END_OF_DAY.minute, second=END_OF_DAY.second)
        occurrence = event.next_occurrence(pre, OccurOption.RETURN_REPETITION)
        if occurrence.type == OccurType.NO_OCCURRENCE or occurrence.when is None:
            return None
        current = occurrence.when
        if not context.holidays.is_holiday(current.value.date()):
            return current
    logger.debug(f"No non-holiday trigger found for {event.id} within {HOLIDAY_SEARCH_LIMIT} tries")
    return None

