"""The alarm event model.

An AlarmEvent holds one alarm with all its sub-alarms: the main alarm, an
optional reminder before or after it, a deferral, a repeat-at-login alarm
and, for events in the displaying calendar, the alarm currently shown.
Occurrence arithmetic follows the recurrence and sub-repetition; date-only
alarms become due at the configured start-of-day time.
"""

import copy
import logging
import uuid
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, PrivateAttr

from ..ics import properties as p
from ..timezone import UTC, AlarmDateTime, to_frame, to_utc
from .context import ScheduleContext
from .models import (
    Action,
    Alarm,
    AlarmType,
    CommandAction,
    CommandError,
    Deferral,
    DeferLimit,
    DisplayingState,
    EmailAction,
    EventCategory,
    FileAction,
    MessageAction,
    OccurOption,
    Occurrence,
    OccurType,
    ReminderState,
    TriggerType,
)
from .recurrence import Recurrence, Repetition
from .triggers import TriggerCache, calculate_triggers

logger = logging.getLogger(__name__)

DateTimeLike = Union[AlarmDateTime, datetime]


def event_uid(uid: str, category: EventCategory) -> str:
    """Convert an event ID to show which calendar it belongs to.

    Archived IDs contain ``-exp-`` and displaying IDs ``-disp-`` in place of
    the last ``-`` of an active ID. Templates use the active form.
    """
    i = uid.find(p.ARCHIVED_UID)
    if i > 0:
        old, length = EventCategory.ARCHIVED, len(p.ARCHIVED_UID)
    else:
        i = uid.find(p.DISPLAYING_UID)
        if i > 0:
            old, length = EventCategory.DISPLAYING, len(p.DISPLAYING_UID)
        else:
            old, length = EventCategory.ACTIVE, 1
            i = uid.rfind("-")
            if i < 0:
                i, length = len(uid), 0

    if category == old or i <= 0:
        return uid
    if category == EventCategory.ARCHIVED:
        part = p.ARCHIVED_UID
    elif category == EventCategory.DISPLAYING:
        part = p.DISPLAYING_UID
    else:
        part = "-"
    return uid[:i] + part + uid[i + length :]


def _utc(value: DateTimeLike, start_of_day: time) -> datetime:
    if isinstance(value, AlarmDateTime):
        return value.instant(start_of_day)
    return to_utc(value)


class AlarmEvent(BaseModel):
    """An alarm with its recurrence, reminder, deferral and display state."""

    id: str = Field(default="", description="Unique ID; encodes the category")
    category: EventCategory = EventCategory.ACTIVE
    revision: int = Field(default=0, description="Incremented by each edit")
    template_name: str = Field(default="", description="Event name, used for templates")
    action: Action = Field(default_factory=MessageAction, discriminator="kind")

    start: InstanceOf[AlarmDateTime]
    created: Optional[InstanceOf[AlarmDateTime]] = None
    next_main: Optional[InstanceOf[AlarmDateTime]] = Field(
        default=None, description="Next main alarm occurrence; the start if unset"
    )
    main_expired: bool = False

    recurrence: Optional[InstanceOf[Recurrence]] = None
    repetition: InstanceOf[Repetition] = Field(default_factory=Repetition)
    next_repeat: int = Field(default=0, description="Next sub-repetition number, 0 for the recurrence")

    deferral: Optional[InstanceOf[Deferral]] = None
    defer_default_minutes: int = 0
    defer_default_date_only: bool = False

    reminder_minutes: int = Field(default=0, description="Positive = before the alarm, negative = after")
    reminder_once: bool = False
    reminder_state: ReminderState = ReminderState.NONE
    reminder_after_time: Optional[InstanceOf[AlarmDateTime]] = None

    pre_action: str = ""
    post_action: str = ""
    exec_pre_action_on_deferral: bool = False
    cancel_on_pre_action_error: bool = False
    dont_show_pre_action_error: bool = False

    displaying: Optional[InstanceOf[DisplayingState]] = None
    repeat_at_login: bool = False
    at_login_time: Optional[InstanceOf[AlarmDateTime]] = None
    archive_repeat_at_login: bool = False

    confirm_ack: bool = False
    auto_close: bool = False
    late_cancel: int = Field(default=0, description="Minutes after which a late alarm is cancelled")
    copy_to_organizer: bool = False
    exclude_holidays: bool = False
    work_time_only: bool = False
    enabled: bool = True
    read_only: bool = False
    archive: bool = Field(default=False, description="Archive the alarm when it expires")
    kmail_serial: int = -1
    template_after_time: int = -1
    extra_flags: List[str] = Field(default_factory=list, description="Unrecognised flag tokens")
    custom_properties: Dict[str, str] = Field(default_factory=dict)

    command_error: CommandError = Field(default=CommandError.NONE, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    _context: ScheduleContext = PrivateAttr(default_factory=ScheduleContext)
    _changes: int = PrivateAttr(default=0)
    _triggers: TriggerCache = PrivateAttr(default_factory=TriggerCache)

    def __init__(self, context: Optional[ScheduleContext] = None, **data: Any) -> None:
        super().__init__(**data)
        if context is not None:
            self._context = context

    def model_post_init(self, __context: Any) -> None:
        if self.next_main is None:
            self.next_main = self.start
        if self.repeat_at_login:
            self.late_cancel = 0
        if not self.late_cancel:
            self.auto_close = False

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in type(self).model_fields:
            self._changes += 1

    # Context

    @property
    def context(self) -> ScheduleContext:
        return self._context

    def set_context(self, context: ScheduleContext) -> None:
        self._context = context

    @property
    def change_count(self) -> int:
        """Counter bumped by every field assignment."""
        return self._changes

    def _sod(self) -> time:
        return self._context.start_of_day

    def _instant(self, value: DateTimeLike) -> datetime:
        return _utc(value, self._sod())

    # Basic properties

    @property
    def date_only(self) -> bool:
        return self.start.date_only

    @property
    def recurs(self) -> bool:
        return self.recurrence is not None

    @property
    def is_template(self) -> bool:
        return self.category == EventCategory.TEMPLATE

    @property
    def reminder_active(self) -> bool:
        return self.reminder_state == ReminderState.ACTIVE

    @property
    def reminder_deferral(self) -> bool:
        return self.deferral is not None and self.deferral.reminder

    @property
    def deferred(self) -> bool:
        return self.deferral is not None

    @property
    def alarm_count(self) -> int:
        """Number of pending sub-alarms."""
        count = 0 if self.main_expired else 1
        if self.reminder_minutes and self.reminder_state != ReminderState.NONE:
            count += 1
        if self.deferral is not None:
            count += 1
        if self.repeat_at_login:
            count += 1
        if self.displaying is not None:
            count += 1
        return count

    def is_valid(self) -> bool:
        count = self.alarm_count
        return count > 0 and not (count == 1 and self.repeat_at_login)

    def expired(self) -> bool:
        return (self.displaying is not None and self.main_expired) or self.category == EventCategory.ARCHIVED

    def clean_text(self) -> str:
        """The alarm's principal text: message, file, command, email body or sound file."""
        action = self.action
        if isinstance(action, MessageAction):
            return action.text
        if isinstance(action, FileAction):
            return action.path
        if isinstance(action, CommandAction):
            return action.command
        if isinstance(action, EmailAction):
            return action.body
        return action.sound.file

    def increment_revision(self) -> None:
        self.revision += 1

    def copy(self) -> "AlarmEvent":  # type: ignore[override]
        """Return an independent deep copy sharing the same schedule context."""
        return self.model_copy(deep=True)

    # Category and identity

    def set_category(self, category: EventCategory) -> None:
        """Move the event to another calendar, updating its ID to match."""
        if category == self.category:
            return
        self.id = event_uid(self.id, category)
        self.category = category

    # Simple option setters

    def set_late_cancel(self, minutes: int) -> None:
        if self.repeat_at_login:
            minutes = 0
        self.late_cancel = minutes
        if not minutes:
            self.auto_close = False

    def set_auto_close(self, auto_close: bool) -> None:
        self.auto_close = auto_close and self.late_cancel > 0

    def set_repeat_at_login(self, repeat: bool) -> None:
        """Set or clear repeat-at-login, clearing options incompatible with it."""
        if repeat and not self.repeat_at_login:
            self.clear_recurrence()
            if self.reminder_minutes >= 0:
                self.set_reminder(0)
            self.late_cancel = 0
            self.auto_close = False
            self.copy_to_organizer = False
        elif not repeat:
            self.at_login_time = None
        self.repeat_at_login = repeat

    def set_time(self, when: DateTimeLike) -> None:
        """Set the next main alarm time."""
        self.next_main = AlarmDateTime.coerce(when)

    def set_start(self, start: AlarmDateTime) -> None:
        """Set the start date/time, which is also the next main alarm time."""
        self.start = start
        self.next_main = start
        if self.recurrence is not None:
            self.recurrence = self.recurrence.with_start(start.value, start.date_only)

    # Recurrence and repetition

    def clear_recurrence(self) -> None:
        if self.recurrence is not None or self.repetition:
            self.recurrence = None
            self.repetition = Repetition()
        self.next_repeat = 0

    def set_recurrence(self, recurrence: Optional[Recurrence]) -> None:
        """Set the recurrence, anchored at the event start, and refit the sub-repetition."""
        if recurrence is None:
            self.clear_recurrence()
            return
        self.recurrence = recurrence.with_start(self.start.value, self.start.date_only)
        self.set_repetition(self.repetition)

    def set_repetition(self, repetition: Repetition) -> bool:
        """Set the sub-repetition, shortening it to fit within the recurrence interval.

        Returns:
            False if the repetition is not allowed: a non-daily repetition on
            a date-only alarm, or a repetition without a recurrence.
        """
        self.next_repeat = 0
        if repetition and not self.repeat_at_login:
            if self.recurrence is None:
                self.repetition = Repetition()
                return False
            if not repetition.is_daily and self.date_only:
                self.repetition = Repetition()
                return False
            longest = self.recurrence.longest_interval()
            if repetition.duration().as_seconds() >= longest.as_seconds():
                if self.date_only:
                    count = (longest.as_days() - 1) // repetition.interval_days
                else:
                    count = (longest.as_seconds() - 1) // repetition.interval_seconds
                logger.debug(f"Repetition count for {self.id} reduced from {repetition.count} to {count}")
                self.repetition = Repetition(repetition.interval, count)
            else:
                self.repetition = repetition
        elif self.repetition:
            self.repetition = Repetition()
        return True

    def main_date_time(self, with_repeats: bool = False) -> AlarmDateTime:
        """The next main alarm time, optionally including the pending sub-repetition."""
        assert self.next_main is not None
        if with_repeats and self.next_repeat > 0:
            return self.repetition.duration(self.next_repeat).end(self.next_main)
        return self.next_main

    def main_end_repeat_time(self) -> AlarmDateTime:
        assert self.next_main is not None
        if self.repetition:
            return self.repetition.duration().end(self.next_main)
        return self.next_main

    def _same_as_start(self, dt: datetime) -> bool:
        assert self.recurrence is not None
        start = self.recurrence.start
        if self.date_only:
            return to_frame(dt, start.tzinfo).date() == start.date()
        return to_utc(dt) == to_utc(start)

    def next_recurrence(self, pre: datetime) -> Occurrence:
        """Return the first recurrence after ``pre``, ignoring sub-repetitions."""
        if self.recurrence is None:
            return Occurrence.none()
        recurrence = self.recurrence
        frame_pre = to_frame(pre, self.start.tzinfo)
        if self.date_only and frame_pre.time() < self._sod():
            # Today's recurrence, if any, is still to come
            frame_pre = datetime.combine(frame_pre.date() - timedelta(days=1), self._sod(), tzinfo=frame_pre.tzinfo)
        dt = recurrence.next_after(frame_pre)
        if dt is None:
            return Occurrence.none()
        result = AlarmDateTime(dt, self.date_only)
        if self._same_as_start(dt):
            return Occurrence(OccurType.FIRST_OR_ONLY_OCCURRENCE, result)
        if not recurrence.is_infinite:
            end = recurrence.end_datetime()
            if end is not None and to_utc(end) == to_utc(dt):
                return Occurrence(OccurType.LAST_RECURRENCE, result)
        kind = OccurType.RECURRENCE_DATE if self.date_only else OccurType.RECURRENCE_DATE_TIME
        return Occurrence(kind, result)

    def _before_repetitions(self, when: datetime) -> datetime:
        """Move back by the whole sub-repetition duration."""
        result = self.repetition.duration(-self.repetition.count).end(when)
        assert isinstance(result, datetime)
        return result

    def next_occurrence(self, pre: datetime, option: OccurOption = OccurOption.IGNORE_REPETITION) -> Occurrence:
        """Return the next occurrence after ``pre``.

        With RETURN_REPETITION a sub-repetition may be returned; with
        ALLOW_FOR_REPETITION the recurrence whose repetitions extend past
        ``pre`` is returned.
        """
        search = pre
        if option != OccurOption.IGNORE_REPETITION:
            if not self.repetition:
                option = OccurOption.IGNORE_REPETITION
            else:
                search = self._before_repetitions(pre)

        pre_utc = to_utc(pre)
        if self.recurrence is not None:
            occurrence = self.next_recurrence(search)
        elif to_utc(search) < self._instant(self.main_date_time()):
            occurrence = Occurrence(OccurType.FIRST_OR_ONLY_OCCURRENCE, self.main_date_time())
        else:
            return Occurrence.none()

        kind, result = occurrence.type, occurrence.when
        if kind == OccurType.NO_OCCURRENCE or option == OccurOption.IGNORE_REPETITION:
            return occurrence
        assert result is not None
        if self._instant(result) > pre_utc:
            return occurrence

        # A recurrence before 'pre' has a sub-repetition after it
        repeat = self.repetition.next_repeat_count(AlarmDateTime(result.effective(self._sod())), AlarmDateTime(pre))
        repeat_time = self.repetition.duration(repeat).end(result)
        if self.recurrence is not None:
            # Intervals between recurrences may vary, so check for a later recurrence
            later = self.previous_occurrence(repeat_time.effective(self._sod()), False)
            if later.when is not None and self._instant(later.when) > self._instant(result):
                if option == OccurOption.RETURN_REPETITION and self._instant(later.when) <= pre_utc:
                    repeat = self.repetition.next_repeat_count(
                        AlarmDateTime(later.when.effective(self._sod())), AlarmDateTime(pre)
                    )
                    return Occurrence(later.type, self.repetition.duration(repeat).end(later.when), True)
                return Occurrence(later.type, later.when)
        if option == OccurOption.RETURN_REPETITION:
            return Occurrence(kind, repeat_time, True)
        return occurrence

    def previous_occurrence(self, after: datetime, include_repetitions: bool = False) -> Occurrence:
        """Return the last occurrence before ``after``."""
        after_utc = to_utc(after)
        if self._instant(self.start) >= after_utc:
            return Occurrence.none()

        if self.recurrence is None:
            kind, result = OccurType.FIRST_OR_ONLY_OCCURRENCE, self.start
        else:
            frame_after = to_frame(after, self.start.tzinfo)
            if self.date_only and frame_after.time() > self._sod():
                # Today's recurrence, if any, has passed
                frame_after += timedelta(days=1)
            dt = self.recurrence.previous_before(frame_after)
            if dt is None:
                return Occurrence.none()
            result = AlarmDateTime(dt, self.date_only)
            if self._same_as_start(dt):
                kind = OccurType.FIRST_OR_ONLY_OCCURRENCE
            elif self.recurrence.next_after(dt) is not None:
                kind = OccurType.RECURRENCE_DATE if self.date_only else OccurType.RECURRENCE_DATE_TIME
            else:
                kind = OccurType.LAST_RECURRENCE

        if include_repetitions and self.repetition:
            repeat = self.repetition.previous_repeat_count(
                AlarmDateTime(result.effective(self._sod())), AlarmDateTime(after)
            )
            if repeat > 0:
                repeat = min(repeat, self.repetition.count)
                return Occurrence(kind, self.repetition.duration(repeat).end(result), True)
        return Occurrence(kind, result)

    def occurs_after(self, pre: datetime, include_repetitions: bool = False) -> bool:
        """Return whether the event occurs after ``pre``."""
        if self.recurrence is not None:
            if self.recurrence.is_infinite:
                return True
            end = self.recurrence.end_datetime()
            if end is None:
                return False
        else:
            end = self.main_date_time().effective(self._sod())

        if self.date_only:
            frame_pre = to_frame(pre, self.start.tzinfo)
            day = frame_pre.date()
            if frame_pre.time() < self._sod():
                # Today's occurrence is still to come
                day -= timedelta(days=1)
            if day < to_frame(end, self.start.tzinfo).date():
                return True
        elif to_utc(pre) < to_utc(end):
            return True

        if include_repetitions and self.repetition:
            last = self.repetition.duration().end(end)
            assert isinstance(last, datetime)
            if to_utc(pre) < to_utc(last):
                return True
        return False

    def set_next_occurrence(self, pre: datetime) -> OccurType:
        """Advance the next main alarm to the first occurrence after ``pre``.

        A sub-repetition falling after ``pre`` counts as the next occurrence,
        recorded in ``next_repeat``. Reminders are reinstated for a new
        recurrence.
        """
        pre_utc = to_utc(pre)
        if pre_utc < self._instant(self.main_date_time()):
            return OccurType.FIRST_OR_ONLY_OCCURRENCE

        search = self._before_repetitions(pre) if self.repetition else pre
        if to_utc(search) < self._instant(self.main_date_time()):
            after_pre = self.main_date_time()
            kind = OccurType.FIRST_OR_ONLY_OCCURRENCE
        elif self.recurrence is not None:
            occurrence = self.next_recurrence(search)
            if occurrence.type == OccurType.NO_OCCURRENCE:
                return OccurType.NO_OCCURRENCE
            assert occurrence.when is not None
            kind, after_pre = occurrence.type, occurrence.when
            if kind != OccurType.FIRST_OR_ONLY_OCCURRENCE and after_pre != self.next_main:
                self.next_main = after_pre
                if self.reminder_minutes > 0 and (self.reminder_deferral or not self.reminder_active):
                    # Reinstate the advance reminder for the new recurrence
                    self._activate_reminder(not self.reminder_once)
                if self.reminder_deferral:
                    self.deferral = None
        else:
            return OccurType.NO_OCCURRENCE

        if self.repetition:
            if self._instant(after_pre) <= pre_utc:
                # The next occurrence is a sub-repetition, which has no reminder
                self.next_repeat = self.repetition.next_repeat_count(
                    AlarmDateTime(after_pre.effective(self._sod())), AlarmDateTime(pre)
                )
                self._activate_reminder(False)
                if self.reminder_deferral:
                    self.deferral = None
            elif self.next_repeat:
                self.next_repeat = 0
        return kind

    # Reminders

    def _activate_reminder(self, activate: bool) -> None:
        if activate and self.reminder_state != ReminderState.ACTIVE and self.reminder_minutes:
            self.reminder_state = ReminderState.ACTIVE
        elif not activate and self.reminder_state != ReminderState.NONE:
            self.reminder_state = ReminderState.NONE
            self.reminder_after_time = None

    def set_reminder(self, minutes: int, once: bool = False) -> None:
        """Set a reminder: positive minutes before the main alarm, negative after."""
        if minutes > 0 and self.repeat_at_login:
            minutes = 0
        if minutes != self.reminder_minutes or (minutes and not self.reminder_active):
            self.reminder_minutes = minutes
            self.reminder_state = ReminderState.ACTIVE if minutes else ReminderState.NONE
            self.reminder_once = once
            self.reminder_after_time = None

    def activate_reminder_after(self, main_time: AlarmDateTime) -> None:
        """Activate the reminder which follows the main alarm at ``main_time``.

        Nothing happens unless ``main_time`` is an actual occurrence, or if the
        reminder would fall after the next occurrence.
        """
        if self.reminder_minutes >= 0 or self.reminder_active:
            return
        if self.recurrence is not None:
            occurrence = self.next_recurrence(main_time.add_secs(-60).effective(self._sod()))
            if occurrence.when is None or occurrence.when != main_time:
                return
        elif not self.repeat_at_login and main_time != self.start:
            return

        reminder_time = main_time.add_mins(-self.reminder_minutes)
        following = self.next_occurrence(main_time.effective(self._sod()), OccurOption.RETURN_REPETITION)
        if following.when is not None and self._instant(reminder_time) >= self._instant(following.when):
            return
        logger.debug(f"Setting reminder for {self.id} at {reminder_time}")
        self._activate_reminder(True)
        self.reminder_after_time = reminder_time

    # Deferral

    def defer(
        self,
        when: DateTimeLike,
        reminder: bool = False,
        adjust_recurrence: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        """Defer the alarm, or its reminder, to ``when``.

        Deferring a non-recurring main alarm marks it expired. With
        ``adjust_recurrence`` a recurring alarm whose current occurrence has
        fully passed moves on to its next occurrence after ``now``.
        """
        when = AlarmDateTime.coerce(when)
        set_next_repetition = False
        check_repetition = False
        check_reminder_after = False

        if self.recurrence is None:
            if self.reminder_minutes:
                defer_reminder = False
                if self.reminder_minutes > 0:
                    if self._instant(when) < self._instant(self.main_date_time()):
                        defer_reminder = True
                    elif self.reminder_active or self.reminder_deferral:
                        # Deferring past the main alarm time
                        self.deferral = None
                elif reminder:
                    defer_reminder = True
                if defer_reminder:
                    self.deferral = Deferral(when, reminder=True)
                if self.reminder_active:
                    self._activate_reminder(False)
            if not self.reminder_deferral:
                # Deferring the main alarm, which has now expired
                self.next_main = when
                self.deferral = Deferral(when)
                check_reminder_after = True
                if not self.main_expired:
                    self.main_expired = True
                    if self.repeat_at_login:
                        # Keep a note of it for archiving
                        self.archive_repeat_at_login = True
                        self.repeat_at_login = False
        elif reminder:
            if self._instant(when) >= self._instant(self.main_date_time()):
                # Can't defer a reminder past the next main alarm
                self.deferral = None
            else:
                self.deferral = Deferral(when, reminder=True)
                check_repetition = True
        else:
            self.deferral = Deferral(when, reminder=self.reminder_deferral)
            check_reminder_after = True
            if adjust_recurrence:
                now_utc = to_utc(now) if now is not None else datetime.now(UTC)
                if self._instant(self.main_end_repeat_time()) < now_utc:
                    # The current recurrence and its repetitions have passed
                    if not self.main_expired and self.set_next_occurrence(now_utc) == OccurType.NO_OCCURRENCE:
                        self.main_expired = True
                else:
                    set_next_repetition = bool(self.repetition)
            else:
                check_repetition = True

        if check_reminder_after and self.reminder_minutes < 0 and self.reminder_state != ReminderState.NONE:
            # A reminder after the main alarm is hidden while deferred past it
            if self.deferral is not None and self.reminder_after_time is not None:
                before = self._instant(self.deferral.time) < self._instant(self.reminder_after_time)
                self.reminder_state = ReminderState.ACTIVE if before else ReminderState.HIDDEN
        if check_repetition:
            set_next_repetition = bool(self.repetition) and (
                self.deferral is not None
                and self._instant(self.deferral.time) < self._instant(self.main_end_repeat_time())
            )
        if set_next_repetition and self.deferral is not None:
            if self._instant(self.main_date_time()) >= self._instant(self.deferral.time):
                self.next_repeat = 0
            else:
                self.next_repeat = self.repetition.next_repeat_count(self.main_date_time(), self.deferral.time)

    def cancel_defer(self) -> None:
        if self.deferral is not None:
            self.deferral = None

    def set_defer_default(self, minutes: int, date_only: bool = False) -> None:
        self.defer_default_minutes = minutes
        self.defer_default_date_only = date_only

    def deferral_limit(self, now: Optional[datetime] = None) -> Tuple[Optional[AlarmDateTime], DeferLimit]:
        """Return the latest time the alarm may be deferred to, and what limits it."""
        now_utc = to_utc(now) if now is not None else datetime.now(UTC)
        limit = DeferLimit.LIMIT_NONE
        end: Optional[AlarmDateTime] = None

        if self.recurrence is not None:
            occurrence = self.next_occurrence(now_utc, OccurOption.RETURN_REPETITION)
            end = occurrence.when
            if occurrence.type == OccurType.NO_OCCURRENCE:
                limit = DeferLimit.LIMIT_NONE
            elif occurrence.repetition:
                limit = DeferLimit.LIMIT_REPETITION
            else:
                assert end is not None
                reminder_time = end.add_mins(-self.reminder_minutes)
                if self.reminder_active and self.reminder_minutes > 0 and now_utc < self._instant(reminder_time):
                    end = reminder_time
                    limit = DeferLimit.LIMIT_REMINDER
                else:
                    limit = DeferLimit.LIMIT_RECURRENCE
        elif self.reminder_minutes and now_utc < self._instant(self.main_date_time()):
            # A reminder may not be deferred past its main alarm
            end = self.main_date_time()
            limit = DeferLimit.LIMIT_MAIN

        if limit != DeferLimit.LIMIT_NONE and end is not None:
            end = end.add_mins(-1)
        else:
            end = None

        max_minutes = self._context.max_defer_minutes
        if max_minutes is not None:
            cap = AlarmDateTime(now_utc + timedelta(minutes=max_minutes))
            if end is None or cap.instant() < self._instant(end):
                end = cap
        return end, limit

    # Sub-alarms

    def alarm(self, alarm_type: AlarmType) -> Optional[Alarm]:
        """Return the pending sub-alarm of a given type, or None."""
        if not self.alarm_count:
            return None
        if alarm_type == AlarmType.MAIN:
            if not self.main_expired:
                return Alarm(AlarmType.MAIN, self.main_date_time())
        elif alarm_type == AlarmType.REMINDER:
            if self.reminder_active:
                if self.reminder_minutes < 0:
                    if self.reminder_after_time is not None:
                        return Alarm(AlarmType.REMINDER, self.reminder_after_time)
                elif self.reminder_once:
                    return Alarm(AlarmType.REMINDER, self.start.add_mins(-self.reminder_minutes))
                else:
                    return Alarm(AlarmType.REMINDER, self.main_date_time().add_mins(-self.reminder_minutes))
        elif alarm_type in (AlarmType.DEFERRED, AlarmType.DEFERRED_REMINDER):
            if self.deferral is not None and (alarm_type == AlarmType.DEFERRED or self.deferral.reminder):
                kind = AlarmType.DEFERRED_REMINDER if self.deferral.reminder else AlarmType.DEFERRED
                return Alarm(kind, self.deferral.time)
        elif alarm_type == AlarmType.AT_LOGIN:
            if self.repeat_at_login:
                return Alarm(AlarmType.AT_LOGIN, self.at_login_time or self.start)
        elif alarm_type == AlarmType.DISPLAYING:
            if self.displaying is not None:
                return Alarm(AlarmType.DISPLAYING, self.displaying.time)
        return None

    def alarms(self) -> List[Alarm]:
        """Return all pending sub-alarms, main alarm first."""
        found = []
        for alarm_type in (AlarmType.MAIN, AlarmType.REMINDER, AlarmType.DEFERRED, AlarmType.AT_LOGIN, AlarmType.DISPLAYING):
            alarm = self.alarm(alarm_type)
            if alarm is not None:
                found.append(alarm)
        return found

    # Displaying calendar

    def set_displaying(
        self,
        event: "AlarmEvent",
        alarm_type: AlarmType,
        resource_id: int,
        login_time: Optional[DateTimeLike] = None,
        show_edit: bool = False,
        show_defer: bool = False,
    ) -> bool:
        """Make this event a copy of ``event`` showing one of its alarms.

        Returns:
            False if this event is already displaying or ``event`` has no
            such alarm.
        """
        if self.displaying is not None or alarm_type == AlarmType.DISPLAYING:
            return False
        alarm = event.alarm(alarm_type)
        if alarm is None:
            return False

        for name in type(event).model_fields:
            setattr(self, name, copy.deepcopy(getattr(event, name)))
        self._context = event.context
        self.set_category(EventCategory.DISPLAYING)

        shown_at = alarm.time
        if alarm_type == AlarmType.AT_LOGIN and login_time is not None:
            shown_at = AlarmDateTime.coerce(login_time)
        self.displaying = DisplayingState(
            time=shown_at,
            at_login=alarm.type == AlarmType.AT_LOGIN,
            reminder=alarm.type in (AlarmType.REMINDER, AlarmType.DEFERRED_REMINDER),
            deferral=alarm.type in (AlarmType.DEFERRED, AlarmType.DEFERRED_REMINDER),
            timed_deferral=alarm.type in (AlarmType.DEFERRED, AlarmType.DEFERRED_REMINDER)
            and not alarm.time.date_only,
            resource_id=resource_id,
            show_edit=show_edit,
            show_defer=show_defer,
        )
        return True

    def reinstate(self) -> Tuple[int, bool, bool]:
        """Turn a displaying event back into the active event it came from.

        Returns:
            The original resource ID, and whether Edit and Defer buttons were shown.
        """
        if self.displaying is None:
            return -1, False, False
        state = self.displaying
        self.set_category(EventCategory.ACTIVE)
        self.displaying = None
        return state.resource_id, state.show_edit, state.show_defer

    # Trigger times

    def is_working_time(self, when: AlarmDateTime) -> bool:
        """Return whether a time satisfies the work-time and holiday options."""
        context = self._context
        day = when.value.date()
        if self.work_time_only and day.weekday() not in context.work_days:
            return False
        if self.exclude_holidays and context.holidays.is_holiday(day):
            return False
        if not self.work_time_only:
            return True
        return when.date_only or context.work_start <= when.value.time() < context.work_end

    def next_trigger(self, trigger_type: TriggerType) -> Optional[AlarmDateTime]:
        """Return the next trigger time of a given kind, or None."""
        context = self._context
        key = (self._changes, context.holidays.region_code, id(context.holidays), context.work_config_key)
        triggers = self._triggers.get(key)
        if triggers is None:
            triggers = calculate_triggers(self)
            self._triggers.store(key, triggers)

        if trigger_type != TriggerType.DISPLAY:
            return triggers[trigger_type]
        reminder_after = self.main_expired and self.reminder_state != ReminderState.NONE and self.reminder_minutes < 0
        if self.recurrence is not None and (self.work_time_only or self.exclude_holidays):
            return triggers[TriggerType.ALL_WORK if reminder_after else TriggerType.WORK]
        return triggers[TriggerType.ALL if reminder_after else TriggerType.MAIN]


def new_event_id(prefix: str = "KAlarm") -> str:
    """Generate a unique ID for an active event."""
    return f"{prefix}-{uuid.uuid4()}"
