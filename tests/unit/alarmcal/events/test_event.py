"""Unit tests for the alarm event model."""

from datetime import date, datetime, time, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import pytest

from alarmcal.events import (
    AlarmEvent,
    AlarmType,
    AudioAction,
    CommandAction,
    DeferLimit,
    Duration,
    EventCategory,
    MessageAction,
    OccurOption,
    OccurType,
    Recurrence,
    ReminderState,
    Repetition,
    ScheduleContext,
    SoundSettings,
    compare,
    event_uid,
    new_event_id,
)
from alarmcal.timezone import AlarmDateTime, to_utc

LONDON = ZoneInfo("Europe/London")

EventFactory = Callable[..., AlarmEvent]


def london(day: int, hour: int, minute: int = 0) -> datetime:
    """A March 2030 time in London, which is on GMT until the 31st."""
    return datetime(2030, 3, day, hour, minute, tzinfo=LONDON)


@pytest.fixture
def daily(event: AlarmEvent) -> AlarmEvent:
    """A message alarm recurring daily at 09:30 from 1 March."""
    event.set_recurrence(Recurrence.daily(event.start.value))
    return event


class TestConstruction:
    """Test rules applied when an event is created."""

    def test_next_main_defaults_to_start(self, event: AlarmEvent) -> None:
        """Test the next main alarm starts at the start time."""
        assert event.next_main == event.start
        assert event.main_date_time() == event.start

    def test_repeat_at_login_cancels_late_cancel(self, make_event: EventFactory) -> None:
        """Test repeat-at-login alarms are never cancelled when late."""
        event = make_event(repeat_at_login=True, late_cancel=5, auto_close=True)
        assert event.late_cancel == 0
        assert event.auto_close is False

    def test_auto_close_needs_late_cancel(self, make_event: EventFactory) -> None:
        """Test auto close is cleared without a late-cancel period."""
        assert make_event(auto_close=True).auto_close is False
        assert make_event(auto_close=True, late_cancel=3).auto_close is True

    def test_set_late_cancel_zero_clears_auto_close(self, event: AlarmEvent) -> None:
        """Test clearing late cancel also clears auto close."""
        event.set_late_cancel(5)
        event.set_auto_close(True)
        event.set_late_cancel(0)
        assert event.auto_close is False


class TestRepeatAtLogin:
    """Test the repeat-at-login option."""

    def test_clears_incompatible_options(self, daily: AlarmEvent) -> None:
        """Test recurrence, advance reminder, late cancel and copy to organizer are cleared."""
        daily.set_reminder(10)
        daily.set_late_cancel(5)
        daily.copy_to_organizer = True

        daily.set_repeat_at_login(True)

        assert daily.repeat_at_login is True
        assert daily.recurrence is None
        assert daily.reminder_minutes == 0
        assert daily.reminder_state == ReminderState.NONE
        assert daily.late_cancel == 0
        assert daily.copy_to_organizer is False

    def test_keeps_reminder_after(self, event: AlarmEvent) -> None:
        """Test a reminder after the alarm survives repeat-at-login."""
        event.set_reminder(-5)
        event.set_repeat_at_login(True)
        assert event.reminder_minutes == -5

    def test_advance_reminder_refused(self, event: AlarmEvent) -> None:
        """Test an advance reminder cannot be set on a repeat-at-login alarm."""
        event.set_repeat_at_login(True)
        event.set_reminder(30)
        assert event.reminder_minutes == 0

    def test_clearing_forgets_login_time(self, event: AlarmEvent) -> None:
        """Test clearing repeat-at-login removes the login time."""
        event.set_repeat_at_login(True)
        event.at_login_time = event.start.add_days(-1)
        event.set_repeat_at_login(False)
        assert event.at_login_time is None
        assert event.alarm(AlarmType.AT_LOGIN) is None


class TestValidity:
    """Test alarm counting and validity."""

    def test_simple_event(self, event: AlarmEvent) -> None:
        """Test a pending main alarm makes a valid event."""
        assert event.alarm_count == 1
        assert event.is_valid()
        assert not event.expired()

    def test_login_alarm_alone_is_invalid(self, event: AlarmEvent) -> None:
        """Test an event holding only its at-login alarm is not valid."""
        event.set_repeat_at_login(True)
        assert event.alarm_count == 2
        assert event.is_valid()

        event.main_expired = True
        assert event.alarm_count == 1
        assert not event.is_valid()

    def test_archived_is_expired(self, make_event: EventFactory) -> None:
        """Test archived events count as expired."""
        assert make_event(category=EventCategory.ARCHIVED).expired()

    def test_alarms_in_order(self, event: AlarmEvent) -> None:
        """Test alarms() lists the main alarm first."""
        event.set_reminder(15)
        alarms = event.alarms()
        assert [a.type for a in alarms] == [AlarmType.MAIN, AlarmType.REMINDER]
        assert alarms[1].time == event.start.add_mins(-15)


class TestEventIds:
    """Test category markers in event IDs."""

    @pytest.mark.parametrize(
        ("uid", "category", "expected"),
        [
            ("KAlarm-1234-abcd", EventCategory.ARCHIVED, "KAlarm-1234-exp-abcd"),
            ("KAlarm-1234-abcd", EventCategory.DISPLAYING, "KAlarm-1234-disp-abcd"),
            ("KAlarm-1234-abcd", EventCategory.TEMPLATE, "KAlarm-1234-abcd"),
            ("KAlarm-1234-exp-abcd", EventCategory.ACTIVE, "KAlarm-1234-abcd"),
            ("KAlarm-1234-disp-abcd", EventCategory.ARCHIVED, "KAlarm-1234-exp-abcd"),
            ("abc", EventCategory.ARCHIVED, "abc-exp-"),
        ],
    )
    def test_event_uid(self, uid: str, category: EventCategory, expected: str) -> None:
        """Test IDs are converted between categories."""
        assert event_uid(uid, category) == expected

    def test_set_category_updates_id(self, event: AlarmEvent) -> None:
        """Test moving an event to another calendar changes its ID."""
        event.set_category(EventCategory.ARCHIVED)
        assert event.category == EventCategory.ARCHIVED
        assert event.id == "KAlarm-1234-exp-abcd"

    def test_new_event_id(self) -> None:
        """Test generated IDs are prefixed and unique."""
        first, second = new_event_id(), new_event_id()
        assert first.startswith("KAlarm-")
        assert first != second


class TestOccurrences:
    """Test occurrence arithmetic."""

    def test_non_recurring(self, event: AlarmEvent) -> None:
        """Test a non-recurring event occurs once."""
        occurrence = event.next_occurrence(london(1, 9))
        assert occurrence.type == OccurType.FIRST_OR_ONLY_OCCURRENCE
        assert occurrence.when == event.start
        assert event.next_occurrence(london(1, 10)).type == OccurType.NO_OCCURRENCE

    def test_next_occurrence_is_strictly_after(self, daily: AlarmEvent) -> None:
        """Test an occurrence exactly at ``pre`` is not returned."""
        occurrence = daily.next_occurrence(london(1, 9, 30))
        assert occurrence.type == OccurType.RECURRENCE_DATE_TIME
        assert occurrence.when == AlarmDateTime(london(2, 9, 30))

    def test_first_occurrence(self, daily: AlarmEvent) -> None:
        """Test the start is reported as the first occurrence."""
        occurrence = daily.next_occurrence(london(1, 9))
        assert occurrence.type == OccurType.FIRST_OR_ONLY_OCCURRENCE
        assert occurrence.when == daily.start

    def test_set_next_occurrence_to_end(self, event: AlarmEvent) -> None:
        """Test stepping through a recurrence with three occurrences."""
        event.set_recurrence(Recurrence.daily(event.start.value, count=3))

        assert event.set_next_occurrence(london(1, 9)) == OccurType.FIRST_OR_ONLY_OCCURRENCE
        assert event.main_date_time() == event.start

        assert event.set_next_occurrence(london(2, 10)) == OccurType.LAST_RECURRENCE
        assert event.main_date_time() == AlarmDateTime(london(3, 9, 30))

        assert event.set_next_occurrence(london(3, 10)) == OccurType.NO_OCCURRENCE
        assert event.main_date_time() == AlarmDateTime(london(3, 9, 30))

    def test_set_next_occurrence_reinstates_reminder(self, daily: AlarmEvent) -> None:
        """Test an advance reminder is reactivated for the next recurrence."""
        daily.set_reminder(15)
        daily.reminder_state = ReminderState.NONE

        daily.set_next_occurrence(london(1, 12))

        assert daily.main_date_time() == AlarmDateTime(london(2, 9, 30))
        assert daily.reminder_active
        assert daily.alarm(AlarmType.REMINDER).time == AlarmDateTime(london(2, 9, 15))

    def test_set_next_occurrence_into_repetition(self, daily: AlarmEvent) -> None:
        """Test a pending sub-repetition becomes the next occurrence."""
        daily.set_repetition(Repetition(Duration.seconds(600), 2))

        daily.set_next_occurrence(london(1, 9, 35))

        assert daily.main_date_time() == daily.start
        assert daily.next_repeat == 1
        assert daily.main_date_time(with_repeats=True) == AlarmDateTime(london(1, 9, 40))

    def test_set_next_occurrence_in_repeated_hour(self, make_event: EventFactory) -> None:
        """Test a daily time in the hour repeated when clocks go back occurs twice that day."""
        event = make_event(start=AlarmDateTime(datetime(2024, 10, 26, 1, 30, tzinfo=LONDON)))
        event.set_recurrence(Recurrence.daily(event.start.value))

        kind = event.set_next_occurrence(datetime(2024, 10, 27, 0, 45, tzinfo=timezone.utc))

        assert kind == OccurType.RECURRENCE_DATE_TIME
        assert event.main_date_time() == AlarmDateTime(datetime(2024, 10, 27, 1, 30, tzinfo=timezone.utc))
        assert to_utc(event.main_date_time().value) == datetime(2024, 10, 27, 1, 30, tzinfo=timezone.utc)

    def test_return_repetition(self, daily: AlarmEvent) -> None:
        """Test next_occurrence can return a sub-repetition."""
        daily.set_repetition(Repetition(Duration.seconds(600), 2))

        occurrence = daily.next_occurrence(london(1, 9, 35), OccurOption.RETURN_REPETITION)
        assert occurrence.repetition is True
        assert occurrence.when == AlarmDateTime(london(1, 9, 40))

        occurrence = daily.next_occurrence(london(1, 9, 35), OccurOption.ALLOW_FOR_REPETITION)
        assert occurrence.repetition is False
        assert occurrence.when == daily.start

    def test_previous_occurrence(self, daily: AlarmEvent) -> None:
        """Test the last occurrence before a time."""
        assert daily.previous_occurrence(london(1, 9)).type == OccurType.NO_OCCURRENCE

        occurrence = daily.previous_occurrence(london(1, 10))
        assert occurrence.type == OccurType.FIRST_OR_ONLY_OCCURRENCE

        occurrence = daily.previous_occurrence(london(3, 9))
        assert occurrence.type == OccurType.RECURRENCE_DATE_TIME
        assert occurrence.when == AlarmDateTime(london(2, 9, 30))

    def test_previous_occurrence_with_repetition(self, daily: AlarmEvent) -> None:
        """Test a sub-repetition can be the previous occurrence."""
        daily.set_repetition(Repetition(Duration.seconds(600), 2))
        occurrence = daily.previous_occurrence(london(2, 9, 45), include_repetitions=True)
        assert occurrence.repetition is True
        assert occurrence.when == AlarmDateTime(london(2, 9, 40))

    def test_occurs_after(self, event: AlarmEvent) -> None:
        """Test whether a finite recurrence still has occurrences."""
        event.set_recurrence(Recurrence.daily(event.start.value, count=3))
        assert event.occurs_after(london(3, 9))
        assert not event.occurs_after(london(3, 10))

        event.set_repetition(Repetition(Duration.seconds(600), 2))
        assert event.occurs_after(london(3, 9, 45), include_repetitions=True)
        assert not event.occurs_after(london(3, 9, 45))

    def test_infinite_recurrence_always_occurs(self, daily: AlarmEvent) -> None:
        """Test an endless recurrence always occurs after any time."""
        assert daily.occurs_after(datetime(2099, 1, 1, tzinfo=timezone.utc))

    def test_date_only_uses_start_of_day(self, make_event: EventFactory) -> None:
        """Test a date-only recurrence is due from the start-of-day time."""
        context = ScheduleContext(start_of_day=time(8, 0))
        event = make_event(start=AlarmDateTime.from_date(date(2030, 3, 1), LONDON), context=context)
        event.set_recurrence(Recurrence.daily(event.start.value, date_only=True))

        before = event.next_occurrence(london(1, 7))
        assert before.type == OccurType.FIRST_OR_ONLY_OCCURRENCE
        assert before.when.date() == date(2030, 3, 1)
        assert before.when.date_only

        after = event.next_occurrence(london(1, 9))
        assert after.type == OccurType.RECURRENCE_DATE
        assert after.when.date() == date(2030, 3, 2)


class TestRepetition:
    """Test sub-repetitions are fitted inside the recurrence interval."""

    def test_clamped_to_interval(self, daily: AlarmEvent) -> None:
        """Test a repetition longer than a day is shortened."""
        assert daily.set_repetition(Repetition(Duration.seconds(6 * 3600), 5))
        assert daily.repetition.count == 3
        assert daily.repetition.interval == Duration.seconds(6 * 3600)

    def test_date_only_daily_clamped(self, make_event: EventFactory) -> None:
        """Test a daily repetition of a date-only alarm is counted in days."""
        event = make_event(start=AlarmDateTime.from_date(date(2030, 3, 1), LONDON))
        event.set_recurrence(Recurrence.daily(event.start.value, interval=2, date_only=True))
        assert event.set_repetition(Repetition(Duration.days(1), 3))
        assert event.repetition.count == 1

    def test_non_daily_on_date_only_refused(self, make_event: EventFactory) -> None:
        """Test a date-only alarm cannot repeat every few minutes."""
        event = make_event(start=AlarmDateTime.from_date(date(2030, 3, 1), LONDON))
        event.set_recurrence(Recurrence.daily(event.start.value, date_only=True))
        assert event.set_repetition(Repetition(Duration.seconds(600), 2)) is False
        assert not event.repetition

    def test_needs_recurrence(self, event: AlarmEvent) -> None:
        """Test a repetition needs a recurrence."""
        assert event.set_repetition(Repetition(Duration.seconds(600), 2)) is False
        assert not event.repetition

    def test_set_recurrence_refits_repetition(self, daily: AlarmEvent) -> None:
        """Test changing the recurrence shortens an existing repetition."""
        daily.set_repetition(Repetition(Duration.seconds(3 * 3600), 6))
        assert daily.repetition.count == 6

        daily.set_recurrence(Recurrence.minutely(daily.start.value, 480))
        assert daily.repetition.count == 2


class TestReminders:
    """Test reminders before and after the main alarm."""

    def test_advance_reminder(self, event: AlarmEvent) -> None:
        """Test a reminder before the main alarm."""
        event.set_reminder(15)
        alarm = event.alarm(AlarmType.REMINDER)
        assert event.reminder_active
        assert alarm.time == AlarmDateTime(london(1, 9, 15))

    def test_reminder_once(self, daily: AlarmEvent) -> None:
        """Test a reminder for the first recurrence only."""
        daily.set_reminder(60, once=True)
        daily.reminder_state = ReminderState.NONE
        daily.set_next_occurrence(london(1, 12))
        assert daily.reminder_once
        assert daily.main_date_time() == AlarmDateTime(london(2, 9, 30))
        assert not daily.reminder_active

    def test_reminder_after_needs_activation(self, event: AlarmEvent) -> None:
        """Test a reminder after the alarm has no time until activated."""
        event.set_reminder(-20)
        assert event.alarm(AlarmType.REMINDER) is None

        event.reminder_state = ReminderState.NONE
        event.activate_reminder_after(event.start)

        assert event.reminder_active
        assert event.reminder_after_time == AlarmDateTime(london(1, 9, 50))
        assert event.alarm(AlarmType.REMINDER).time == AlarmDateTime(london(1, 9, 50))

    def test_activate_after_ignores_other_times(self, event: AlarmEvent) -> None:
        """Test activation needs the time of an actual occurrence."""
        event.set_reminder(-20)
        event.reminder_state = ReminderState.NONE
        event.activate_reminder_after(AlarmDateTime(london(1, 10)))
        assert not event.reminder_active

    def test_activate_after_recurrence(self, daily: AlarmEvent) -> None:
        """Test activation after a recurrence."""
        daily.set_reminder(-20)
        daily.reminder_state = ReminderState.NONE

        daily.activate_reminder_after(AlarmDateTime(london(2, 10)))
        assert not daily.reminder_active

        daily.activate_reminder_after(AlarmDateTime(london(2, 9, 30)))
        assert daily.reminder_after_time == AlarmDateTime(london(2, 9, 50))

    def test_activate_after_not_past_next_occurrence(self, daily: AlarmEvent) -> None:
        """Test a reminder falling after the next recurrence is not activated."""
        daily.set_reminder(-2000)
        daily.reminder_state = ReminderState.NONE
        daily.activate_reminder_after(AlarmDateTime(london(2, 9, 30)))
        assert not daily.reminder_active


class TestDeferral:
    """Test deferring alarms and reminders."""

    def test_defer_non_recurring(self, event: AlarmEvent) -> None:
        """Test deferring a non-recurring alarm expires the main alarm."""
        event.defer(AlarmDateTime(london(1, 10)))

        assert event.main_expired
        assert event.deferral.time == AlarmDateTime(london(1, 10))
        assert event.alarm(AlarmType.MAIN) is None
        assert event.alarm(AlarmType.DEFERRED).time == AlarmDateTime(london(1, 10))

        event.cancel_defer()
        assert event.deferral is None

    def test_defer_past_main_drops_reminder(self, event: AlarmEvent) -> None:
        """Test deferring past the main alarm time discards the advance reminder."""
        event.set_reminder(30)
        event.defer(AlarmDateTime(london(1, 10)))
        assert not event.reminder_active
        assert not event.reminder_deferral
        assert event.main_expired

    def test_defer_recurring(self, daily: AlarmEvent) -> None:
        """Test deferring a recurrence leaves the recurrence pending."""
        daily.defer(AlarmDateTime(london(1, 10)))
        assert not daily.main_expired
        assert daily.deferral.time == AlarmDateTime(london(1, 10))
        assert daily.main_date_time() == daily.start

    def test_defer_adjusts_recurrence(self, daily: AlarmEvent) -> None:
        """Test a passed recurrence moves on when deferring with adjustment."""
        daily.defer(AlarmDateTime(london(2, 12, 30)), adjust_recurrence=True, now=london(2, 12))
        assert daily.main_date_time() == AlarmDateTime(london(3, 9, 30))
        assert daily.deferral.time == AlarmDateTime(london(2, 12, 30))

    def test_reminder_not_deferred_past_main(self, daily: AlarmEvent) -> None:
        """Test a reminder deferral past the next main alarm is dropped."""
        daily.set_reminder(30)
        daily.defer(AlarmDateTime(london(1, 9, 35)), reminder=True)
        assert daily.deferral is None

        daily.defer(AlarmDateTime(london(1, 9, 10)), reminder=True)
        assert daily.reminder_deferral
        assert daily.alarm(AlarmType.DEFERRED_REMINDER).time == AlarmDateTime(london(1, 9, 10))


class TestDeferralLimit:
    """Test how far an alarm may be deferred."""

    def test_limited_by_main(self, event: AlarmEvent) -> None:
        """Test a reminder may not be deferred past its main alarm."""
        event.set_reminder(30)
        end, limit = event.deferral_limit(now=london(1, 9))
        assert limit == DeferLimit.LIMIT_MAIN
        assert end == AlarmDateTime(london(1, 9, 29))

    def test_no_limit(self, event: AlarmEvent) -> None:
        """Test a plain non-recurring alarm has no limit."""
        assert event.deferral_limit(now=london(1, 9)) == (None, DeferLimit.LIMIT_NONE)

    def test_limited_by_recurrence(self, daily: AlarmEvent) -> None:
        """Test deferral stops before the next recurrence."""
        end, limit = daily.deferral_limit(now=london(1, 12))
        assert limit == DeferLimit.LIMIT_RECURRENCE
        assert end == AlarmDateTime(london(2, 9, 29))

    def test_limited_by_reminder(self, daily: AlarmEvent) -> None:
        """Test deferral stops before the next advance reminder."""
        daily.set_reminder(60)
        end, limit = daily.deferral_limit(now=london(1, 12))
        assert limit == DeferLimit.LIMIT_REMINDER
        assert end == AlarmDateTime(london(2, 8, 29))

    def test_limited_by_repetition(self, daily: AlarmEvent) -> None:
        """Test deferral stops before the next sub-repetition."""
        daily.set_repetition(Repetition(Duration.seconds(7200), 3))
        end, limit = daily.deferral_limit(now=london(1, 10))
        assert limit == DeferLimit.LIMIT_REPETITION
        assert end == AlarmDateTime(london(1, 11, 29))

    def test_maximum_deferral(self, make_event: EventFactory) -> None:
        """Test the configured maximum caps the deferral time."""
        event = make_event(context=ScheduleContext(max_defer_minutes=30))
        end, limit = event.deferral_limit(now=london(1, 9))
        assert limit == DeferLimit.LIMIT_NONE
        assert end == AlarmDateTime(datetime(2030, 3, 1, 9, 30, tzinfo=timezone.utc))


class TestCopy:
    """Test event copies."""

    def test_copy_is_independent(self, event: AlarmEvent) -> None:
        """Test changing a copy leaves the original alone."""
        clone = event.copy()
        clone.action.text = "Something else"
        clone.set_reminder(5)

        assert event.action.text == "Take a break"
        assert event.reminder_minutes == 0

    def test_copy_shares_context(self, event: AlarmEvent) -> None:
        """Test copies use the same schedule context."""
        assert event.copy().context is event.context

    def test_copy_compares_equal(self, daily: AlarmEvent) -> None:
        """Test a copy has no differences."""
        daily.set_reminder(10)
        assert compare(daily, daily.copy()) == []

    def test_change_count(self, event: AlarmEvent) -> None:
        """Test field changes are counted."""
        before = event.change_count
        event.set_late_cancel(5)
        assert event.change_count > before


class TestDisplaying:
    """Test displaying-calendar copies."""

    def test_set_displaying(self, event: AlarmEvent) -> None:
        """Test a displaying copy records the shown alarm."""
        shown = event.copy()
        assert shown.set_displaying(event, AlarmType.MAIN, resource_id=4, show_edit=True)

        assert shown.category == EventCategory.DISPLAYING
        assert shown.displaying.time == event.start
        assert shown.displaying.resource_id == 4
        assert shown.alarm(AlarmType.DISPLAYING).time == event.start
        assert event.displaying is None

    def test_set_displaying_refused(self, event: AlarmEvent) -> None:
        """Test displaying fails for a missing alarm or an event already displaying."""
        shown = event.copy()
        assert not shown.set_displaying(event, AlarmType.REMINDER, resource_id=1)
        assert not shown.set_displaying(event, AlarmType.DISPLAYING, resource_id=1)

        assert shown.set_displaying(event, AlarmType.MAIN, resource_id=1)
        assert not shown.set_displaying(event, AlarmType.MAIN, resource_id=1)

    def test_reinstate(self, event: AlarmEvent) -> None:
        """Test reinstating restores the active ID."""
        shown = event.copy()
        shown.set_displaying(event, AlarmType.MAIN, resource_id=2, show_defer=True)

        assert shown.reinstate() == (2, False, True)
        assert shown.id == event.id
        assert shown.category == EventCategory.ACTIVE
        assert shown.displaying is None


class TestActionModels:
    """Test action model validation."""

    def test_command_is_stripped(self) -> None:
        """Test command lines lose surrounding white space."""
        action = CommandAction(command="  ls -l  ")
        assert action.command == "ls -l"
        action.command = " df "
        assert action.command == "df"

    def test_speak_disables_beep(self) -> None:
        """Test speaking replaces beeping."""
        sound = SoundSettings(beep=True, speak=True)
        assert sound.speak is True
        assert sound.beep is False

    def test_audio_has_no_beep(self) -> None:
        """Test audio alarms neither beep nor speak."""
        action = AudioAction(sound=SoundSettings(beep=True))
        assert action.sound.beep is False
        assert action.sound.speak is False

    def test_default_action(self, start: AlarmDateTime) -> None:
        """Test an event without an action is an empty message."""
        event = AlarmEvent(start=start)
        assert isinstance(event.action, MessageAction)
        assert event.clean_text() == ""
