"""Conversion between alarm events and iCalendar VEVENT components.

Each alarm event is one VEVENT. Its sub-alarms (main, reminder, deferral,
at-login, displaying, and the ancillary sound and pre/post actions) are
VALARMs whose TRIGGER is an offset from the event's base time: the next
main alarm for a recurring event whose main alarm is pending, otherwise the
start (or, for a recurring event whose main alarm has expired, its first
recurrence). Application state goes in ``X-KDE-KALARM-*`` properties.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from icalendar import Alarm as ICalAlarm, Calendar, Event as ICalEvent
from icalendar.prop import vCalAddress, vInline

from ..events.context import ScheduleContext
from ..events.event import AlarmEvent
from ..events.models import (
    AudioAction,
    CommandAction,
    Deferral,
    DisplayFormat,
    DisplayingState,
    EmailAction,
    EventCategory,
    FileAction,
    MessageAction,
    ReminderState,
    SoundSettings,
)
from ..events.recurrence import Duration, Recurrence, Repetition
from ..exceptions import RecurrenceError
from ..text import to_display_text, to_storage_text
from ..timezone import AlarmDateTime, add_elapsed, normalize_datetime, to_frame, to_utc, wall_candidates
from . import properties as p
from .flags import (
    EventFlags,
    decode_event_flags,
    email_id_from_flags,
    encode_alarm_flags,
    encode_event_flags,
    join_tokens,
    parse_status,
    split_tokens,
)
from .models import CalendarDecodeResult, DecodeErrorKind, DecodeResult, ReinstateResult

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

STATUS_CATEGORIES = {
    p.ACTIVE_STATUS: EventCategory.ACTIVE,
    p.ARCHIVED_STATUS: EventCategory.ARCHIVED,
    p.TEMPLATE_STATUS: EventCategory.TEMPLATE,
    p.DISPLAYING_STATUS: EventCategory.DISPLAYING,
}
CATEGORY_STATUSES = {category: status for status, category in STATUS_CATEGORIES.items()}


class AlarmRole(int, Enum):
    """What a VALARM represents, in the order VALARMs are processed."""

    MAIN = 0
    REMINDER = 1
    DEFERRED = 2
    DEFERRED_REMINDER = 3
    AT_LOGIN = 4
    DISPLAYING = 5
    AUDIO = 6
    PRE_ACTION = 7
    POST_ACTION = 8

    @property
    def ancillary(self) -> bool:
        return self >= AlarmRole.AUDIO


@dataclass
class _ReadAlarm:
    """A classified VALARM."""

    role: AlarmRole
    component: ICalAlarm
    types: List[str]
    flags: List[str]
    trigger: Union[timedelta, datetime, None] = None

    @property
    def action(self) -> str:
        return str(self.component.get("ACTION", "")).upper()

    def has(self, token: str) -> bool:
        return token in self.types


@dataclass
class _Ancillary:
    """Time for the ancillary alarms: that of the first sub-alarm written."""

    time: Optional[AlarmDateTime] = None

    def offer(self, when: Optional[AlarmDateTime]) -> None:
        if self.time is None and when is not None:
            self.time = when


def category_status(vevent: ICalEvent) -> Tuple[Optional[EventCategory], str]:
    """Return the category of a VEVENT and the TYPE parameter.

    When there is no TYPE property the category is deduced from the UID.

    Returns:
        Tuple of the category, or None if TYPE holds an unknown value, and
        the TYPE parameter text.
    """
    status, param = parse_status(vevent.get(p.STATUS_PROPERTY))
    if status:
        return STATUS_CATEGORIES.get(status.upper()), param
    uid = str(vevent.get("UID", ""))
    if uid.find(p.ARCHIVED_UID) > 0:
        return EventCategory.ARCHIVED, ""
    if uid.find(p.TEMPLATE_UID) > 0:
        return EventCategory.TEMPLATE, ""
    return EventCategory.ACTIVE, ""


def _version_tuple(text: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in text.strip().split("."))


def _split_command(command: str) -> Tuple[str, str]:
    """Split a command line into program and arguments, allowing for a quoted program."""
    command = command.strip()
    if command[:1] in ("'", '"'):
        end = command.find(command[0], 1)
        if end > 0:
            return command[: end + 1], command[end + 1 :].strip()
    program, _, args = command.partition(" ")
    return program, args.strip()


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, list) else [value]


def _text(component: Any, name: str) -> str:
    value = component.get(name)
    if isinstance(value, list):
        value = value[0] if value else None
    return "" if value is None else str(value)


def _value(prop: Any) -> Any:
    """The Python value of a parsed DURATION or TRIGGER property."""
    value = getattr(prop, "dt", None)
    return value if value is not None else getattr(prop, "td", None)


def _int(text: str, default: int) -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        return default


class AlarmSerializer:
    """Encodes alarm events as VEVENTs and decodes them again.

    Encoding never fails and never modifies the event. Decoding returns a
    DecodeResult describing any failure instead of raising.
    """

    def __init__(self, settings: Optional[Any] = None, context: Optional[ScheduleContext] = None) -> None:
        """Initialize the serializer.

        Args:
            settings: Application settings supplying the program identity and
                minimum calendar version, or None for the defaults
            context: Schedule context given to decoded events; built from
                ``settings`` if omitted
        """
        self.settings = settings
        if context is None:
            context = ScheduleContext.from_settings(settings) if settings is not None else ScheduleContext()
        self.context = context
        self.program_name = getattr(settings, "program_name", "KAlarm")
        self.program_version = getattr(settings, "program_version", p.CALENDAR_VERSION)
        self.min_calendar_version = getattr(settings, "min_calendar_version", p.MIN_CALENDAR_VERSION)
        logger.debug("Alarm serializer initialized")

    @property
    def locale(self) -> str:
        return self.context.text_locale

    # Encoding

    def to_calendar_event(self, event: AlarmEvent) -> str:
        """Encode an event as VEVENT text."""
        return self.to_vevent(event).to_ical().decode("utf-8")

    def to_calendar(self, events: Sequence[AlarmEvent]) -> str:
        """Encode events as a complete VCALENDAR."""
        calendar = Calendar()
        calendar.add("PRODID", p.PRODID_TEMPLATE.format(program=self.program_name, version=self.program_version))
        calendar.add("VERSION", "2.0")
        calendar.add(p.VERSION_PROPERTY, vInline(p.CALENDAR_VERSION))
        for event in events:
            calendar.add_component(self.to_vevent(event))
        return calendar.to_ical().decode("utf-8")

    def to_vevent(self, event: AlarmEvent) -> ICalEvent:
        """Build the VEVENT for an event."""
        archived = event.category == EventCategory.ARCHIVED
        vevent = ICalEvent()
        vevent.add("UID", event.id)
        vevent.add("SEQUENCE", event.revision)
        vevent.add("DTSTART", event.start.effective())
        if event.created is not None:
            vevent.add("CREATED", to_utc(event.created.effective()))
        vevent.add("TRANSP", "TRANSPARENT")
        if event.template_name:
            vevent.add("SUMMARY", event.template_name)
        if not event.enabled:
            vevent.add("STATUS", p.DISABLED_STATUS)
        if event.recurrence is not None:
            self._write_recurrence(vevent, event.recurrence)

        for name, value in event.custom_properties.items():
            vevent.add(name, vInline(value))
        vevent.add(p.STATUS_PROPERTY, vInline(self._status_value(event)))
        flags = encode_event_flags(self._event_flags(event), template=event.is_template, archived=archived)
        if flags:
            vevent.add(p.FLAGS_PROPERTY, vInline(join_tokens(flags)))
        log = self._log_value(event)
        if log:
            vevent.add(p.LOG_PROPERTY, vInline(log))

        base = self._offset_base(event)
        ancillary = _Ancillary()
        if not event.main_expired or archived:
            if not archived and event.recurs:
                vevent.add(p.NEXT_RECUR_PROPERTY, vInline(self._format_next_recur(event)))
            main = event.main_date_time()
            vevent.add_component(self._main_alarm(event, self._offset(base, main)))
            ancillary.offer(main)
        elif event.repetition:
            # The expired main alarm can't hold the repetition
            repetition = event.repetition
            vevent.add(p.REPEAT_PROPERTY, vInline(f"{repetition.interval_minutes}:{repetition.count}"))

        if event.repeat_at_login or (archived and event.archive_repeat_at_login):
            if event.repeat_at_login:
                login_time = event.at_login_time or event.start.add_days(-1)
            else:
                # An archived event keeps its expired at-login option as an alarm
                login_time = event.start.add_days(-1)
            vevent.add_component(self._action_alarm(event, self._offset(base, login_time), [p.AT_LOGIN_TYPE]))
            ancillary.offer(login_time)

        if event.reminder_minutes and (event.reminder_state != ReminderState.NONE or archived):
            if event.reminder_minutes < 0 and event.reminder_after_time is not None:
                reminder_time = event.reminder_after_time
            else:
                reminder_time = event.main_date_time().add_mins(-event.reminder_minutes)
            hidden = event.reminder_minutes < 0 and event.reminder_state == ReminderState.HIDDEN
            vevent.add_component(
                self._action_alarm(event, self._offset(base, reminder_time), [p.REMINDER_TYPE], hidden)
            )
            if event.reminder_state == ReminderState.ACTIVE or archived:
                ancillary.offer(reminder_time)

        if event.deferral is not None:
            deferral = event.deferral
            types = [p.DATE_DEFERRAL_TYPE if deferral.date_only else p.TIME_DEFERRAL_TYPE]
            if deferral.reminder:
                types.append(p.REMINDER_TYPE)
            vevent.add_component(self._action_alarm(event, self._offset(base, deferral.time), types))
            ancillary.offer(deferral.time)

        if event.displaying is not None and not event.is_template:
            state = event.displaying
            types = [p.DISPLAYING_TYPE]
            if state.at_login:
                types.append(p.AT_LOGIN_TYPE)
            elif state.deferral:
                types.append(p.TIME_DEFERRAL_TYPE if state.timed_deferral else p.DATE_DEFERRAL_TYPE)
            if state.reminder:
                types.append(p.REMINDER_TYPE)
            vevent.add_component(self._action_alarm(event, self._offset(base, state.time), types))
            ancillary.offer(state.time)

        offset = self._offset(base, ancillary.time) if ancillary.time is not None else timedelta(0)
        sound = getattr(event.action, "sound", None)
        if isinstance(sound, SoundSettings) and sound.is_set and not isinstance(event.action, AudioAction):
            vevent.add_component(self._sound_alarm(sound, offset))
        if event.pre_action:
            tokens = encode_alarm_flags(
                exec_on_deferral=event.exec_pre_action_on_deferral,
                cancel_on_error=event.cancel_on_pre_action_error,
                dont_show_error=event.dont_show_pre_action_error,
            )
            vevent.add_component(self._procedure_alarm(event.pre_action, offset, [p.PRE_ACTION_TYPE], tokens))
        if event.post_action:
            vevent.add_component(self._procedure_alarm(event.post_action, offset, [p.POST_ACTION_TYPE], []))
        return vevent

    def _status_value(self, event: AlarmEvent) -> str:
        status = CATEGORY_STATUSES[event.category]
        if event.category == EventCategory.DISPLAYING and event.displaying is not None:
            parts = [status, str(event.displaying.resource_id)]
            if event.displaying.show_defer:
                parts.append(p.DISP_DEFER)
            if event.displaying.show_edit:
                parts.append(p.DISP_EDIT)
            return p.SC.join(parts)
        return status

    @staticmethod
    def _event_flags(event: AlarmEvent) -> EventFlags:
        return EventFlags(
            date_only=event.start.date_only,
            local_zone=event.start.is_floating,
            confirm_ack=event.confirm_ack,
            email_bcc=isinstance(event.action, EmailAction) and event.action.bcc,
            copy_to_organizer=event.copy_to_organizer,
            exclude_holidays=event.exclude_holidays,
            work_time_only=event.work_time_only,
            late_cancel=event.late_cancel,
            auto_close=event.auto_close,
            reminder_minutes=event.reminder_minutes,
            reminder_once=event.reminder_once,
            defer_default_minutes=event.defer_default_minutes,
            defer_default_date_only=event.defer_default_date_only,
            template_after_time=event.template_after_time,
            kmail_serial=event.kmail_serial,
            archive=event.archive,
            archive_repeat_at_login=event.archive_repeat_at_login,
            extra=list(event.extra_flags),
        )

    @staticmethod
    def _log_value(event: AlarmEvent) -> str:
        action = event.action
        if not isinstance(action, CommandAction):
            return ""
        if action.xterm:
            return p.XTERM_URL
        if action.display_output:
            return p.DISPLAY_URL
        return action.log_file

    @staticmethod
    def _format_next_recur(event: AlarmEvent) -> str:
        next_main = event.main_date_time()
        value = to_frame(next_main.value, event.start.tzinfo)
        fmt = p.NEXT_RECUR_DATE_FORMAT if next_main.date_only else p.NEXT_RECUR_DATETIME_FORMAT
        return value.strftime(fmt)

    @staticmethod
    def _write_recurrence(vevent: ICalEvent, recurrence: Recurrence) -> None:
        vevent.add("RRULE", recurrence.to_ical())
        dates = [d for d in recurrence.exdates if not isinstance(d, datetime)]
        times = [d for d in recurrence.exdates if isinstance(d, datetime)]
        if dates:
            vevent.add("EXDATE", dates)
        if times:
            vevent.add("EXDATE", times)

    def _offset_base(self, event: AlarmEvent) -> AlarmDateTime:
        """The time which alarm TRIGGER offsets are relative to."""
        if event.category == EventCategory.ARCHIVED or event.recurrence is None:
            return event.start
        if event.main_expired:
            return self._first_recurrence(event)
        return event.main_date_time()

    @staticmethod
    def _first_recurrence(event: AlarmEvent) -> AlarmDateTime:
        """First recurrence not excluded by an exception date."""
        pre = event.start.effective(event.context.start_of_day) - timedelta(days=1)
        occurrence = event.next_recurrence(pre)
        return occurrence.when if occurrence.when is not None else event.start

    @staticmethod
    def _offset(base: AlarmDateTime, when: AlarmDateTime) -> timedelta:
        if base.date_only and when.date_only:
            return timedelta(days=base.days_to(when))
        if base.is_floating and when.is_floating:
            return when.effective() - base.effective()
        return to_utc(when.effective()) - to_utc(base.effective())

    @staticmethod
    def _new_alarm(offset: timedelta, types: List[str], flags: List[str]) -> ICalAlarm:
        valarm = ICalAlarm()
        valarm.add("TRIGGER", offset)
        if types:
            valarm.add(p.TYPE_PROPERTY, vInline(p.TYPE_SEPARATOR.join(types)))
        if flags:
            valarm.add(p.ALARM_FLAGS_PROPERTY, vInline(join_tokens(flags)))
        return valarm

    def _main_alarm(self, event: AlarmEvent, offset: timedelta) -> ICalAlarm:
        valarm = self._action_alarm(event, offset, [], main=True)
        repetition = event.repetition
        if repetition:
            valarm.add("REPEAT", repetition.count)
            valarm.add("DURATION", timedelta(seconds=repetition.interval_seconds))
            valarm.add(p.NEXT_REPEAT_PROPERTY, vInline(str(event.next_repeat)))
        return valarm

    def _action_alarm(
        self,
        event: AlarmEvent,
        offset: timedelta,
        types: List[str],
        hidden_reminder: bool = False,
        main: bool = False,
    ) -> ICalAlarm:
        """Create a VALARM carrying the event's action."""
        action = event.action
        all_types: List[str] = []
        flags = encode_alarm_flags(hidden_reminder=hidden_reminder)
        display: Optional[DisplayFormat] = None
        payload: Dict[str, Any] = {}

        if isinstance(action, (MessageAction, FileAction)):
            if isinstance(action, FileAction):
                all_types.append(p.FILE_TYPE)
                text = action.path
            else:
                text = to_storage_text(action.text, self.locale)
            payload = {"ACTION": "DISPLAY", "DESCRIPTION": text}
            display = action.display
        elif isinstance(action, CommandAction):
            payload = self._procedure_payload(action.command, action.script)
            if action.display_output:
                display = action.display
            if action.hide_error:
                flags.append(p.DONT_SHOW_ERROR_FLAG)
        elif isinstance(action, EmailAction):
            payload = {"ACTION": "EMAIL", "SUMMARY": action.subject, "DESCRIPTION": action.body}
            flags += encode_alarm_flags(email_id=action.from_id)
        else:
            payload = self._audio_payload(action.sound)
            if main and action.sound.repeat:
                all_types += [p.SOUND_REPEAT_TYPE, str(action.sound.repeat_pause)]

        valarm = self._new_alarm(offset, all_types + types, flags)
        for name, value in payload.items():
            if name == p.VOLUME_PROPERTY:
                valarm.add(name, vInline(value))
            else:
                valarm.add(name, value)
        if isinstance(action, EmailAction):
            for address in action.addresses:
                valarm.add("ATTENDEE", vCalAddress(f"mailto:{address}"))
            for attachment in action.attachments:
                valarm.add("ATTACH", attachment)
        if display is not None:
            font = display.font or ""
            valarm.add(p.FONT_COLOUR_PROPERTY, vInline(f"{display.bg_colour};{display.fg_colour};{font}"))
        return valarm

    @staticmethod
    def _procedure_payload(command: str, script: bool) -> Dict[str, Any]:
        if script:
            return {"ACTION": "PROCEDURE", "DESCRIPTION": command}
        program, args = _split_command(command)
        payload: Dict[str, Any] = {"ACTION": "PROCEDURE", "ATTACH": program}
        if args:
            payload["DESCRIPTION"] = args
        return payload

    @staticmethod
    def _audio_payload(sound: SoundSettings) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ACTION": "AUDIO"}
        if sound.file:
            payload["ATTACH"] = sound.file
        if sound.volume >= 0:
            payload[p.VOLUME_PROPERTY] = f"{sound.volume:.2f};{sound.fade_volume:.2f};{sound.fade_seconds}"
        return payload

    def _sound_alarm(self, sound: SoundSettings, offset: timedelta) -> ICalAlarm:
        valarm = self._new_alarm(offset, [], encode_alarm_flags(speak=sound.speak))
        for name, value in self._audio_payload(sound).items():
            valarm.add(name, vInline(value) if name == p.VOLUME_PROPERTY else value)
        if sound.repeat:
            # REPEAT -1 means no pause between repeats, -2 a pause given by DURATION
            valarm.add("REPEAT", -2 if sound.repeat_pause else -1)
            valarm.add("DURATION", timedelta(seconds=sound.repeat_pause))
        return valarm

    def _procedure_alarm(self, command: str, offset: timedelta, types: List[str], flags: List[str]) -> ICalAlarm:
        valarm = self._new_alarm(offset, types, flags)
        for name, value in self._procedure_payload(command, False).items():
            valarm.add(name, value)
        return valarm

    # Decoding

    def from_calendar_event(
        self,
        data: Union[str, bytes, ICalEvent],
        expected_id: Optional[str] = None,
    ) -> DecodeResult:
        """Decode a VEVENT into an alarm event.

        Args:
            data: VEVENT text or a parsed component
            expected_id: If given, the UID the event must have

        Returns:
            The decode result; on failure its error kind says why
        """
        if isinstance(data, (str, bytes)):
            try:
                data = ICalEvent.from_ical(data)
            except ValueError as e:
                logger.warning(f"Unparsable calendar event: {e}")
                return DecodeResult.failure(DecodeErrorKind.PARSE_ERROR, str(e))
        try:
            return self._decode_event(data, expected_id)
        except Exception as e:
            logger.exception("Failed to decode calendar event")
            return DecodeResult.failure(DecodeErrorKind.PARSE_ERROR, str(e))

    def from_calendar(self, text: Union[str, bytes]) -> CalendarDecodeResult:
        """Decode every alarm event in a VCALENDAR.

        A calendar whose X-KDE-KALARM-VERSION is outside the supported
        range is rejected as a whole.
        """
        try:
            calendar = Calendar.from_ical(text)
        except ValueError as e:
            logger.warning(f"Unparsable calendar: {e}")
            return CalendarDecodeResult(
                success=False, error_kind=DecodeErrorKind.PARSE_ERROR, error_message=str(e)
            )

        version = _text(calendar, p.VERSION_PROPERTY) or None
        warnings: List[str] = []
        if version is None:
            logger.debug("Calendar has no format version; assuming current format")
        else:
            error = self._check_version(version)
            if error:
                logger.warning(error)
                return CalendarDecodeResult(
                    success=False,
                    calendar_version=version,
                    error_kind=DecodeErrorKind.STALE_FORMAT,
                    error_message=error,
                )

        events: List[AlarmEvent] = []
        failures: List[DecodeResult] = []
        for component in calendar.walk("VEVENT"):
            result = self.from_calendar_event(component)
            if result.success:
                events.append(result.event)
                warnings += result.warnings
            else:
                failures.append(result)
        logger.debug(f"Decoded {len(events)} alarms, {len(failures)} failures")
        return CalendarDecodeResult(
            success=True, events=events, failures=failures, calendar_version=version, warnings=warnings
        )

    def _check_version(self, version: str) -> Optional[str]:
        try:
            found = _version_tuple(version)
            minimum = _version_tuple(self.min_calendar_version)
            current = _version_tuple(p.CALENDAR_VERSION)
        except ValueError:
            return f"Invalid calendar format version {version!r}"
        if found < minimum:
            return f"Calendar format version {version} is older than {self.min_calendar_version}"
        if found > current:
            return f"Calendar format version {version} is newer than {p.CALENDAR_VERSION}"
        return None

    def reinstate_from_displaying(self, data: Union[str, bytes, ICalEvent]) -> ReinstateResult:
        """Recover the original active event from a displaying-calendar event.

        Raises:
            CalendarDecodeError: If the data cannot be decoded
        """
        event = self.from_calendar_event(data).unwrap()
        resource_id, show_edit, show_defer = event.reinstate()
        event.set_category(EventCategory.ACTIVE)
        return ReinstateResult(event=event, resource_id=resource_id, show_edit=show_edit, show_defer=show_defer)

    def _decode_event(self, vevent: Any, expected_id: Optional[str]) -> DecodeResult:
        if getattr(vevent, "name", None) != "VEVENT":
            return DecodeResult.failure(DecodeErrorKind.NOT_AN_EVENT, "Calendar item is not a VEVENT")
        uid = _text(vevent, "UID")
        if expected_id is not None and uid != expected_id:
            return DecodeResult.failure(
                DecodeErrorKind.ID_MISMATCH, f"Event ID {uid!r} does not match {expected_id!r}"
            )
        category, status_param = category_status(vevent)
        if category is None:
            return DecodeResult.failure(
                DecodeErrorKind.UNKNOWN_CATEGORY, f"Unknown alarm type {_text(vevent, p.STATUS_PROPERTY)!r}"
            )
        if vevent.get("DTSTART") is None:
            return DecodeResult.failure(DecodeErrorKind.PARSE_ERROR, "Event has no DTSTART")

        alarms = self._read_alarms(vevent)
        if not any(not alarm.role.ancillary for alarm in alarms.values()):
            return DecodeResult.failure(DecodeErrorKind.NO_USABLE_ALARMS, f"Event {uid!r} has no usable alarms")

        flag_result = decode_event_flags(_text(vevent, p.FLAGS_PROPERTY))
        flags = flag_result.flags
        warnings = list(flag_result.warnings)

        start = self._read_start(vevent, flags)
        event = AlarmEvent(context=self.context, id=uid, category=category, start=start)
        event.revision = _int(_text(vevent, "SEQUENCE"), 0)
        event.template_name = _text(vevent, "SUMMARY")
        event.enabled = _text(vevent, "STATUS").upper() != p.DISABLED_STATUS
        if vevent.get("CREATED") is not None:
            event.created = AlarmDateTime(normalize_datetime(vevent.decoded("CREATED")))
        event.custom_properties = {
            name: str(value)
            for name, value in vevent.items()
            if name.upper().startswith("X-") and not name.upper().startswith(p.PREFIX)
        }
        self._apply_flags(event, flags)

        recurrence = self._read_recurrence(vevent, start)
        if recurrence is not None:
            event.recurrence = recurrence
        next_recur = self._read_next_recur(vevent, start) if recurrence is not None else None

        main_expired = AlarmRole.MAIN not in alarms
        if category == EventCategory.ARCHIVED or recurrence is None:
            base = start
        elif main_expired:
            base = self._first_recurrence(event)
        else:
            base = next_recur or start

        self._read_action(event, alarms, flags, vevent)
        event.main_expired = main_expired
        event.next_main = base
        repetition = Repetition()
        next_repeat = 0
        deferral_only = False

        for role in sorted(alarms):
            alarm = alarms[role]
            if role == AlarmRole.MAIN:
                event.next_main = self._resolve(base, alarm.trigger, start.date_only)
                repetition = self._read_repetition(alarm.component, start.date_only)
                if repetition:
                    next_repeat = _int(_text(alarm.component, p.NEXT_REPEAT_PROPERTY), 0)
            elif role == AlarmRole.AT_LOGIN:
                if category == EventCategory.ARCHIVED:
                    event.archive_repeat_at_login = True
                else:
                    event.repeat_at_login = True
                    event.at_login_time = self._resolve(base, alarm.trigger, start.date_only)
            elif role == AlarmRole.REMINDER:
                when = self._resolve(base, alarm.trigger, start.date_only)
                if event.reminder_minutes:
                    hidden = event.reminder_minutes < 0 and p.HIDDEN_REMINDER_FLAG in alarm.flags
                    event.reminder_state = ReminderState.HIDDEN if hidden else ReminderState.ACTIVE
                    if event.reminder_minutes < 0:
                        event.reminder_after_time = when
            elif role in (AlarmRole.DEFERRED, AlarmRole.DEFERRED_REMINDER):
                date_only = alarm.has(p.DATE_DEFERRAL_TYPE)
                when = self._resolve(base, alarm.trigger, date_only)
                event.deferral = Deferral(when, reminder=role == AlarmRole.DEFERRED_REMINDER)
                if main_expired and role == AlarmRole.DEFERRED:
                    deferral_only = True
            elif role == AlarmRole.DISPLAYING:
                event.displaying = self._read_displaying(alarm, base, start, status_param)
            elif role in (AlarmRole.PRE_ACTION, AlarmRole.POST_ACTION):
                command = self._read_command(alarm.component)[0]
                if role == AlarmRole.PRE_ACTION:
                    event.pre_action = command
                    event.exec_pre_action_on_deferral = p.EXEC_ON_DEFERRAL_FLAG in alarm.flags
                    event.cancel_on_pre_action_error = p.CANCEL_ON_ERROR_FLAG in alarm.flags
                    event.dont_show_pre_action_error = p.DONT_SHOW_ERROR_FLAG in alarm.flags
                else:
                    event.post_action = command

        if main_expired and not repetition:
            repetition = self._read_expired_repetition(vevent, warnings)

        if event.recurrence is not None:
            event.repetition = repetition
            event.set_recurrence(event.recurrence)
            if 0 < next_repeat <= event.repetition.count:
                event.next_repeat = next_repeat
        elif repetition:
            self._repetition_to_recurrence(event, repetition, warnings)

        if event.repeat_at_login:
            event.archive_repeat_at_login = False
            if event.reminder_minutes > 0:
                event.reminder_minutes = 0
                event.reminder_state = ReminderState.NONE
            event.late_cancel = 0
            event.auto_close = False
        if deferral_only and event.deferral is not None:
            event.next_main = event.deferral.time

        logger.debug(f"Decoded alarm {uid} ({category.value}, {event.action.kind})")
        return DecodeResult(success=True, event=event, warnings=warnings)

    def _read_alarms(self, vevent: Any) -> Dict[AlarmRole, _ReadAlarm]:
        """Classify the event's VALARMs by role; a later VALARM replaces an earlier one of the same role."""
        components = [c for c in vevent.subcomponents if c.name == "VALARM"]
        # Pre and post actions run around the main alarm and don't count as its action
        actions = {
            str(c.get("ACTION", "")).upper()
            for c in components
            if not {p.PRE_ACTION_TYPE, p.POST_ACTION_TYPE} & set(_text(c, p.TYPE_PROPERTY).split(p.TYPE_SEPARATOR))
        }
        audio_only = "AUDIO" in actions and not actions & {"DISPLAY", "PROCEDURE", "EMAIL"}

        alarms: Dict[AlarmRole, _ReadAlarm] = {}
        for component in components:
            types = [t for t in _text(component, p.TYPE_PROPERTY).split(p.TYPE_SEPARATOR) if t]
            flags = split_tokens(_text(component, p.ALARM_FLAGS_PROPERTY))
            trigger = component.get("TRIGGER")
            alarm = _ReadAlarm(
                role=AlarmRole.MAIN,
                component=component,
                types=types,
                flags=flags,
                trigger=_value(trigger) if trigger is not None else None,
            )
            action = alarm.action
            if action not in ("DISPLAY", "PROCEDURE", "EMAIL", "AUDIO"):
                logger.debug(f"Ignoring alarm with action {action!r}")
                continue
            alarm.role = self._alarm_role(alarm, audio_only)
            if alarm.role in alarms:
                logger.debug(f"Duplicate {alarm.role.name} alarm replaces the earlier one")
            alarms[alarm.role] = alarm
        return alarms

    @staticmethod
    def _alarm_role(alarm: _ReadAlarm, audio_only: bool) -> AlarmRole:
        if alarm.action == "AUDIO" and not audio_only:
            return AlarmRole.AUDIO
        if alarm.action == "PROCEDURE":
            if alarm.has(p.PRE_ACTION_TYPE):
                return AlarmRole.PRE_ACTION
            if alarm.has(p.POST_ACTION_TYPE):
                return AlarmRole.POST_ACTION
        reminder = alarm.has(p.REMINDER_TYPE)
        deferral = alarm.has(p.TIME_DEFERRAL_TYPE) or alarm.has(p.DATE_DEFERRAL_TYPE)
        if alarm.has(p.DISPLAYING_TYPE):
            return AlarmRole.DISPLAYING
        if reminder and deferral:
            return AlarmRole.DEFERRED_REMINDER
        if reminder:
            return AlarmRole.REMINDER
        if deferral:
            return AlarmRole.DEFERRED
        if alarm.has(p.AT_LOGIN_TYPE):
            return AlarmRole.AT_LOGIN
        return AlarmRole.MAIN

    @staticmethod
    def _read_start(vevent: Any, flags: EventFlags) -> AlarmDateTime:
        raw = vevent.decoded("DTSTART")
        if isinstance(raw, datetime):
            value = normalize_datetime(raw)
            date_only = flags.date_only
        else:
            value = datetime.combine(raw, time(0))
            date_only = True
        if flags.local_zone and value.tzinfo is not None:
            value = to_frame(value, None)
        if date_only:
            value = value.replace(hour=0, minute=0, second=0, microsecond=0)
        return AlarmDateTime(value, date_only)

    @staticmethod
    def _apply_flags(event: AlarmEvent, flags: EventFlags) -> None:
        event.confirm_ack = flags.confirm_ack
        event.copy_to_organizer = flags.copy_to_organizer
        event.exclude_holidays = flags.exclude_holidays
        event.work_time_only = flags.work_time_only
        event.late_cancel = flags.late_cancel
        event.auto_close = flags.auto_close and flags.late_cancel > 0
        event.reminder_minutes = flags.reminder_minutes
        event.reminder_once = flags.reminder_once
        event.defer_default_minutes = flags.defer_default_minutes
        event.defer_default_date_only = flags.defer_default_date_only
        if event.is_template:
            event.template_after_time = flags.template_after_time
        event.kmail_serial = flags.kmail_serial
        event.archive = flags.archive
        event.archive_repeat_at_login = flags.archive_repeat_at_login
        event.extra_flags = list(flags.extra)

    @staticmethod
    def _read_exdates(vevent: Any) -> List[Union[date, datetime]]:
        exdates: List[Union[date, datetime]] = []
        for item in _as_list(vevent.get("EXDATE")):
            for value in getattr(item, "dts", []):
                dt = value.dt
                exdates.append(normalize_datetime(dt) if isinstance(dt, datetime) else dt)
        return exdates

    def _read_recurrence(self, vevent: Any, start: AlarmDateTime) -> Optional[Recurrence]:
        rules = _as_list(vevent.get("RRULE"))
        if not rules:
            return None
        if len(rules) > 1:
            logger.warning(f"Event {_text(vevent, 'UID')} has {len(rules)} RRULEs; using the first")
        return Recurrence.from_ical(rules[0], start.value, start.date_only, self._read_exdates(vevent))

    @staticmethod
    def _read_next_recur(vevent: Any, start: AlarmDateTime) -> Optional[AlarmDateTime]:
        """Parse X-KDE-KALARM-NEXTRECUR, ignoring it if invalid or before the start."""
        text = _text(vevent, p.NEXT_RECUR_PROPERTY)
        if not text:
            return None
        try:
            if start.date_only:
                if len(text) != 8:
                    return None
                d = datetime.strptime(text, p.NEXT_RECUR_DATE_FORMAT).date()
                result = AlarmDateTime.from_date(d, start.tzinfo)
            else:
                if len(text) != 15:
                    return None
                wall = datetime.strptime(text, p.NEXT_RECUR_DATETIME_FORMAT)
                result = AlarmDateTime(next(wall_candidates(wall, start.tzinfo)))
        except ValueError:
            logger.debug(f"Ignoring invalid next recurrence {text!r}")
            return None
        return result if result >= start else None

    @staticmethod
    def _resolve(base: AlarmDateTime, trigger: Union[timedelta, datetime, None], date_only: bool) -> AlarmDateTime:
        """Convert a TRIGGER value to an alarm time."""
        if isinstance(trigger, datetime):
            value = to_frame(normalize_datetime(trigger), base.tzinfo)
            if date_only:
                return AlarmDateTime.from_date(value.date(), base.tzinfo)
            return AlarmDateTime(value)
        seconds = int(trigger.total_seconds()) if trigger is not None else 0
        if base.date_only and date_only:
            return base.add_days(seconds // SECONDS_PER_DAY)
        value = add_elapsed(base.effective(), seconds)
        if date_only:
            return AlarmDateTime(value.replace(hour=0, minute=0, second=0, microsecond=0), True)
        return AlarmDateTime(value)

    @staticmethod
    def _duration(seconds: int) -> Duration:
        if seconds and seconds % SECONDS_PER_DAY == 0:
            return Duration.days(seconds // SECONDS_PER_DAY)
        return Duration.seconds(seconds)

    def _read_repetition(self, component: Any, date_only: bool) -> Repetition:
        count = _int(_text(component, "REPEAT"), 0)
        duration = component.get("DURATION")
        if count <= 0 or duration is None:
            return Repetition()
        seconds = int(_value(duration).total_seconds())
        interval = self._duration(seconds)
        if date_only and not interval.daily:
            logger.warning(f"Ignoring non-daily repetition of a date-only alarm ({seconds} seconds)")
            return Repetition()
        return Repetition(interval, count)

    def _read_expired_repetition(self, vevent: Any, warnings: List[str]) -> Repetition:
        """Parse X-KDE-KALARM-REPEAT, which holds the repetition of an expired main alarm."""
        text = _text(vevent, p.REPEAT_PROPERTY)
        if not text:
            return Repetition()
        minutes_text, _, count_text = text.partition(":")
        minutes, count = _int(minutes_text, 0), _int(count_text, 0)
        if minutes <= 0 or count <= 0:
            warnings.append(f"{p.REPEAT_PROPERTY}: invalid value {text!r} ignored")
            return Repetition()
        return Repetition(self._duration(minutes * 60), count)

    @staticmethod
    def _repetition_to_recurrence(event: AlarmEvent, repetition: Repetition, warnings: List[str]) -> None:
        """Convert a repetition without a recurrence into a recurrence."""
        try:
            if repetition.is_daily:
                recurrence = Recurrence.daily(
                    event.start.value, repetition.interval_days, repetition.count + 1, event.date_only
                )
            else:
                recurrence = Recurrence.minutely(event.start.value, repetition.interval_minutes, repetition.count + 1)
        except RecurrenceError as e:
            warnings.append(f"Repetition {repetition} not converted to a recurrence: {e}")
            return
        event.repetition = Repetition()
        event.set_recurrence(recurrence)

    @staticmethod
    def _read_displaying(alarm: _ReadAlarm, base: AlarmDateTime, start: AlarmDateTime, param: str) -> DisplayingState:
        timed = alarm.has(p.TIME_DEFERRAL_TYPE)
        deferral = timed or alarm.has(p.DATE_DEFERRAL_TYPE)
        date_only = not timed if deferral else start.date_only
        parts = param.split(p.SC) if param else []
        resource_id = _int(parts[0], -1) if parts else -1
        return DisplayingState(
            time=AlarmSerializer._resolve(base, alarm.trigger, date_only),
            at_login=alarm.has(p.AT_LOGIN_TYPE),
            reminder=alarm.has(p.REMINDER_TYPE),
            deferral=deferral,
            timed_deferral=timed,
            resource_id=resource_id,
            show_edit=p.DISP_EDIT in parts[1:],
            show_defer=p.DISP_DEFER in parts[1:],
        )

    @staticmethod
    def _read_command(component: Any) -> Tuple[str, bool]:
        """Return the command line of a PROCEDURE alarm, and whether it is a script."""
        program = _text(component, "ATTACH").strip()
        description = _text(component, "DESCRIPTION")
        if not program:
            return description, True
        return f"{program} {description}".strip() if description else program, False

    @staticmethod
    def _read_display_format(component: Any) -> DisplayFormat:
        text = _text(component, p.FONT_COLOUR_PROPERTY)
        if not text:
            return DisplayFormat()
        parts = text.split(p.SC, 2)
        defaults = DisplayFormat()
        return DisplayFormat(
            bg_colour=parts[0] or defaults.bg_colour,
            fg_colour=parts[1] if len(parts) > 1 and parts[1] else defaults.fg_colour,
            font=parts[2] if len(parts) > 2 and parts[2] else None,
        )

    @staticmethod
    def _read_volume(component: Any) -> Tuple[float, float, int]:
        """Parse VOLUME ``vol;fade;secs``; an invalid volume or fade is unset."""
        text = _text(component, p.VOLUME_PROPERTY)
        if not text:
            return -1, -1, 0
        parts = text.split(p.SC)
        try:
            volume = float(parts[0])
        except ValueError:
            return -1, -1, 0
        if volume > 1:
            return -1, -1, 0
        fade, fade_seconds = -1.0, 0
        if volume >= 0 and len(parts) >= 3:
            try:
                fade, fade_seconds = float(parts[1]), int(parts[2])
            except ValueError:
                fade, fade_seconds = -1.0, 0
            if not (0 <= fade <= 1 and fade_seconds > 0):
                fade, fade_seconds = -1.0, 0
        return volume, fade, fade_seconds

    def _read_sound(self, alarm: _ReadAlarm, main: bool) -> SoundSettings:
        component = alarm.component
        sound_file = _text(component, "ATTACH")
        speak = p.SPEAK_FLAG in alarm.flags and not sound_file
        volume, fade, fade_seconds = self._read_volume(component)
        repeat_pause = -1
        if main:
            if alarm.has(p.SOUND_REPEAT_TYPE):
                i = alarm.types.index(p.SOUND_REPEAT_TYPE)
                repeat_pause = _int(alarm.types[i + 1], 0) if i + 1 < len(alarm.types) else 0
                repeat_pause = max(repeat_pause, 0)
        else:
            repeat = _int(_text(component, "REPEAT"), 0)
            if repeat == -2:
                duration = component.get("DURATION")
                repeat_pause = int(_value(duration).total_seconds()) if duration is not None else 0
            elif repeat == -1:
                repeat_pause = 0
        return SoundSettings(
            file=sound_file,
            speak=speak,
            beep=not speak and not sound_file,
            volume=volume,
            fade_volume=fade,
            fade_seconds=fade_seconds,
            repeat_pause=repeat_pause,
        )

    def _read_action(
        self, event: AlarmEvent, alarms: Dict[AlarmRole, _ReadAlarm], flags: EventFlags, vevent: Any
    ) -> None:
        """Set the event's action from the first non-ancillary alarm."""
        first = alarms[min(role for role in alarms if not role.ancillary)]
        component = first.component
        audio = alarms.get(AlarmRole.AUDIO)
        sound = self._read_sound(audio, main=False) if audio is not None else SoundSettings()
        is_email = False

        if first.action == "DISPLAY":
            text, is_email = to_display_text(_text(component, "DESCRIPTION"), self.locale)
            display = self._read_display_format(component)
            if first.has(p.FILE_TYPE):
                event.action = FileAction(path=text, display=display, sound=sound)
            else:
                event.action = MessageAction(text=text, display=display, sound=sound)
        elif first.action == "PROCEDURE":
            command, script = self._read_command(component)
            log = _text(vevent, p.LOG_PROPERTY)
            event.action = CommandAction(
                command=command,
                script=script,
                xterm=log == p.XTERM_URL,
                display_output=log == p.DISPLAY_URL,
                log_file="" if log in (p.XTERM_URL, p.DISPLAY_URL) else log,
                hide_error=p.DONT_SHOW_ERROR_FLAG in first.flags,
                display=self._read_display_format(component),
                sound=sound,
            )
        elif first.action == "EMAIL":
            addresses = []
            for attendee in _as_list(component.get("ATTENDEE")):
                address = str(attendee)
                if address.lower().startswith("mailto:"):
                    address = address[len("mailto:") :]
                addresses.append(address)
            event.action = EmailAction(
                from_id=email_id_from_flags(first.flags),
                addresses=addresses,
                subject=_text(component, "SUMMARY"),
                body=_text(component, "DESCRIPTION"),
                attachments=[str(a) for a in _as_list(component.get("ATTACH"))],
                bcc=flags.email_bcc,
            )
        else:
            event.action = AudioAction(sound=self._read_sound(first, main=True))

        if not is_email:
            event.kmail_serial = -1
