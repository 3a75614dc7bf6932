"""Field-by-field comparison of two alarm events.

Used to report what differs between two versions of the same alarm, for
example when an edit conflicts with a change made elsewhere.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .event import AlarmEvent
from .models import CommandAction, EmailAction, FileAction, MessageAction, SoundSettings

logger = logging.getLogger(__name__)

# Field keys with their English labels, in report order
DEFAULT_LABELS: Dict[str, str] = {
    "id": "ID",
    "revision": "Revision",
    "alarm_type": "Alarm type",
    "alarm_status": "Alarm status",
    "template_name": "Template name",
    "created": "Creation time",
    "start": "Start time",
    "template_after_time": "Template after time",
    "recurrence": "Recurrence",
    "next_recurrence": "Next recurrence",
    "repeat_interval": "Sub repetition interval",
    "repeat_count": "Sub repetition count",
    "next_repeat": "Next repetition",
    "exclude_holidays": "Holidays excluded",
    "work_time_only": "Work time only",
    "late_cancel": "Late cancel",
    "auto_close": "Auto close",
    "copy_to_organizer": "Copy to KOrganizer",
    "enabled": "Enabled",
    "read_only": "Read only",
    "archive": "Archive",
    "custom_properties": "Custom properties",
    "message_text": "Message text",
    "message_file": "Message file",
    "fg_colour": "Foreground color",
    "bg_colour": "Background color",
    "font": "Font",
    "pre_action": "Pre-alarm action",
    "pre_action_cancel": "Pre-alarm action cancel",
    "pre_action_no_error": "Pre-alarm action no error",
    "post_action": "Post-alarm action",
    "confirm_ack": "Confirm acknowledgement",
    "kmail_serial": "KMail serial number",
    "sound": "Sound",
    "sound_repeat": "Sound repeat",
    "sound_volume": "Sound volume",
    "sound_fade_volume": "Sound fade volume",
    "sound_fade_time": "Sound fade time",
    "reminder": "Reminder",
    "reminder_once": "Reminder once",
    "deferral": "Deferral",
    "defer_default": "Deferral default",
    "defer_default_date_only": "Deferral default date only",
    "command": "Command",
    "log_file": "Log file",
    "command_xterm": "Command X-terminal",
    "email_subject": "Email subject",
    "email_from_id": "Email sender ID",
    "email_to": "Email to",
    "email_bcc": "Email bcc",
    "email_body": "Email body",
    "email_attachments": "Email attachments",
}

ACTION_NAMES = {
    "message": "Display message",
    "file": "Display file",
    "command": "Command",
    "email": "Email",
    "audio": "Audio",
}


@dataclass(frozen=True)
class Difference:
    """A field whose formatted value differs between two events."""

    label: str
    left: str
    right: str


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def _sound(event: AlarmEvent) -> Optional[SoundSettings]:
    sound = getattr(event.action, "sound", None)
    return sound if isinstance(sound, SoundSettings) else None


class EventFormatter:
    """Renders individual event fields as text.

    Each formatter method returns None when the field does not apply to the
    event, for example the message text of an email alarm.
    """

    def __init__(self) -> None:
        self._formatters: Dict[str, Callable[[AlarmEvent], Optional[str]]] = {
            "id": lambda e: e.id,
            "revision": lambda e: str(e.revision),
            "alarm_type": lambda e: ACTION_NAMES[e.action.kind],
            "alarm_status": self._status,
            "template_name": lambda e: e.template_name if e.is_template else None,
            "created": lambda e: e.created.format() if e.created else "",
            "start": lambda e: e.start.format(),
            "template_after_time": lambda e: str(e.template_after_time) if e.is_template else None,
            "recurrence": self._recurrence,
            "next_recurrence": lambda e: e.main_date_time().format() if e.recurs else None,
            "repeat_interval": lambda e: str(e.repetition.interval) if e.repetition else None,
            "repeat_count": lambda e: str(e.repetition.count) if e.repetition else None,
            "next_repeat": lambda e: str(e.next_repeat) if e.repetition else None,
            "exclude_holidays": lambda e: _yes_no(e.exclude_holidays),
            "work_time_only": lambda e: _yes_no(e.work_time_only),
            "late_cancel": lambda e: str(e.late_cancel),
            "auto_close": lambda e: _yes_no(e.auto_close) if e.late_cancel else None,
            "copy_to_organizer": lambda e: _yes_no(e.copy_to_organizer),
            "enabled": lambda e: _yes_no(e.enabled),
            "read_only": lambda e: _yes_no(e.read_only),
            "archive": lambda e: _yes_no(e.archive),
            "custom_properties": self._custom_properties,
            "message_text": lambda e: e.action.text if isinstance(e.action, MessageAction) else None,
            "message_file": lambda e: e.action.path if isinstance(e.action, FileAction) else None,
            "fg_colour": lambda e: self._display(e, "fg_colour"),
            "bg_colour": lambda e: self._display(e, "bg_colour"),
            "font": lambda e: self._display(e, "font"),
            "pre_action": lambda e: e.pre_action if self._displays(e) else None,
            "pre_action_cancel": lambda e: _yes_no(e.cancel_on_pre_action_error) if e.pre_action else None,
            "pre_action_no_error": lambda e: _yes_no(e.dont_show_pre_action_error) if e.pre_action else None,
            "post_action": lambda e: e.post_action if self._displays(e) else None,
            "confirm_ack": lambda e: _yes_no(e.confirm_ack) if self._displays(e) else None,
            "kmail_serial": lambda e: str(e.kmail_serial) if self._displays(e) else None,
            "sound": self._sound,
            "sound_repeat": lambda e: self._sound_file_field(e, lambda s: str(s.repeat_pause)),
            "sound_volume": lambda e: self._sound_file_field(e, lambda s: f"{s.volume:.2f}"),
            "sound_fade_volume": lambda e: self._sound_file_field(e, lambda s: f"{s.fade_volume:.2f}"),
            "sound_fade_time": lambda e: self._sound_file_field(e, lambda s: str(s.fade_seconds)),
            "reminder": lambda e: str(e.reminder_minutes),
            "reminder_once": lambda e: _yes_no(e.reminder_once) if e.reminder_minutes > 0 else None,
            "deferral": self._deferral,
            "defer_default": lambda e: str(e.defer_default_minutes),
            "defer_default_date_only": lambda e: (
                _yes_no(e.defer_default_date_only) if e.defer_default_minutes else None
            ),
            "command": lambda e: self._command(e, lambda a: a.command),
            "log_file": lambda e: self._command(e, lambda a: a.log_file),
            "command_xterm": lambda e: self._command(e, lambda a: _yes_no(a.xterm)),
            "email_subject": lambda e: self._email(e, lambda a: a.subject),
            "email_from_id": lambda e: self._email(e, lambda a: str(a.from_id)),
            "email_to": lambda e: self._email(e, lambda a: ", ".join(a.addresses)),
            "email_bcc": lambda e: self._email(e, lambda a: _yes_no(a.bcc)),
            "email_body": lambda e: self._email(e, lambda a: a.body),
            "email_attachments": lambda e: self._email(e, lambda a: ", ".join(a.attachments)),
        }

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self._formatters)

    def format(self, field: str, event: AlarmEvent) -> Optional[str]:
        """Format one field of an event, or return None if it does not apply."""
        return self._formatters[field](event)

    @staticmethod
    def _displays(event: AlarmEvent) -> bool:
        return isinstance(event.action, (MessageAction, FileAction)) or (
            isinstance(event.action, CommandAction) and event.action.display_output
        )

    def _display(self, event: AlarmEvent, name: str) -> Optional[str]:
        if not self._displays(event):
            return None
        value = getattr(event.action.display, name)  # type: ignore[union-attr]
        return value or "Default"

    @staticmethod
    def _status(event: AlarmEvent) -> str:
        status = event.category.value.capitalize()
        if event.displaying is not None:
            status += " (displaying)"
        return status

    @staticmethod
    def _recurrence(event: AlarmEvent) -> str:
        recurrence = event.recurrence
        if recurrence is None:
            return "None"
        text = str(recurrence)
        if recurrence.exdates:
            text += "; EXDATE " + ",".join(sorted(ex.isoformat() for ex in recurrence.exdates))
        return text

    @staticmethod
    def _custom_properties(event: AlarmEvent) -> str:
        return "; ".join(f"{name}={value}" for name, value in sorted(event.custom_properties.items()))

    @staticmethod
    def _sound(event: AlarmEvent) -> Optional[str]:
        sound = _sound(event)
        if sound is None:
            return None
        if sound.file:
            return sound.file
        if sound.speak:
            return "Speak"
        return "Beep" if sound.beep else "None"

    @staticmethod
    def _sound_file_field(event: AlarmEvent, render: Callable[[SoundSettings], str]) -> Optional[str]:
        sound = _sound(event)
        if sound is None or not sound.file:
            return None
        return render(sound)

    @staticmethod
    def _deferral(event: AlarmEvent) -> str:
        if event.deferral is None:
            return "None"
        text = event.deferral.time.format()
        return f"{text} (reminder)" if event.deferral.reminder else text

    @staticmethod
    def _command(event: AlarmEvent, render: Callable[[CommandAction], str]) -> Optional[str]:
        return render(event.action) if isinstance(event.action, CommandAction) else None

    @staticmethod
    def _email(event: AlarmEvent, render: Callable[[EmailAction], str]) -> Optional[str]:
        return render(event.action) if isinstance(event.action, EmailAction) else None


_default_formatter = EventFormatter()


def compare(
    left: AlarmEvent,
    right: AlarmEvent,
    labels: Optional[Mapping[str, str]] = None,
    formatter: Optional[EventFormatter] = None,
) -> List[Difference]:
    """List the fields whose values differ between two events.

    A field is reported only if it applies to at least one of the events.

    Args:
        left: First event
        right: Second event
        labels: Field key to label mapping; missing keys fall back to English
        formatter: Value formatter to use instead of the default one

    Returns:
        Differences in a fixed field order
    """
    formatter = formatter or _default_formatter
    differences: List[Difference] = []
    for field in formatter.fields:
        left_value = formatter.format(field, left)
        right_value = formatter.format(field, right)
        if left_value is None and right_value is None:
            continue
        if left_value == right_value:
            continue
        label = (labels or {}).get(field) or DEFAULT_LABELS[field]
        differences.append(Difference(label, left_value or "", right_value or ""))

    logger.debug(f"Compared {left.id} with {right.id}: {len(differences)} differences")
    return differences
