"""Value types used by the alarm event model."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..timezone import AlarmDateTime

DEFAULT_BG_COLOUR = "#ffffff"
DEFAULT_FG_COLOUR = "#000000"


class EventCategory(str, Enum):
    """Which calendar an event belongs to."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    TEMPLATE = "template"
    DISPLAYING = "displaying"


class ReminderState(str, Enum):
    """State of the reminder alarm.

    HIDDEN is a reminder after the main alarm which is suppressed because
    the main alarm has been deferred past it.
    """

    NONE = "none"
    ACTIVE = "active"
    HIDDEN = "hidden"


class CommandError(str, Enum):
    """Last command execution failure; transient, never stored."""

    NONE = "none"
    MAIN = "main"
    PRE = "pre"
    POST = "post"
    PRE_POST = "pre_post"


class OccurType(str, Enum):
    """Kind of occurrence found by an occurrence query."""

    NO_OCCURRENCE = "no_occurrence"
    FIRST_OR_ONLY_OCCURRENCE = "first_or_only_occurrence"
    RECURRENCE_DATE = "recurrence_date"
    RECURRENCE_DATE_TIME = "recurrence_date_time"
    LAST_RECURRENCE = "last_recurrence"


class OccurOption(str, Enum):
    """How sub-repetitions are treated by ``next_occurrence``."""

    IGNORE_REPETITION = "ignore_repetition"
    RETURN_REPETITION = "return_repetition"
    ALLOW_FOR_REPETITION = "allow_for_repetition"


class DeferLimit(str, Enum):
    """What limits how far an alarm may be deferred."""

    LIMIT_NONE = "none"
    LIMIT_MAIN = "main"
    LIMIT_RECURRENCE = "recurrence"
    LIMIT_REPETITION = "repetition"
    LIMIT_REMINDER = "reminder"


class TriggerType(str, Enum):
    """Which trigger time to calculate."""

    MAIN = "main"
    ALL = "all"
    WORK = "work"
    ALL_WORK = "all_work"
    DISPLAY = "display"


class AlarmType(str, Enum):
    """Sub-alarms making up an event, in evaluation order."""

    MAIN = "main"
    REMINDER = "reminder"
    DEFERRED = "deferred"
    DEFERRED_REMINDER = "deferred_reminder"
    AT_LOGIN = "at_login"
    DISPLAYING = "displaying"


class Occurrence(NamedTuple):
    """Result of an occurrence query."""

    type: OccurType
    when: Optional[AlarmDateTime] = None
    repetition: bool = False

    @classmethod
    def none(cls) -> "Occurrence":
        return cls(OccurType.NO_OCCURRENCE)


@dataclass(frozen=True)
class Deferral:
    """A pending deferral; date-only if ``time`` is date-only."""

    time: AlarmDateTime
    reminder: bool = False

    @property
    def date_only(self) -> bool:
        return self.time.date_only


@dataclass(frozen=True)
class DisplayingState:
    """State of an alarm held in the displaying calendar while shown."""

    time: AlarmDateTime
    at_login: bool = False
    reminder: bool = False
    deferral: bool = False
    timed_deferral: bool = False
    resource_id: int = -1
    show_edit: bool = False
    show_defer: bool = False


@dataclass(frozen=True)
class Alarm:
    """One of the event's pending sub-alarms."""

    type: AlarmType
    time: AlarmDateTime


class DisplayFormat(BaseModel):
    """Colours and font of a displayed message."""

    bg_colour: str = Field(default=DEFAULT_BG_COLOUR, description="Background colour, #rrggbb")
    fg_colour: str = Field(default=DEFAULT_FG_COLOUR, description="Foreground colour, #rrggbb")
    font: Optional[str] = Field(default=None, description="Font description, None for the default font")

    @property
    def default_font(self) -> bool:
        return not self.font


class SoundSettings(BaseModel):
    """Sound played with an alarm."""

    file: str = Field(default="", description="Audio file URL, empty for none")
    beep: bool = False
    speak: bool = False
    volume: float = Field(default=-1, description="0..1, or -1 for the default volume")
    fade_volume: float = Field(default=-1, description="Initial volume when fading, or -1")
    fade_seconds: int = Field(default=0, description="Fade duration in seconds")
    repeat_pause: int = Field(default=-1, description="Seconds between repeats, -1 for no repeat")

    @model_validator(mode="after")
    def _speak_disables_beep(self) -> "SoundSettings":
        if self.speak and self.beep:
            self.beep = False
        return self

    @property
    def repeat(self) -> bool:
        return self.repeat_pause >= 0

    @property
    def is_set(self) -> bool:
        return self.beep or self.speak or bool(self.file)


class _ActionBase(BaseModel):
    model_config = ConfigDict(validate_assignment=True)


class MessageAction(_ActionBase):
    kind: Literal["message"] = "message"
    text: str = ""
    display: DisplayFormat = Field(default_factory=DisplayFormat)
    sound: SoundSettings = Field(default_factory=SoundSettings)


class FileAction(_ActionBase):
    kind: Literal["file"] = "file"
    path: str = ""
    display: DisplayFormat = Field(default_factory=DisplayFormat)
    sound: SoundSettings = Field(default_factory=SoundSettings)


class CommandAction(_ActionBase):
    kind: Literal["command"] = "command"
    command: str = ""
    script: bool = False
    xterm: bool = False
    display_output: bool = False
    log_file: str = ""
    hide_error: bool = False
    display: DisplayFormat = Field(default_factory=DisplayFormat)
    sound: SoundSettings = Field(default_factory=SoundSettings)

    @field_validator("command")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class EmailAction(_ActionBase):
    kind: Literal["email"] = "email"
    from_id: int = 0
    addresses: List[str] = Field(default_factory=list)
    subject: str = ""
    body: str = ""
    attachments: List[str] = Field(default_factory=list)
    bcc: bool = False


class AudioAction(_ActionBase):
    kind: Literal["audio"] = "audio"
    sound: SoundSettings = Field(default_factory=SoundSettings)

    @field_validator("sound")
    @classmethod
    def _no_beep_or_speak(cls, sound: SoundSettings) -> SoundSettings:
        if sound.beep or sound.speak:
            return sound.model_copy(update={"beep": False, "speak": False})
        return sound


Action = Union[MessageAction, FileAction, CommandAction, EmailAction, AudioAction]
