"""Conversion between alarm options and X-KDE-KALARM-FLAGS tokens.

The event flags property is a ``;`` separated token list. Some tokens take
parameters in the following tokens, e.g. ``LATECANCEL;5`` or
``REMINDER;ONCE;-27M``. Unknown tokens are kept and written back after the
known ones so that calendars written by newer versions survive a round trip.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from . import properties as p

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440
MINUTES_PER_HOUR = 60


class EventFlags(BaseModel):
    """Event options carried by X-KDE-KALARM-FLAGS."""

    date_only: bool = False
    local_zone: bool = False
    confirm_ack: bool = False
    email_bcc: bool = False
    copy_to_organizer: bool = False
    exclude_holidays: bool = False
    work_time_only: bool = False
    late_cancel: int = Field(default=0, description="Minutes after which a late alarm is cancelled")
    auto_close: bool = False
    reminder_minutes: int = Field(default=0, description="Positive = before, negative = after")
    reminder_once: bool = False
    defer_default_minutes: int = 0
    defer_default_date_only: bool = False
    template_after_time: int = -1
    kmail_serial: int = -1
    archive: bool = False
    archive_repeat_at_login: bool = False
    extra: List[str] = Field(default_factory=list, description="Unrecognised tokens, in order")


class FlagDecodeResult(BaseModel):
    flags: EventFlags
    warnings: List[str] = Field(default_factory=list)


def reminder_to_string(minutes: int) -> str:
    """Format a signed minute count with the largest exact unit (D, H or M)."""
    unit = "M"
    count = abs(minutes)
    if count % MINUTES_PER_DAY == 0:
        unit = "D"
        count //= MINUTES_PER_DAY
    elif count % MINUTES_PER_HOUR == 0:
        unit = "H"
        count //= MINUTES_PER_HOUR
    if minutes < 0:
        count = -count
    return f"{count}{unit}"


def reminder_from_string(text: str) -> Optional[int]:
    """Parse a reminder duration token into signed minutes.

    Returns:
        The minutes, or None if the number or unit is invalid.
    """
    if len(text) < 2:
        return None
    multiplier = {"M": 1, "H": MINUTES_PER_HOUR, "D": MINUTES_PER_DAY}.get(text[-1])
    if multiplier is None:
        return None
    try:
        return int(text[:-1]) * multiplier
    except ValueError:
        return None


def _uint(text: str) -> Optional[int]:
    return int(text) if text.isascii() and text.isdigit() else None


def split_tokens(text: Optional[str]) -> List[str]:
    """Split a flags property value, skipping empty tokens."""
    if not text:
        return []
    return [token for token in str(text).split(p.SC) if token]


def join_tokens(tokens: List[str]) -> str:
    return p.SC.join(tokens)


def encode_event_flags(flags: EventFlags, template: bool = False, archived: bool = False) -> List[str]:
    """Encode event options as an ordered token list.

    Args:
        flags: The options to encode
        template: The event is a template, so TMPLAFTTIME is written
        archived: The event is archived, so ARCHIVE is not written

    Returns:
        Tokens in their fixed order, followed by any preserved unknown tokens
    """
    tokens: List[str] = []
    if flags.date_only:
        tokens.append(p.DATE_ONLY_FLAG)
    if flags.local_zone:
        tokens.append(p.LOCAL_ZONE_FLAG)
    if flags.confirm_ack:
        tokens.append(p.CONFIRM_ACK_FLAG)
    if flags.email_bcc:
        tokens.append(p.EMAIL_BCC_FLAG)
    if flags.copy_to_organizer:
        tokens.append(p.KORGANIZER_FLAG)
    if flags.exclude_holidays:
        tokens.append(p.EXCLUDE_HOLIDAYS_FLAG)
    if flags.work_time_only:
        tokens.append(p.WORK_TIME_ONLY_FLAG)
    if flags.late_cancel:
        tokens += [p.AUTO_CLOSE_FLAG if flags.auto_close else p.LATE_CANCEL_FLAG, str(flags.late_cancel)]
    if flags.reminder_minutes:
        tokens.append(p.REMINDER_FLAG)
        if flags.reminder_once:
            tokens.append(p.REMINDER_ONCE_FLAG)
        tokens.append(reminder_to_string(-flags.reminder_minutes))
    if flags.defer_default_minutes:
        param = str(flags.defer_default_minutes)
        if flags.defer_default_date_only:
            param += "D"
        tokens += [p.DEFER_FLAG, param]
    if template and flags.template_after_time >= 0:
        tokens += [p.TEMPL_AFTER_TIME_FLAG, str(flags.template_after_time)]
    if flags.kmail_serial >= 0:
        tokens += [p.KMAIL_ITEM_FLAG, str(flags.kmail_serial)]
    if flags.archive and not archived:
        tokens.append(p.ARCHIVE_FLAG)
        if flags.archive_repeat_at_login:
            tokens.append(p.AT_LOGIN_FLAG)
    tokens += flags.extra
    return tokens


def decode_event_flags(text: Optional[str]) -> FlagDecodeResult:
    """Decode an X-KDE-KALARM-FLAGS value.

    Tokens with an unparsable parameter are dropped and reported as
    warnings; the following token is then treated as a token in its own
    right. When both LATECANCEL and LATECLOSE appear the last one wins.
    """
    tokens = split_tokens(text)
    flags = EventFlags()
    warnings: List[str] = []

    def param(i: int) -> str:
        return tokens[i] if i < len(tokens) else ""

    def malformed(token: str, value: str) -> None:
        message = f"malformed_token: {token} parameter {value!r} ignored"
        logger.debug(message)
        warnings.append(message)

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == p.DATE_ONLY_FLAG:
            flags.date_only = True
        elif token == p.LOCAL_ZONE_FLAG:
            flags.local_zone = True
        elif token == p.CONFIRM_ACK_FLAG:
            flags.confirm_ack = True
        elif token == p.EMAIL_BCC_FLAG:
            flags.email_bcc = True
        elif token == p.KORGANIZER_FLAG:
            flags.copy_to_organizer = True
        elif token == p.EXCLUDE_HOLIDAYS_FLAG:
            flags.exclude_holidays = True
        elif token == p.WORK_TIME_ONLY_FLAG:
            flags.work_time_only = True
        elif token == p.ARCHIVE_FLAG:
            flags.archive = True
        elif token == p.AT_LOGIN_FLAG:
            flags.archive_repeat_at_login = True
        elif token in (p.LATE_CANCEL_FLAG, p.AUTO_CLOSE_FLAG):
            value = _uint(param(i + 1))
            if value is not None:
                i += 1
            # A missing or zero parameter means one minute
            flags.late_cancel = value or 1
            flags.auto_close = token == p.AUTO_CLOSE_FLAG
        elif token == p.REMINDER_FLAG:
            i += 1
            if param(i) == p.REMINDER_ONCE_FLAG:
                flags.reminder_once = True
                i += 1
            minutes = reminder_from_string(param(i))
            if minutes is None:
                malformed(token, param(i))
                minutes = 0
            flags.reminder_minutes = -minutes
        elif token == p.DEFER_FLAG:
            value_text = param(i + 1)
            date_only = value_text.endswith("D")
            value = _uint(value_text[:-1] if date_only else value_text)
            if value is None:
                malformed(token, value_text)
            else:
                flags.defer_default_minutes = value
                flags.defer_default_date_only = date_only
                i += 1
        elif token in (p.TEMPL_AFTER_TIME_FLAG, p.KMAIL_ITEM_FLAG):
            value = _uint(param(i + 1))
            if value is None:
                malformed(token, param(i + 1))
            else:
                if token == p.TEMPL_AFTER_TIME_FLAG:
                    flags.template_after_time = value
                else:
                    flags.kmail_serial = value
                i += 1
        else:
            flags.extra.append(token)
        i += 1

    return FlagDecodeResult(flags=flags, warnings=warnings)


def encode_alarm_flags(
    hidden_reminder: bool = False,
    speak: bool = False,
    exec_on_deferral: bool = False,
    cancel_on_error: bool = False,
    dont_show_error: bool = False,
    email_id: int = 0,
) -> List[str]:
    """Encode the flags of one VALARM."""
    tokens: List[str] = []
    if hidden_reminder:
        tokens.append(p.HIDDEN_REMINDER_FLAG)
    if speak:
        tokens.append(p.SPEAK_FLAG)
    if exec_on_deferral:
        tokens.append(p.EXEC_ON_DEFERRAL_FLAG)
    if cancel_on_error:
        tokens.append(p.CANCEL_ON_ERROR_FLAG)
    if dont_show_error:
        tokens.append(p.DONT_SHOW_ERROR_FLAG)
    if email_id:
        tokens += [p.EMAIL_ID_FLAG, str(email_id)]
    return tokens


def email_id_from_flags(tokens: List[str]) -> int:
    """Return the EMAILID parameter, or 0 if absent or invalid."""
    if p.EMAIL_ID_FLAG not in tokens:
        return 0
    i = tokens.index(p.EMAIL_ID_FLAG)
    value = _uint(tokens[i + 1]) if i + 1 < len(tokens) else None
    return value or 0


def parse_status(value: Optional[str]) -> Tuple[str, str]:
    """Split an event X-KDE-KALARM-TYPE value into category and parameter."""
    if not value:
        return "", ""
    text = str(value)
    category, _, param = text.partition(p.SC)
    return category, param
