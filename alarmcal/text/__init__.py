"""Email and to-do text formatting for display alarms."""

from .alarm_text import (
    ENGLISH,
    PREFIXES,
    AlarmText,
    TextPrefixes,
    check_if_email,
    email_headers,
    from_calendar_text,
    get_prefixes,
    summary,
    to_calendar_text,
    to_display_text,
    to_storage_text,
    todo_title,
)

__all__ = [
    "ENGLISH",
    "PREFIXES",
    "AlarmText",
    "TextPrefixes",
    "check_if_email",
    "email_headers",
    "from_calendar_text",
    "get_prefixes",
    "summary",
    "to_calendar_text",
    "to_display_text",
    "to_storage_text",
    "todo_title",
]
