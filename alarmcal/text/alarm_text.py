"""Email and to-do text embedded in display alarms.

A display alarm body may hold the headers and body of an email, or the
fields of a to-do item. In calendar storage the header prefixes are always
English so that a calendar written under one locale still parses under
another; they are translated only for display.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAIL_FROM_LINE = 0
MAIL_TO_LINE = 1
MAIL_CC_LINE = 2
MAIL_MIN_LINES = 4  # From, To, no Cc, Date, Subject

_FILE_URL_RE = re.compile(r"^file:/+")


@dataclass(frozen=True)
class TextPrefixes:
    """Header prefixes for one locale."""

    from_: str
    to: str
    cc: str
    date: str
    subject: str
    title: str
    location: str
    due: str


ENGLISH = TextPrefixes(
    from_="From:",
    to="To:",
    cc="Cc:",
    date="Date:",
    subject="Subject:",
    title="To-do:",
    location="Location:",
    due="Due:",
)

PREFIXES: Dict[str, TextPrefixes] = {
    "en": ENGLISH,
    "de": TextPrefixes(
        from_="Von:",
        to="An:",
        cc="Kopie:",
        date="Datum:",
        subject="Betreff:",
        title="Aufgabe:",
        location="Ort:",
        due="Fällig:",
    ),
    "fr": TextPrefixes(
        from_="De :",
        to="À :",
        cc="Cc :",
        date="Date :",
        subject="Objet :",
        title="Tâche :",
        location="Lieu :",
        due="Échéance :",
    ),
}


def get_prefixes(locale: Optional[str] = None) -> TextPrefixes:
    """Get the header prefixes for a locale such as "de" or "de_DE.UTF-8".

    Unknown locales fall back to English.
    """
    if not locale:
        return ENGLISH
    language = locale.split(".")[0].split("_")[0].split("-")[0].lower()
    prefixes = PREFIXES.get(language)
    if prefixes is None:
        logger.debug(f"No header translations for locale {locale!r}, using English")
        return ENGLISH
    return prefixes


def _lines(text: str) -> List[str]:
    return [line for line in text.split("\n") if line]


def _email_header_count(lines: List[str], prefixes: TextPrefixes) -> int:
    """Return the number of email header lines, or 0 if not an email."""
    if (
        len(lines) >= MAIL_MIN_LINES
        and lines[MAIL_FROM_LINE].startswith(prefixes.from_)
        and lines[MAIL_TO_LINE].startswith(prefixes.to)
    ):
        n = MAIL_CC_LINE
        if lines[MAIL_CC_LINE].startswith(prefixes.cc):
            n += 1
        if (
            len(lines) > n + 1
            and lines[n].startswith(prefixes.date)
            and lines[n + 1].startswith(prefixes.subject)
        ):
            return n + 2
    return 0


def _translate_headers(text: str, src: TextPrefixes, dst: TextPrefixes) -> Optional[str]:
    """Rewrite the email header prefixes of ``text`` from ``src`` to ``dst``.

    Returns None if the text is not an email in the ``src`` locale.
    """
    lines = _lines(text)
    n = _email_header_count(lines, src)
    if not n:
        return None

    has_cc = n > MAIL_CC_LINE + 2
    date_line = n - 2
    result = dst.from_ + lines[MAIL_FROM_LINE][len(src.from_) :] + "\n"
    result += dst.to + lines[MAIL_TO_LINE][len(src.to) :] + "\n"
    if has_cc:
        result += dst.cc + lines[MAIL_CC_LINE][len(src.cc) :] + "\n"
    result += dst.date + lines[date_line][len(src.date) :] + "\n"
    result += dst.subject + lines[date_line + 1][len(src.subject) :]

    i = text.find("\n", text.find(src.subject))
    if i > 0:
        result += text[i:]
    return result


def check_if_email(text: str, locale: Optional[str] = None) -> bool:
    """Check whether a display text is the text of an email."""
    return bool(_email_header_count(_lines(text), get_prefixes(locale)))


def email_headers(text: str, subject_only: bool, locale: Optional[str] = None) -> Optional[str]:
    """Return the email headers of a display text, or only its subject.

    Returns:
        The header lines, the subject text, or None if not an email.
    """
    prefixes = get_prefixes(locale)
    lines = _lines(text)
    n = _email_header_count(lines, prefixes)
    if not n:
        return None
    if subject_only:
        return lines[n - 1][len(prefixes.subject) :].strip()
    return "\n".join(lines[:n])


def to_storage_text(text: str, locale: Optional[str] = None) -> str:
    """Convert a display text to calendar storage form (English headers)."""
    translated = _translate_headers(text, get_prefixes(locale), ENGLISH)
    return text if translated is None else translated


def to_display_text(text: str, locale: Optional[str] = None) -> Tuple[str, bool]:
    """Convert a calendar storage text to display form.

    Returns:
        Tuple of the display text and whether the text is an email.
    """
    translated = _translate_headers(text, ENGLISH, get_prefixes(locale))
    if translated is None:
        return text, False
    return translated, True


to_calendar_text = to_storage_text
from_calendar_text = to_display_text


def todo_title(text: str, locale: Optional[str] = None) -> str:
    """Return the title line if the text is that of a to-do, else ""."""
    prefixes = get_prefixes(locale)
    lines = _lines(text)
    n = 0
    while n < len(lines) and "\t" in lines[n]:
        n += 1
    if not n or n > 3:
        return ""

    title = ""
    i = 0
    if lines[i].startswith(prefixes.title + "\t"):
        title = lines[i][len(prefixes.title) :].strip()
        i += 1
    if i < n and lines[i].startswith(prefixes.location + "\t"):
        i += 1
    if i < n and lines[i].startswith(prefixes.due + "\t"):
        i += 1
    if i == n:
        if title:
            return title
        if n < len(lines):
            return lines[n]
    return ""


def summary(event: Any, max_lines: int = 1, locale: Optional[str] = None) -> Tuple[str, bool]:
    """Return an alarm's summary text for single line or tooltip display.

    Args:
        event: The AlarmEvent to summarise
        max_lines: Maximum number of lines to return
        locale: Display locale

    Returns:
        Tuple of the text and whether it was truncated (other than to strip
        a trailing newline).
    """
    kind = event.action.kind
    if kind == "audio":
        text = _FILE_URL_RE.sub("/", event.action.sound.file or "")
    elif kind == "email":
        text = event.action.subject
    elif kind == "command":
        text = _FILE_URL_RE.sub("/", event.clean_text())
    elif kind == "file":
        text = event.clean_text()
    else:
        text = event.clean_text()
        headers = email_headers(text, max_lines <= 1, locale)
        if headers is not None:
            return headers, True
        if max_lines == 1:
            title = todo_title(text, locale)
            if title:
                return title, True

    if text.count("\n") < max_lines:
        return text, False
    newline = -1
    for _ in range(max_lines):
        newline = text.find("\n", newline + 1)
        if newline < 0:
            return text, False
    if newline == len(text) - 1:
        return text[:newline], False
    return text[: newline + (0 if max_lines <= 1 else 1)] + "...", True


class TextType(Enum):
    NONE = "none"
    EMAIL = "email"
    SCRIPT = "script"
    TODO = "todo"


class AlarmText:
    """Structured text of an email, to-do or script for a display alarm."""

    def __init__(self, text: str = "", locale: Optional[str] = None) -> None:
        self.locale = locale
        self.clear()
        self.set_text(text)

    def clear(self) -> None:
        self._type = TextType.NONE
        self._body = ""
        self._from = ""
        self._to = ""
        self._cc = ""
        self._time = ""
        self._subject = ""
        self._email_id = -1

    def set_text(self, text: str) -> None:
        self.clear()
        self._body = text
        if text.startswith("#!"):
            self._type = TextType.SCRIPT

    def set_script(self, text: str) -> None:
        self.set_text(text)
        self._type = TextType.SCRIPT

    def set_email(
        self,
        to: str,
        from_: str,
        cc: str,
        time: str,
        subject: str,
        body: str,
        email_id: int = -1,
    ) -> None:
        self.clear()
        self._type = TextType.EMAIL
        self._to = to
        self._from = from_
        self._cc = cc
        self._time = time
        self._subject = subject
        self._body = body
        self._email_id = email_id

    def set_todo(self, summary: str, description: str = "", location: str = "", due: str = "") -> None:
        """Set the text from a to-do item.

        Args:
            summary: To-do title
            description: To-do description
            location: To-do location
            due: Formatted due date, empty if none or same as start
        """
        self.clear()
        self._type = TextType.TODO
        self._subject = summary
        self._body = description
        self._to = location
        self._time = due

    def display_text(self) -> str:
        """Return the text in display format."""
        p = get_prefixes(self.locale)
        text = ""
        if self._type == TextType.EMAIL:
            text = f"{p.from_}\t{self._from}\n{p.to}\t{self._to}\n"
            if self._cc:
                text += f"{p.cc}\t{self._cc}\n"
            if self._time:
                text += f"{p.date}\t{self._time}\n"
            text += f"{p.subject}\t{self._subject}"
            if self._body:
                text += "\n\n" + self._body
        elif self._type == TextType.TODO:
            if self._subject:
                text = f"{p.title}\t{self._subject}\n"
            if self._to:
                text += f"{p.location}\t{self._to}\n"
            if self._time:
                text += f"{p.due}\t{self._time}\n"
            if self._body:
                if text:
                    text += "\n"
                text += self._body
        return text or self._body

    def _email_field(self, value: str) -> str:
        return value if self._type == TextType.EMAIL else ""

    def _todo_field(self, value: str) -> str:
        return value if self._type == TextType.TODO else ""

    @property
    def to(self) -> str:
        return self._email_field(self._to)

    @property
    def from_(self) -> str:
        return self._email_field(self._from)

    @property
    def cc(self) -> str:
        return self._email_field(self._cc)

    @property
    def time(self) -> str:
        return self._email_field(self._time)

    @property
    def subject(self) -> str:
        return self._email_field(self._subject)

    @property
    def body(self) -> str:
        return self._email_field(self._body)

    @property
    def summary(self) -> str:
        return self._todo_field(self._subject)

    @property
    def location(self) -> str:
        return self._todo_field(self._to)

    @property
    def due(self) -> str:
        return self._todo_field(self._time)

    @property
    def description(self) -> str:
        return self._todo_field(self._body)

    @property
    def email_id(self) -> int:
        return self._email_id

    def is_empty(self) -> bool:
        if self._body:
            return False
        if self._type != TextType.EMAIL:
            return True
        return not (self._from or self._to or self._cc or self._time or self._subject)

    def is_email(self) -> bool:
        return self._type == TextType.EMAIL

    def is_script(self) -> bool:
        return self._type == TextType.SCRIPT

    def is_todo(self) -> bool:
        return self._type == TextType.TODO
