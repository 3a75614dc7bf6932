"""Unit tests for the X-KDE-KALARM-FLAGS token codec."""

import pytest

from alarmcal.ics.flags import (
    EventFlags,
    decode_event_flags,
    email_id_from_flags,
    encode_alarm_flags,
    encode_event_flags,
    parse_status,
    reminder_from_string,
    reminder_to_string,
    split_tokens,
)


@pytest.fixture
def full_flags() -> EventFlags:
    """Flags with every option set."""
    return EventFlags(
        date_only=True,
        local_zone=True,
        confirm_ack=True,
        email_bcc=True,
        copy_to_organizer=True,
        exclude_holidays=True,
        work_time_only=True,
        late_cancel=10,
        auto_close=True,
        reminder_minutes=90,
        reminder_once=True,
        defer_default_minutes=6,
        defer_default_date_only=True,
        template_after_time=30,
        kmail_serial=1234,
        archive=True,
        archive_repeat_at_login=True,
        extra=["NOTIFY"],
    )


class TestReminderDurations:
    """Test the signed reminder duration tokens."""

    @pytest.mark.parametrize(
        ("minutes", "text"),
        [(-27, "-27M"), (120, "2H"), (1440, "1D"), (-2880, "-2D"), (90, "90M")],
    )
    def test_reminder_to_string(self, minutes: int, text: str) -> None:
        """Test the largest exact unit is used."""
        assert reminder_to_string(minutes) == text

    def test_reminder_from_string(self) -> None:
        """Test units multiply the count."""
        assert reminder_from_string("3H") == 180
        assert reminder_from_string("-1D") == -1440
        assert reminder_from_string("15M") == 15

    @pytest.mark.parametrize("text", ["", "5", "5X", "xM"])
    def test_reminder_from_string_invalid(self, text: str) -> None:
        """Test invalid numbers and units are rejected."""
        assert reminder_from_string(text) is None


class TestEncodeEventFlags:
    """Test event flag encoding."""

    def test_empty_flags(self) -> None:
        """Test default flags produce no tokens."""
        assert encode_event_flags(EventFlags()) == []

    def test_full_flags_order(self, full_flags: EventFlags) -> None:
        """Test tokens are written in their fixed order with unknown tokens last."""
        assert encode_event_flags(full_flags, template=True) == [
            "DATE",
            "LOCAL",
            "ACKCONF",
            "BCC",
            "KORG",
            "EXHOLIDAYS",
            "WORKTIME",
            "LATECLOSE",
            "10",
            "REMINDER",
            "ONCE",
            "-90M",
            "DEFER",
            "6D",
            "TMPLAFTTIME",
            "30",
            "KMAIL",
            "1234",
            "ARCHIVE",
            "LOGIN",
            "NOTIFY",
        ]

    def test_reminder_sign_is_inverted(self) -> None:
        """Test a reminder before the alarm is stored as a negative duration."""
        assert encode_event_flags(EventFlags(reminder_minutes=120)) == ["REMINDER", "-2H"]
        assert encode_event_flags(EventFlags(reminder_minutes=-30)) == ["REMINDER", "30M"]

    def test_template_after_time_only_for_templates(self) -> None:
        """Test TMPLAFTTIME is written only for templates."""
        flags = EventFlags(template_after_time=5)
        assert encode_event_flags(flags) == []
        assert encode_event_flags(flags, template=True) == ["TMPLAFTTIME", "5"]

    def test_archive_not_written_when_archived(self) -> None:
        """Test ARCHIVE is omitted for archived events."""
        flags = EventFlags(archive=True, archive_repeat_at_login=True)
        assert encode_event_flags(flags, archived=True) == []
        assert encode_event_flags(flags) == ["ARCHIVE", "LOGIN"]


class TestDecodeEventFlags:
    """Test event flag decoding."""

    def test_empty(self) -> None:
        """Test empty and missing values decode to defaults."""
        assert decode_event_flags("").flags == EventFlags()
        assert decode_event_flags(None).flags == EventFlags()

    def test_round_trip_is_idempotent(self, full_flags: EventFlags) -> None:
        """Test decoding encoded flags gives the same flags and tokens."""
        tokens = encode_event_flags(full_flags, template=True)
        result = decode_event_flags(";".join(tokens))

        assert result.warnings == []
        assert result.flags == full_flags
        assert encode_event_flags(result.flags, template=True) == tokens

    def test_defer_date_only(self) -> None:
        """Test DEFER;6D is six minutes, date only."""
        flags = decode_event_flags("DEFER;6D").flags
        assert flags.defer_default_minutes == 6
        assert flags.defer_default_date_only is True

    def test_defer_minutes(self) -> None:
        """Test DEFER;7 is seven minutes, not date only."""
        flags = decode_event_flags("DEFER;7").flags
        assert flags.defer_default_minutes == 7
        assert flags.defer_default_date_only is False

    def test_reminder_after(self) -> None:
        """Test a positive stored duration is a reminder after the alarm."""
        flags = decode_event_flags("REMINDER;27M").flags
        assert flags.reminder_minutes == -27
        assert flags.reminder_once is False

    def test_reminder_once(self) -> None:
        """Test ONCE is read between REMINDER and its duration."""
        flags = decode_event_flags("REMINDER;ONCE;-1H").flags
        assert flags.reminder_minutes == 60
        assert flags.reminder_once is True

    def test_reminder_bad_unit(self) -> None:
        """Test a bad reminder unit gives no reminder and a warning."""
        result = decode_event_flags("REMINDER;5X;ACKCONF")
        assert result.flags.reminder_minutes == 0
        assert result.flags.confirm_ack is True
        assert len(result.warnings) == 1

    def test_malformed_parameter_does_not_consume_next_token(self) -> None:
        """Test a malformed KMAIL parameter is dropped and read as a token."""
        result = decode_event_flags("KMAIL;ACKCONF")

        assert result.flags.kmail_serial == -1
        assert result.flags.confirm_ack is True
        assert result.warnings and result.warnings[0].startswith("malformed_token")

    def test_malformed_defer(self) -> None:
        """Test a malformed DEFER parameter leaves the default unset."""
        result = decode_event_flags("DEFER;soon")
        assert result.flags.defer_default_minutes == 0
        assert result.flags.extra == ["soon"]
        assert len(result.warnings) == 1

    @pytest.mark.parametrize("value", ["²", "٣", "５"])
    def test_non_ascii_digits_are_malformed(self, value: str) -> None:
        """Test a parameter of non-ASCII digits is dropped with a warning."""
        result = decode_event_flags(f"ACKCONF;DEFER;{value}")

        assert result.flags.confirm_ack is True
        assert result.flags.defer_default_minutes == 0
        assert result.flags.extra == [value]
        assert len(result.warnings) == 1

    def test_late_cancel_missing_parameter(self) -> None:
        """Test LATECANCEL without a number means one minute."""
        flags = decode_event_flags("LATECANCEL;ACKCONF").flags
        assert flags.late_cancel == 1
        assert flags.confirm_ack is True

    def test_late_cancel_last_wins(self) -> None:
        """Test the last of LATECLOSE and LATECANCEL decides auto close."""
        flags = decode_event_flags("LATECLOSE;5;LATECANCEL;3").flags
        assert flags.late_cancel == 3
        assert flags.auto_close is False

        flags = decode_event_flags("LATECANCEL;3;LATECLOSE;5").flags
        assert flags.late_cancel == 5
        assert flags.auto_close is True

    def test_unknown_tokens_preserved_in_order(self) -> None:
        """Test unknown tokens are kept and written back after known ones."""
        result = decode_event_flags("NOTIFY;DATE;FUTURE")
        assert result.flags.extra == ["NOTIFY", "FUTURE"]
        assert encode_event_flags(result.flags) == ["DATE", "NOTIFY", "FUTURE"]


class TestAlarmFlags:
    """Test VALARM flags and helpers."""

    def test_encode_alarm_flags(self) -> None:
        """Test alarm flag token order."""
        tokens = encode_alarm_flags(
            hidden_reminder=True,
            speak=True,
            exec_on_deferral=True,
            cancel_on_error=True,
            dont_show_error=True,
            email_id=3,
        )
        assert tokens == ["HIDE", "SPEAK", "EXECDEFER", "ERRCANCEL", "ERRNOSHOW", "EMAILID", "3"]

    def test_email_id_from_flags(self) -> None:
        """Test the EMAILID parameter is read, defaulting to 0."""
        assert email_id_from_flags(["EMAILID", "4"]) == 4
        assert email_id_from_flags(["EMAILID"]) == 0
        assert email_id_from_flags(["EMAILID", "x"]) == 0
        assert email_id_from_flags([]) == 0

    def test_split_tokens_skips_empty(self) -> None:
        """Test empty tokens are skipped."""
        assert split_tokens("DATE;;ACKCONF;") == ["DATE", "ACKCONF"]

    def test_parse_status(self) -> None:
        """Test the event TYPE value splits into category and parameter."""
        assert parse_status("DISPLAYING;3;DEFER") == ("DISPLAYING", "3;DEFER")
        assert parse_status("ACTIVE") == ("ACTIVE", "")
        assert parse_status(None) == ("", "")
