"""Unit tests for event comparison."""

from datetime import timedelta

from alarmcal.events import (
    DEFAULT_LABELS,
    AlarmEvent,
    CommandAction,
    CommandError,
    Difference,
    EventFormatter,
    Recurrence,
    compare,
)


class TestCompare:
    """Test field-by-field event comparison."""

    def test_copy_has_no_differences(self, event: AlarmEvent) -> None:
        """Test an event equals its copy."""
        assert compare(event, event.copy()) == []

    def test_single_difference(self, event: AlarmEvent) -> None:
        """Test one changed field is reported with both values."""
        other = event.copy()
        other.action.text = "Stretch"

        assert compare(event, other) == [Difference("Message text", "Take a break", "Stretch")]

    def test_symmetric(self, event: AlarmEvent) -> None:
        """Test swapping the events swaps the values."""
        other = event.copy()
        other.set_reminder(10)
        other.set_late_cancel(5)

        forward = compare(event, other)
        backward = compare(other, event)

        assert [d.label for d in forward] == [d.label for d in backward]
        assert [(d.left, d.right) for d in forward] == [(d.right, d.left) for d in backward]
        assert Difference("Reminder", "0", "10") in forward
        assert Difference("Late cancel", "0", "5") in forward

    def test_command_error_ignored(self, event: AlarmEvent) -> None:
        """Test the transient command error is not compared."""
        other = event.copy()
        other.command_error = CommandError.MAIN
        assert compare(event, other) == []

    def test_custom_labels(self, event: AlarmEvent) -> None:
        """Test caller labels replace the English ones."""
        other = event.copy()
        other.action.text = "Stretch"
        differences = compare(event, other, labels={"message_text": "Texte du message"})
        assert [d.label for d in differences] == ["Texte du message"]

    def test_action_kind_change(self, event: AlarmEvent) -> None:
        """Test changing the action reports the type and both payloads."""
        other = event.copy()
        other.action = CommandAction(command="ls")

        labels = {d.label: d for d in compare(event, other)}

        assert labels["Alarm type"] == Difference("Alarm type", "Display message", "Command")
        assert labels["Message text"].right == ""
        assert labels["Command"] == Difference("Command", "", "ls")

    def test_recurrence_difference(self, event: AlarmEvent) -> None:
        """Test a recurrence is compared by its rule."""
        other = event.copy()
        other.set_recurrence(Recurrence.daily(other.start.value))
        labels = [d.label for d in compare(event, other)]
        assert "Recurrence" in labels
        assert "Next recurrence" in labels

    def test_exception_dates_difference(self, event: AlarmEvent) -> None:
        """Test recurrences differing only in their exception dates are different."""
        event.set_recurrence(Recurrence.daily(event.start.value))
        other = event.copy()
        skipped = event.start.value + timedelta(days=2)
        other.set_recurrence(other.recurrence.with_exdates([skipped]))

        labels = {d.label: d for d in compare(event, other)}

        assert "Recurrence" in labels
        assert labels["Recurrence"].right.endswith(f"EXDATE {skipped.isoformat()}")
        assert "EXDATE" not in labels["Recurrence"].left


class TestEventFormatter:
    """Test individual field formatting."""

    def test_fields_have_labels(self) -> None:
        """Test every formatted field has an English label."""
        formatter = EventFormatter()
        assert set(formatter.fields) == set(DEFAULT_LABELS)
        assert formatter.fields[0] == "id"

    def test_field_not_applicable(self, event: AlarmEvent) -> None:
        """Test fields of other action kinds are not applicable."""
        formatter = EventFormatter()
        assert formatter.format("command", event) is None
        assert formatter.format("message_text", event) == "Take a break"
        assert formatter.format("alarm_status", event) == "Active"
