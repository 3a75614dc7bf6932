"""Shared fixtures for alarmcal unit tests."""

from datetime import datetime
from typing import Any, Callable
from unittest.mock import Mock
from zoneinfo import ZoneInfo

import pytest

from alarmcal.config.settings import AlarmCalSettings
from alarmcal.events import AlarmEvent, MessageAction, ScheduleContext
from alarmcal.ics.serializer import AlarmSerializer
from alarmcal.timezone import AlarmDateTime

LONDON = ZoneInfo("Europe/London")


@pytest.fixture
def test_settings() -> Mock:
    """Create mock settings with the calendar identity defaults."""
    settings = Mock(spec=AlarmCalSettings)
    settings.program_name = "KAlarm"
    settings.program_version = "2.7.0"
    settings.min_calendar_version = "2.0.0"
    return settings


@pytest.fixture
def context() -> ScheduleContext:
    """Create a schedule context with default working hours and no holidays."""
    return ScheduleContext()


@pytest.fixture
def serializer(test_settings: Mock, context: ScheduleContext) -> AlarmSerializer:
    """Create a serializer sharing the test schedule context."""
    return AlarmSerializer(test_settings, context=context)


@pytest.fixture
def start() -> AlarmDateTime:
    """09:30 on Friday 1 March 2030, London time (GMT)."""
    return AlarmDateTime(datetime(2030, 3, 1, 9, 30, tzinfo=LONDON))


@pytest.fixture
def make_event(context: ScheduleContext, start: AlarmDateTime) -> Callable[..., AlarmEvent]:
    """Factory for active alarms; a message alarm at the default start unless overridden."""

    def _make(**fields: Any) -> AlarmEvent:
        fields.setdefault("start", start)
        fields.setdefault("id", "KAlarm-1234-abcd")
        fields.setdefault("action", MessageAction(text="Take a break"))
        return AlarmEvent(context=fields.pop("context", context), **fields)

    return _make


@pytest.fixture
def event(make_event: Callable[..., AlarmEvent]) -> AlarmEvent:
    """Create a simple non-recurring message alarm."""
    return make_event()
