"""Test configuration shared by all alarmcal tests."""

import logging

import pytest

from alarmcal.config.settings import reset_settings
from alarmcal.timezone import set_local_zone


@pytest.fixture(autouse=True)
def reset_global_settings():
    """Ensure no test sees a settings instance or local zone set by another."""
    reset_settings()
    set_local_zone(None)
    yield
    reset_settings()
    set_local_zone(None)


@pytest.fixture(autouse=True)
def quiet_third_party_loggers():
    """Keep library debug output out of captured logs."""
    for name in ("icalendar", "dateutil"):
        logging.getLogger(name).setLevel(logging.WARNING)
