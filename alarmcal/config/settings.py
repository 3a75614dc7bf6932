"""Settings management using Pydantic for type validation and configuration."""

import logging
from datetime import time
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

import yaml
from pydantic import (
    BaseModel,
    Field,
    PrivateAttr,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    console_enabled: bool = Field(default=True, description="Enable console logging")
    console_level: str = Field(
        default="WARNING",
        description="Console log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    console_colors: bool = Field(
        default=True, description="Enable colored console output (auto-detected)"
    )
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_level: str = Field(default="DEBUG", description="File log level")
    file_directory: Optional[str] = Field(
        default=None, description="Custom log directory (defaults to data_dir/logs)"
    )
    file_prefix: str = Field(default="alarmcal", description="Log file prefix")
    max_log_files: int = Field(default=5, description="Maximum number of log files to keep")
    third_party_level: str = Field(
        default="WARNING", description="Log level for third-party libraries"
    )


class WorkTimeSettings(BaseModel):
    """Working days and hours used by work-time-only alarms."""

    work_days: List[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Working days of the week, Monday = 0",
    )
    start: time = Field(default=time(9, 0), description="Start of the working day")
    end: time = Field(default=time(17, 0), description="End of the working day")

    @field_validator("work_days")
    @classmethod
    def _check_days(cls, days: List[int]) -> List[int]:
        bad = [d for d in days if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"Work days must be in the range 0-6, got {bad}")
        return sorted(set(days))


class HolidaySettings(BaseModel):
    """Holiday region configuration."""

    region: str = Field(default="", description="Holiday region code, empty for none")
    data_file: Optional[Path] = Field(
        default=None, description="YAML file holding holiday definitions per region"
    )
    cache_years: int = Field(
        default=1, description="Years after the current one to hold in the holiday cache"
    )


class AlarmCalSettings(BaseSettings):
    """Application settings with environment variable support."""

    _explicit_args: set = PrivateAttr(default_factory=set)

    # Calendar identification
    program_name: str = Field(default="KAlarm", description="Program name written to PRODID")
    program_version: str = Field(default="2.7.0", description="Program version written to PRODID")
    min_calendar_version: str = Field(
        default="2.0.0",
        description="Oldest X-KDE-KALARM-VERSION accepted when decoding a calendar",
    )

    # Scheduling
    start_of_day: time = Field(
        default=time(0, 0), description="Time at which date-only alarms become due"
    )
    timezone: Optional[str] = Field(
        default=None, description="IANA zone for floating times, system zone when unset"
    )
    max_defer_minutes: Optional[int] = Field(
        default=None, description="Upper bound on how far ahead an alarm may be deferred"
    )
    work_time_search_limit: int = Field(
        default=2000,
        description="Occurrences examined when looking for the next working-time trigger",
    )
    work_time: WorkTimeSettings = Field(default_factory=WorkTimeSettings)
    holidays: HolidaySettings = Field(default_factory=HolidaySettings)

    # Text
    text_locale: str = Field(default="en", description="Locale for displayed email headers")

    # File Paths
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config" / "alarmcal")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local" / "share" / "alarmcal")
    config_file: Optional[Path] = Field(default=None, description="Explicit YAML config file")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="ALARMCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._explicit_args = set(kwargs.keys())
        self._load_yaml_config()

    def _find_config_file(self) -> Optional[Path]:
        """Find the YAML configuration file, explicit path first."""
        if self.config_file is not None:
            if self.config_file.exists():
                return self.config_file
            logger.warning(f"Configured config file does not exist: {self.config_file}")
            return None

        user_config = self.config_dir / CONFIG_FILE_NAME
        if user_config.exists():
            return user_config
        return None

    def _load_basic_settings(self, config_data: Dict[str, Any]) -> None:
        """Load top-level scalar settings not given explicitly."""
        for key in (
            "program_name",
            "program_version",
            "min_calendar_version",
            "start_of_day",
            "timezone",
            "max_defer_minutes",
            "work_time_search_limit",
            "text_locale",
        ):
            if key in config_data and key not in self._explicit_args:
                setattr(self, key, self._validate_field(key, config_data[key]))

    def _load_section(self, name: str, model: type, config_data: Dict[str, Any]) -> None:
        """Merge a nested YAML section into the matching settings model."""
        section = config_data.get(name)
        if not section or name in self._explicit_args:
            return
        merged = {**getattr(self, name).model_dump(), **section}
        setattr(self, name, model(**merged))

    def _validate_field(self, key: str, value: Any) -> Any:
        """Validate a single YAML value against the field's declared type."""
        annotation = type(self).model_fields[key].annotation
        return TypeAdapter(annotation).validate_python(value)

    def _load_yaml_config(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_file = self._find_config_file()
        if not config_file:
            return

        try:
            with config_file.open(encoding="utf-8") as f:
                config_data = yaml.safe_load(f)

            if not config_data:
                return

            self._load_basic_settings(config_data)
            self._load_section("work_time", WorkTimeSettings, config_data)
            self._load_section("holidays", HolidaySettings, config_data)
            self._load_section("logging", LoggingSettings, config_data)
            logger.debug(f"Loaded configuration from {config_file}")

        except (OSError, yaml.YAMLError, ValidationError) as e:
            # Don't fail if YAML loading fails, just continue with defaults/env vars
            logger.warning(f"Could not load YAML config from {config_file}: {e}")


_settings_instance: Optional[AlarmCalSettings] = None


def get_settings(**kwargs: Any) -> AlarmCalSettings:
    """Get the shared settings instance, creating it lazily if needed.

    Library code takes settings or a ScheduleContext as a parameter; this
    accessor exists for the command line entry point.
    """
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = AlarmCalSettings(**kwargs)
    return cast(AlarmCalSettings, globals()["_settings_instance"])


def reset_settings() -> None:
    """Reset the shared settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
