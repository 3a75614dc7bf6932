"""Holiday data sources for a region."""

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import HolidayRegionError

logger = logging.getLogger(__name__)


class Holiday(BaseModel):
    """A holiday observed over one or more consecutive days."""

    name: str
    start: date
    end: date
    non_working: bool = True


class HolidaySource(Protocol):
    """Provider of holiday data for one region."""

    region_code: str

    def is_valid(self) -> bool: ...

    def holidays_between(self, start: date, end: date) -> List[Holiday]: ...


def _overlapping(holidays: Iterable[Holiday], start: date, end: date) -> List[Holiday]:
    return [h for h in holidays if h.start <= end and h.end >= start]


class StaticHolidaySource:
    """Holidays held in memory, mainly for tests and embedding."""

    def __init__(self, region_code: str, holidays: Optional[Iterable[Holiday]] = None) -> None:
        self.region_code = region_code
        self._holidays = sorted(holidays or [], key=lambda h: h.start)

    def is_valid(self) -> bool:
        return bool(self.region_code)

    def holidays_between(self, start: date, end: date) -> List[Holiday]:
        return _overlapping(self._holidays, start, end)


class HolidayEntry(BaseModel):
    """One holiday definition in a YAML holiday file.

    ``date`` is either ``MM-DD`` for a holiday on the same date every year,
    or ``YYYY-MM-DD`` for a single occurrence.
    """

    name: str
    date: str
    days: int = Field(default=1, ge=1, description="Number of days observed")
    non_working: bool = True

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        parts = value.split("-")
        try:
            if len(parts) == 2:
                date(2000, int(parts[0]), int(parts[1]))
            elif len(parts) == 3:
                date(int(parts[0]), int(parts[1]), int(parts[2]))
            else:
                raise ValueError
        except ValueError as e:
            raise ValueError(f"Invalid holiday date {value!r}: expected MM-DD or YYYY-MM-DD") from e
        return value

    def occurrences(self, start: date, end: date) -> List[Holiday]:
        """Expand this entry into holidays overlapping [start, end]."""
        parts = [int(p) for p in self.date.split("-")]
        if len(parts) == 3:
            first_days = [date(*parts)]
        else:
            first_days = []
            for year in range(start.year - 1, end.year + 1):
                try:
                    first_days.append(date(year, parts[0], parts[1]))
                except ValueError:
                    # 29 February in a non-leap year
                    continue
        holidays = [
            Holiday(
                name=self.name,
                start=d,
                end=d + timedelta(days=self.days - 1),
                non_working=self.non_working,
            )
            for d in first_days
        ]
        return _overlapping(holidays, start, end)


class YamlHolidaySource:
    """Holidays for a region loaded from a YAML file.

    File layout::

        regions:
          gb_en:
            - name: New Year's Day
              date: "01-01"
            - name: Easter Monday
              date: "2025-04-21"
    """

    def __init__(self, path: Union[str, Path], region_code: str) -> None:
        self.path = Path(path)
        self.region_code = region_code
        self._entries: List[HolidayEntry] = self._load()

    def _load(self) -> List[HolidayEntry]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise HolidayRegionError(f"Cannot read holiday file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise HolidayRegionError(f"Holiday file {self.path} is not a mapping")
        regions: Dict[str, list] = data.get("regions") or {}
        if self.region_code not in regions:
            logger.warning(f"Holiday region {self.region_code!r} not found in {self.path}")
            return []
        try:
            entries = [HolidayEntry(**entry) for entry in regions[self.region_code] or []]
        except (TypeError, ValidationError) as e:
            raise HolidayRegionError(
                f"Invalid holiday data for region {self.region_code!r} in {self.path}: {e}"
            ) from e
        logger.debug(f"Loaded {len(entries)} holidays for region {self.region_code!r}")
        return entries

    def is_valid(self) -> bool:
        return bool(self._entries)

    def holidays_between(self, start: date, end: date) -> List[Holiday]:
        holidays: List[Holiday] = []
        for entry in self._entries:
            holidays.extend(entry.occurrences(start, end))
        return sorted(holidays, key=lambda h: h.start)
