"""Unit tests for holiday sources and the holiday cache."""

from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from alarmcal.exceptions import HolidayRegionError
from alarmcal.holidays import (
    Holiday,
    HolidayCache,
    HolidayEntry,
    HolidayType,
    StaticHolidaySource,
    YamlHolidaySource,
)

HOLIDAY_FILE = """\
regions:
  gb:
    - name: New Year's Day
      date: "01-01"
    - name: Boxing Day
      date: "12-26"
    - name: Festival
      date: "2030-08-05"
      days: 2
      non_working: false
  empty: []
"""


def today() -> date:
    return date(2030, 6, 15)


@pytest.fixture
def holiday_file(tmp_path: Path) -> Path:
    """Write a holiday file with a British region."""
    path = tmp_path / "holidays.yaml"
    path.write_text(HOLIDAY_FILE, encoding="utf-8")
    return path


@pytest.fixture
def cache(holiday_file: Path) -> HolidayCache:
    """Create a cache for the British region as of 15 June 2030."""
    return HolidayCache(YamlHolidaySource(holiday_file, "gb"), today=today)


class TestHolidayCache:
    """Test holiday lookups through the cache."""

    def test_holiday_types(self, cache: HolidayCache) -> None:
        """Test non-working and working holidays are distinguished."""
        assert cache.is_holiday(date(2030, 12, 26))
        assert cache.holiday_type(date(2030, 12, 26)) == HolidayType.NON_WORKING
        assert cache.holiday_type(date(2030, 8, 5)) == HolidayType.WORKING
        assert cache.holiday_type(date(2030, 8, 6)) == HolidayType.WORKING
        assert not cache.is_holiday(date(2030, 8, 6))
        assert cache.holiday_type(date(2030, 8, 7)) == HolidayType.NONE

    def test_names(self, cache: HolidayCache) -> None:
        assert cache.names(date(2031, 1, 1)) == ["New Year's Day"]
        assert cache.names(date(2031, 1, 2)) == []

    def test_initial_horizon(self, cache: HolidayCache) -> None:
        """Test the cache starts yesterday and initially holds a year."""
        assert cache.region_code == "gb"
        assert cache.is_valid()
        assert cache.cache_end == date(2031, 6, 15)

    def test_extends_to_year_end(self, cache: HolidayCache) -> None:
        """Test a later lookup extends the cache to the end of its year."""
        assert cache.is_holiday(date(2031, 12, 26))
        assert cache.cache_end == date(2032, 1, 1)

    def test_beyond_horizon_looked_up_directly(self, cache: HolidayCache) -> None:
        """Test dates past the cache limit are still found without caching them."""
        assert cache.is_holiday(date(2032, 1, 1))
        assert cache.names(date(2032, 12, 26)) == ["Boxing Day"]
        assert cache.cache_end == date(2032, 1, 1)

    def test_cache_years(self, holiday_file: Path) -> None:
        """Test a zero year horizon caps the cache at the end of this year."""
        cache = HolidayCache(YamlHolidaySource(holiday_file, "gb"), cache_years=0, today=today)
        assert cache.cache_end == date(2031, 1, 1)
        assert cache.is_holiday(date(2031, 1, 1))
        assert cache.cache_end == date(2031, 1, 1)

    def test_before_start_not_holiday(self) -> None:
        """Test dates before yesterday are never holidays."""
        source = StaticHolidaySource("gb", [Holiday(name="Past", start=date(2030, 6, 1), end=date(2030, 6, 1))])
        cache = HolidayCache(source, today=today)
        assert not cache.is_holiday(date(2030, 6, 1))
        assert cache.names(date(2030, 6, 1)) == []

    def test_overlapping_holidays(self) -> None:
        """Test a non-working holiday wins over a working one on the same day."""
        source = StaticHolidaySource(
            "gb",
            [
                Holiday(name="Fair", start=date(2030, 7, 1), end=date(2030, 7, 3), non_working=False),
                Holiday(name="Closure", start=date(2030, 7, 2), end=date(2030, 7, 2)),
            ],
        )
        cache = HolidayCache(source, today=today)
        assert cache.holiday_type(date(2030, 7, 1)) == HolidayType.WORKING
        assert cache.holiday_type(date(2030, 7, 2)) == HolidayType.NON_WORKING
        assert cache.names(date(2030, 7, 2)) == ["Fair", "Closure"]

    def test_no_source(self) -> None:
        """Test a cache without a source has no holidays."""
        cache = HolidayCache(today=today)
        assert not cache.is_valid()
        assert cache.region_code == ""
        assert cache.holiday_type(date(2030, 12, 25)) == HolidayType.NONE

    def test_set_region(self, cache: HolidayCache) -> None:
        """Test switching region replaces the cached data."""
        other = StaticHolidaySource("fr", [Holiday(name="Fete", start=date(2030, 7, 14), end=date(2030, 7, 14))])
        cache.set_region(other)
        assert cache.region_code == "fr"
        assert cache.is_holiday(date(2030, 7, 14))
        assert not cache.is_holiday(date(2030, 12, 26))

        cache.set_region(None)
        assert not cache.is_valid()
        assert not cache.is_holiday(date(2030, 7, 14))

    def test_region_override(self) -> None:
        cache = HolidayCache(StaticHolidaySource("gb"), region="gb_en", today=today)
        assert cache.region_code == "gb_en"


class TestHolidayEntry:
    """Test holiday file entries."""

    def test_annual(self) -> None:
        """Test an MM-DD entry recurs every year."""
        entry = HolidayEntry(name="New Year's Day", date="01-01")
        starts = [h.start for h in entry.occurrences(date(2030, 1, 1), date(2031, 6, 1))]
        assert starts == [date(2030, 1, 1), date(2031, 1, 1)]

    def test_single(self) -> None:
        entry = HolidayEntry(name="Jubilee", date="2030-06-03")
        assert len(entry.occurrences(date(2030, 1, 1), date(2030, 12, 31))) == 1
        assert entry.occurrences(date(2031, 1, 1), date(2031, 12, 31)) == []

    def test_several_days_across_year_end(self) -> None:
        """Test a holiday starting the previous year overlaps the range."""
        entry = HolidayEntry(name="Break", date="12-31", days=2)
        holidays = entry.occurrences(date(2031, 1, 1), date(2031, 1, 31))
        assert holidays == [Holiday(name="Break", start=date(2030, 12, 31), end=date(2031, 1, 1))]

    def test_leap_day_skipped(self) -> None:
        """Test 29 February only occurs in leap years."""
        entry = HolidayEntry(name="Leap", date="02-29")
        starts = [h.start for h in entry.occurrences(date(2030, 1, 1), date(2032, 12, 31))]
        assert starts == [date(2032, 2, 29)]

    @pytest.mark.parametrize("value", ["13-01", "02-30", "2030-1", "1-2-3-4", "new year"])
    def test_invalid_date(self, value: str) -> None:
        with pytest.raises(ValidationError):
            HolidayEntry(name="Bad", date=value)

    def test_invalid_days(self) -> None:
        with pytest.raises(ValidationError):
            HolidayEntry(name="Bad", date="01-01", days=0)


class TestYamlHolidaySource:
    """Test loading holiday files."""

    def test_load(self, holiday_file: Path) -> None:
        source = YamlHolidaySource(holiday_file, "gb")
        assert source.is_valid()
        names = [h.name for h in source.holidays_between(date(2030, 1, 1), date(2030, 12, 31))]
        assert names == ["New Year's Day", "Festival", "Boxing Day"]

    def test_missing_region(self, holiday_file: Path) -> None:
        """Test an unknown region gives an invalid source."""
        assert not YamlHolidaySource(holiday_file, "de").is_valid()
        assert not YamlHolidaySource(holiday_file, "empty").is_valid()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(HolidayRegionError):
            YamlHolidaySource(tmp_path / "missing.yaml", "gb")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "holidays.yaml"
        path.write_text("- gb\n- fr\n", encoding="utf-8")
        with pytest.raises(HolidayRegionError):
            YamlHolidaySource(path, "gb")

    def test_invalid_entry(self, tmp_path: Path) -> None:
        """Test a malformed entry rejects the whole region."""
        path = tmp_path / "holidays.yaml"
        path.write_text('regions:\n  gb:\n    - name: Bad\n      date: "01-01"\n      days: 0\n', encoding="utf-8")
        with pytest.raises(HolidayRegionError):
            YamlHolidaySource(path, "gb")
