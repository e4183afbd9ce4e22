"""
Unit Tests for school-day date handling
"""
import pytest
from datetime import date, datetime, timezone, timedelta

from school_ledger.core.exceptions import ValidationError
from school_ledger.utils.dates import to_school_date


class TestToSchoolDate:
    """SCHOOL_TIMEZONE is UTC in tests"""

    def test_plain_date(self):
        assert to_school_date(date(2024, 3, 15)) == date(2024, 3, 15)

    def test_date_string(self):
        assert to_school_date("2024-03-15") == date(2024, 3, 15)

    def test_start_and_end_of_day(self):
        assert to_school_date(datetime(2024, 3, 15, 0, 0, 0)) == date(2024, 3, 15)
        assert to_school_date(datetime(2024, 3, 15, 23, 59, 59, 999000)) == date(2024, 3, 15)

    def test_timestamp_string_with_z(self):
        assert to_school_date("2024-03-15T10:30:00Z") == date(2024, 3, 15)

    def test_aware_timestamp_converted_to_school_zone(self):
        # 02:00 on the 16th at UTC+5 is still the 15th in UTC
        instant = datetime(2024, 3, 16, 2, 0, tzinfo=timezone(timedelta(hours=5)))
        assert to_school_date(instant) == date(2024, 3, 15)

    def test_invalid_string(self):
        with pytest.raises(ValidationError):
            to_school_date("15/03/2024")
