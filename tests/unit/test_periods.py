"""
Date and period identifier tests
"""

from datetime import date, datetime, timedelta

import pytest

from profit_tracker.periods import (
    date_key_of,
    days_in_month,
    is_weekend,
    iso_week_number_of,
    month_id_of,
    parse_date_key,
    to_date,
    week_id_of,
    week_of_month,
)


class TestDateKeys:
    """Canonical day keys"""

    def test_zero_padded_key(self):
        assert date_key_of(date(2024, 3, 1)) == "2024-03-01"

    def test_datetime_truncated_to_day(self):
        assert date_key_of(datetime(2024, 3, 1, 23, 59, 59)) == "2024-03-01"

    def test_parse_inverts_key(self):
        assert parse_date_key("2024-02-29") == date(2024, 2, 29)
        assert to_date("2024-02-29") == date(2024, 2, 29)

    def test_keys_sort_chronologically(self):
        days = [date(2024, 1, 9), date(2023, 12, 31), date(2024, 1, 10)]
        assert sorted(date_key_of(d) for d in days) == [date_key_of(d) for d in sorted(days)]

    def test_month_id(self):
        assert month_id_of(date(2024, 3, 5)) == "2024-03"
        assert month_id_of("2024-11-30") == "2024-11"


class TestIsoWeek:
    """ISO-8601 week numbering"""

    @pytest.mark.parametrize(
        "day,expected",
        [
            (date(2024, 1, 1), 1),
            (date(2023, 1, 1), 52),
            (date(2020, 12, 31), 53),
            (date(2021, 1, 3), 53),
            (date(2024, 12, 30), 1),
            (date(2024, 6, 12), 24),
        ],
    )
    def test_known_weeks(self, day, expected):
        assert iso_week_number_of(day) == expected

    def test_matches_isocalendar_across_year_boundaries(self):
        """Week numbers agree with the ISO calendar over several year ends"""
        day = date(2019, 12, 1)
        while day <= date(2026, 1, 31):
            assert iso_week_number_of(day) == day.isocalendar()[1], day
            day += timedelta(days=1)

    def test_week_id_uses_week_basis_year(self):
        assert week_id_of(date(2024, 6, 12)) == "2024-W24"
        assert week_id_of(date(2024, 12, 30)) == "2025-W01"
        assert week_id_of(date(2023, 1, 1)) == "2022-W52"

    def test_week_id_is_zero_padded(self):
        assert week_id_of(date(2024, 1, 3)) == "2024-W01"


class TestMonthHelpers:

    @pytest.mark.parametrize(
        "day_number,expected",
        [(1, 1), (7, 1), (8, 2), (14, 2), (15, 3), (28, 4), (29, 5), (31, 5)],
    )
    def test_week_of_month(self, day_number, expected):
        assert week_of_month(date(2024, 3, day_number)) == expected

    def test_days_in_leap_february(self):
        days = days_in_month(2024, 2)
        assert len(days) == 29
        assert days[0] == date(2024, 2, 1)
        assert days[-1] == date(2024, 2, 29)

    def test_weekend(self):
        assert is_weekend(date(2024, 3, 2))
        assert is_weekend(date(2024, 3, 3))
        assert not is_weekend(date(2024, 3, 4))
