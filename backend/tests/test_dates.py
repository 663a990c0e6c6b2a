import unittest
from datetime import date

from scheduler.core.errors import InvalidInputError
from scheduler.services.dates import (
    calendar_grid,
    format_date_key,
    is_past_date_key,
    is_valid_date_key,
    month_date_keys,
    month_dates,
    month_label,
    parse_date_key,
    parse_month_value,
    to_date_key,
    to_month_value,
    weekday_labels,
    year_options,
)


class TestDateKeys(unittest.TestCase):
    def test_keys_are_zero_padded(self) -> None:
        self.assertEqual(to_date_key(date(2024, 2, 3)), "2024-02-03")
        self.assertEqual(to_month_value(date(2024, 11, 30)), "2024-11")

    def test_leap_february_expands_to_29_days(self) -> None:
        keys = month_date_keys("2024-02")
        self.assertEqual(len(keys), 29)
        self.assertEqual(keys[0], "2024-02-01")
        self.assertEqual(keys[-1], "2024-02-29")
        self.assertEqual(len(month_dates("2023-02")), 28)

    def test_string_order_is_chronological(self) -> None:
        keys = ["2024-10-01", "2024-02-29", "2023-12-31", "2024-02-03"]
        parsed = sorted(parse_date_key(key) for key in keys)
        self.assertEqual(sorted(keys), [to_date_key(day) for day in parsed])

    def test_malformed_month_falls_back_to_current_month(self) -> None:
        today = date(2025, 7, 4)
        self.assertEqual(parse_month_value("garbage", today), (2025, 7))
        self.assertEqual(parse_month_value("2024-13", today), (2025, 7))
        self.assertEqual(parse_month_value("2024-00", today), (2025, 7))
        self.assertEqual(parse_month_value("2024-06", today), (2024, 6))

    def test_impossible_date_key_is_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            parse_date_key("2023-02-29")
        self.assertFalse(is_valid_date_key("2024-2-1"))
        self.assertTrue(is_valid_date_key("2024-02-29"))

    def test_past_dates(self) -> None:
        self.assertTrue(is_past_date_key("2024-02-09", "2024-02-10"))
        self.assertFalse(is_past_date_key("2024-02-10", "2024-02-10"))
        self.assertFalse(is_past_date_key("2024-03-01", "2024-02-10"))


class TestLabels(unittest.TestCase):
    def test_format_date_key(self) -> None:
        self.assertEqual(format_date_key("2024-02-10"), "Sat, Feb 10")
        self.assertEqual(format_date_key("not-a-date"), "not-a-date")

    def test_month_label(self) -> None:
        self.assertEqual(month_label(month_dates("2024-02")), "February 2024")
        self.assertEqual(month_label([]), "")

    def test_weekday_labels_follow_week_start(self) -> None:
        self.assertEqual(weekday_labels("sunday")[0], "Sun")
        self.assertEqual(weekday_labels("monday")[0], "Mon")
        self.assertEqual(weekday_labels("monday")[-1], "Sun")

    def test_year_options(self) -> None:
        self.assertEqual(year_options(2024, 2), [2022, 2023, 2024, 2025, 2026])


class TestCalendarGrid(unittest.TestCase):
    def test_sunday_start_pads_to_full_weeks(self) -> None:
        # 2024-02-01 is a Thursday
        grid = calendar_grid(month_dates("2024-02"), "sunday")
        self.assertEqual(len(grid) % 7, 0)
        self.assertEqual(grid[:4], [None] * 4)
        self.assertEqual(grid[4], date(2024, 2, 1))
        self.assertEqual(grid[-2:], [None, None])

    def test_monday_start(self) -> None:
        grid = calendar_grid(month_dates("2024-02"), "monday")
        self.assertEqual(grid[:3], [None] * 3)
        self.assertEqual(grid[3], date(2024, 2, 1))
        self.assertEqual(len(grid), 35)

    def test_empty_month(self) -> None:
        self.assertEqual(calendar_grid([]), [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
