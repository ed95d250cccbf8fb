from __future__ import annotations

import unittest
from datetime import date
from types import SimpleNamespace

from moneytracker.services.recurrence import (
    LAST_DAY,
    add_months,
    compute_next_occurrence,
    days_in_month,
    fast_forward,
    first_occurrence,
    monthly_equivalent,
    pending_occurrences,
    validate_rule,
    weekday,
)

MONDAY = date(2026, 10, 19)


def _rule(**overrides):
    base = dict(
        frequency="monthly",
        interval=1,
        day_of_month=None,
        day_of_week=None,
        start_date=date(2026, 1, 1),
        end_date=None,
        next_occurrence=None,
        status="active",
        amount=10.0,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


class DailyAndWeeklyTests(unittest.TestCase):
    def test_daily_adds_interval_days(self) -> None:
        nxt = compute_next_occurrence(_rule(frequency="daily", interval=3), date(2026, 1, 30))
        self.assertEqual(nxt.on, date(2026, 2, 2))
        self.assertEqual(nxt.status, "active")
        self.assertFalse(nxt.exhausted)

    def test_weekly_without_weekday_adds_weeks(self) -> None:
        nxt = compute_next_occurrence(_rule(frequency="weekly"), MONDAY)
        self.assertEqual(nxt.on, date(2026, 10, 26))

    def test_weekly_moves_forward_to_wednesday_of_same_week(self) -> None:
        self.assertEqual(weekday(MONDAY), 1)
        nxt = compute_next_occurrence(_rule(frequency="weekly", day_of_week=3), MONDAY)
        self.assertEqual(nxt.on, date(2026, 10, 21))

    def test_weekly_never_moves_backward(self) -> None:
        friday = date(2026, 10, 23)
        nxt = compute_next_occurrence(_rule(frequency="weekly", day_of_week=3), friday)
        self.assertEqual(nxt.on, date(2026, 10, 28))

    def test_weekly_on_requested_day_uses_interval(self) -> None:
        wednesday = date(2026, 10, 21)
        nxt = compute_next_occurrence(_rule(frequency="weekly", day_of_week=3, interval=2), wednesday)
        self.assertEqual(nxt.on, date(2026, 11, 4))

    def test_sunday_is_zero(self) -> None:
        nxt = compute_next_occurrence(_rule(frequency="weekly", day_of_week=0), MONDAY)
        self.assertEqual(nxt.on, date(2026, 10, 25))
        self.assertEqual(nxt.on.strftime("%A"), "Sunday")


class MonthlyTests(unittest.TestCase):
    def test_day_31_clamps_to_30_in_short_months(self) -> None:
        rule = _rule(day_of_month=31)
        for month in (4, 6, 9, 11):
            with self.subTest(month=month):
                nxt = compute_next_occurrence(rule, date(2026, month - 1, 31))
                self.assertEqual(nxt.on, date(2026, month, 30))

    def test_last_day_handles_leap_and_non_leap_february(self) -> None:
        rule = _rule(day_of_month=LAST_DAY)
        self.assertEqual(compute_next_occurrence(rule, date(2024, 1, 31)).on, date(2024, 2, 29))
        self.assertEqual(compute_next_occurrence(rule, date(2025, 1, 31)).on, date(2025, 2, 28))
        self.assertEqual(compute_next_occurrence(rule, date(2025, 2, 28)).on, date(2025, 3, 31))

    def test_last_day_every_month_of_a_year(self) -> None:
        rule = _rule(day_of_month=LAST_DAY)
        current = date(2023, 12, 31)
        for month in range(1, 13):
            current = compute_next_occurrence(rule, current).on
            self.assertEqual(current, date(2024, month, days_in_month(2024, month)))

    def test_without_day_of_month_keeps_start_day(self) -> None:
        rule = _rule(start_date=date(2026, 1, 31))
        self.assertEqual(compute_next_occurrence(rule, date(2026, 1, 31)).on, date(2026, 2, 28))
        self.assertEqual(compute_next_occurrence(rule, date(2026, 2, 28)).on, date(2026, 3, 31))

    def test_interval_crosses_year_end(self) -> None:
        rule = _rule(day_of_month=15, interval=3)
        self.assertEqual(compute_next_occurrence(rule, date(2026, 11, 15)).on, date(2027, 2, 15))

    def test_same_input_gives_same_output(self) -> None:
        rule = _rule(day_of_month=LAST_DAY)
        self.assertEqual(
            compute_next_occurrence(rule, date(2026, 1, 31)),
            compute_next_occurrence(rule, date(2026, 1, 31)),
        )


class YearlyTests(unittest.TestCase):
    def test_feb_29_falls_back_to_feb_28(self) -> None:
        rule = _rule(frequency="yearly", start_date=date(2024, 2, 29))
        self.assertEqual(compute_next_occurrence(rule, date(2024, 2, 29)).on, date(2025, 2, 28))
        self.assertEqual(compute_next_occurrence(rule, date(2025, 2, 28)).on, date(2026, 2, 28))

    def test_feb_29_returns_in_leap_years(self) -> None:
        rule = _rule(frequency="yearly", start_date=date(2024, 2, 29))
        self.assertEqual(compute_next_occurrence(rule, date(2027, 2, 28)).on, date(2028, 2, 29))
        four = _rule(frequency="yearly", interval=4, start_date=date(2024, 2, 29))
        self.assertEqual(compute_next_occurrence(four, date(2024, 2, 29)).on, date(2028, 2, 29))


class EndDateTests(unittest.TestCase):
    def test_past_end_date_is_exhausted_and_completed(self) -> None:
        rule = _rule(day_of_month=1, end_date=date(2026, 3, 15))
        nxt = compute_next_occurrence(rule, date(2026, 3, 1))
        self.assertTrue(nxt.exhausted)
        self.assertIsNone(nxt.on)
        self.assertEqual(nxt.status, "completed")

    def test_end_date_is_inclusive(self) -> None:
        rule = _rule(day_of_month=1, end_date=date(2026, 4, 1))
        nxt = compute_next_occurrence(rule, date(2026, 3, 1))
        self.assertEqual(nxt.on, date(2026, 4, 1))
        self.assertEqual(nxt.status, "active")


class PendingOccurrencesTests(unittest.TestCase):
    def test_catches_up_every_missed_month(self) -> None:
        rule = _rule(day_of_month=1, next_occurrence=date(2026, 8, 1))
        dates, following = pending_occurrences(rule, date(2026, 10, 15))
        self.assertEqual(dates, [date(2026, 8, 1), date(2026, 9, 1), date(2026, 10, 1)])
        self.assertEqual(following.on, date(2026, 11, 1))

    def test_stops_at_end_date(self) -> None:
        rule = _rule(
            frequency="daily",
            next_occurrence=date(2026, 10, 10),
            end_date=date(2026, 10, 12),
        )
        dates, following = pending_occurrences(rule, MONDAY)
        self.assertEqual(dates, [date(2026, 10, 10), date(2026, 10, 11), date(2026, 10, 12)])
        self.assertTrue(following.exhausted)

    def test_nothing_due_yet(self) -> None:
        rule = _rule(frequency="daily", next_occurrence=date(2026, 10, 20))
        dates, following = pending_occurrences(rule, MONDAY)
        self.assertEqual(dates, [])
        self.assertEqual(following.on, date(2026, 10, 20))

    def test_fast_forward_drops_past_occurrences(self) -> None:
        rule = _rule(day_of_month=1, next_occurrence=date(2026, 7, 1))
        self.assertEqual(fast_forward(rule, MONDAY).on, date(2026, 11, 1))
        self.assertEqual(fast_forward(rule, date(2026, 7, 1)).on, date(2026, 7, 1))


class HelperTests(unittest.TestCase):
    def test_first_occurrence(self) -> None:
        self.assertEqual(first_occurrence(MONDAY, "weekly", day_of_week=3), date(2026, 10, 21))
        self.assertEqual(first_occurrence(MONDAY, "monthly", day_of_month=15), date(2026, 11, 15))
        self.assertEqual(first_occurrence(MONDAY, "monthly", day_of_month=25), date(2026, 10, 25))
        self.assertEqual(first_occurrence(MONDAY, "monthly", day_of_month=LAST_DAY), date(2026, 10, 31))
        self.assertEqual(first_occurrence(MONDAY, "daily"), MONDAY)

    def test_add_months_backwards(self) -> None:
        self.assertEqual(add_months(date(2026, 5, 31), -3), date(2026, 2, 28))
        self.assertEqual(add_months(date(2026, 1, 15), -3), date(2025, 10, 15))

    def test_monthly_equivalent(self) -> None:
        self.assertAlmostEqual(monthly_equivalent(_rule(frequency="weekly", amount=25.0)), 100.0)
        self.assertAlmostEqual(monthly_equivalent(_rule(frequency="yearly", amount=1200.0)), 100.0)
        self.assertAlmostEqual(monthly_equivalent(_rule(frequency="daily", amount=10.0, interval=2)), 150.0)


class ValidateRuleTests(unittest.TestCase):
    def _validate(self, **kw) -> None:
        args = dict(
            type_="expense", amount=10.0, category="Rent", frequency="monthly",
            start_date=MONDAY,
        )
        args.update(kw)
        validate_rule(**args)

    def test_accepts_last_day_and_sunday(self) -> None:
        self._validate(day_of_month=LAST_DAY)
        self._validate(frequency="weekly", day_of_week=0)

    def test_rejects_bad_values(self) -> None:
        bad = [
            dict(interval=0),
            dict(interval=-2),
            dict(day_of_month=0),
            dict(day_of_month=32),
            dict(day_of_week=7),
            dict(end_date=date(2026, 1, 1)),
            dict(frequency="hourly"),
            dict(type_="transfer"),
            dict(amount=0),
            dict(payment_method="cheque"),
            dict(category="  "),
        ]
        for kw in bad:
            with self.subTest(**kw):
                with self.assertRaises(ValueError):
                    self._validate(**kw)


if __name__ == "__main__":
    unittest.main()
