from __future__ import annotations

import unittest
from datetime import date, datetime
from types import SimpleNamespace

from moneytracker.handlers.goals import format_goal_line, format_projection, parse_goal_args, progress_bar
from moneytracker.handlers.recurring import describe_schedule, format_rule, parse_edit_args, parse_recurring_args
from moneytracker.services.goals import project
from moneytracker.ui.keyboards import confirm_keyboard, rule_keyboard

TODAY = date(2026, 10, 19)


class ParseRecurringArgsTests(unittest.TestCase):
    def test_minimal(self) -> None:
        out = parse_recurring_args("monthly -950 Rent", TODAY)
        self.assertEqual(out["type_"], "expense")
        self.assertEqual(out["amount"], 950.0)
        self.assertEqual(out["category"], "Rent")
        self.assertEqual(out["frequency"], "monthly")
        self.assertEqual(out["start_date"], TODAY)
        self.assertEqual(out["interval"], 1)
        self.assertIsNone(out["currency"])
        self.assertTrue(out["auto_approve"])
        self.assertEqual(out["notes"], "")

    def test_options_and_notes(self) -> None:
        out = parse_recurring_args(
            "Monthly +3000.50 Salary dom=last every=2 start=2026-11-01 end=2027-12-31 "
            "pay=BANK cur=eur manual quiet from the day job",
            TODAY,
        )
        self.assertEqual(out["type_"], "income")
        self.assertEqual(out["amount"], 3000.5)
        self.assertEqual(out["day_of_month"], -1)
        self.assertEqual(out["interval"], 2)
        self.assertEqual(out["start_date"], date(2026, 11, 1))
        self.assertEqual(out["end_date"], date(2027, 12, 31))
        self.assertEqual(out["payment_method"], "bank")
        self.assertEqual(out["currency"], "EUR")
        self.assertFalse(out["auto_approve"])
        self.assertFalse(out["notify_user"])
        self.assertEqual(out["notes"], "from the day job")

    def test_weekday(self) -> None:
        self.assertEqual(parse_recurring_args("weekly -20 Food dow=6", TODAY)["day_of_week"], 6)

    def test_errors(self) -> None:
        for text in ("", "monthly -950", "hourly -5 Coffee", "monthly 950 Rent",
                     "monthly -950 Rent every=two", "monthly -950 Rent start=01/11/2026"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_recurring_args(text, TODAY)


class ParseEditArgsTests(unittest.TestCase):
    def test_all_fields(self) -> None:
        rec_id, fields = parse_edit_args("7 amount=1000.5 cat=Housing pay=CARD end=none manual notify new flat")
        self.assertEqual(rec_id, 7)
        self.assertEqual(fields, dict(
            amount=1000.5, category="Housing", payment_method="card", end_date=None,
            auto_approve=False, notify_user=True, notes="new flat",
        ))

    def test_only_given_fields_are_changed(self) -> None:
        self.assertEqual(parse_edit_args("7 end=2027-01-31"), (7, {"end_date": date(2027, 1, 31)}))
        self.assertEqual(parse_edit_args("7 -"), (7, {"notes": ""}))

    def test_errors(self) -> None:
        for text in ("", "7", "x amount=5", "7 amount=abc", "7 end=31/01/2027"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_edit_args(text)


class FormatRuleTests(unittest.TestCase):
    def _rule(self, **kw):
        base = dict(
            id=7, type="expense", amount=950.0, currency="USD", category="Rent & <Co>",
            frequency="monthly", interval=1, day_of_month=-1, day_of_week=None,
            end_date=None, next_occurrence=date(2026, 10, 31), status="active",
            auto_approve=True, notes="",
        )
        base.update(kw)
        return SimpleNamespace(**base)

    def test_describe_schedule(self) -> None:
        self.assertEqual(describe_schedule(self._rule()), "every month on the last day")
        self.assertEqual(
            describe_schedule(self._rule(frequency="weekly", interval=2, day_of_week=3, day_of_month=None,
                                         end_date=date(2027, 1, 1))),
            "every 2 weeks on Wed until 2027-01-01",
        )

    def test_format_rule_escapes_user_text(self) -> None:
        line = format_rule(self._rule(auto_approve=False))
        self.assertIn("#7: -950.00 USD Rent &amp; &lt;Co&gt;", line)
        self.assertIn("next: 2026-10-31", line)
        self.assertTrue(line.endswith("active | manual"))

    def test_completed_rule_has_no_next(self) -> None:
        self.assertNotIn("next:", format_rule(self._rule(status="completed")))

    def test_keyboards(self) -> None:
        kb = rule_keyboard(7, "paused")
        self.assertEqual(kb.inline_keyboard[0][0].callback_data, "rec:resume:7")
        kb = confirm_keyboard([("a", 1), ("b", 2), ("c", 3)])
        self.assertEqual([len(row) for row in kb.inline_keyboard], [2, 1])
        self.assertEqual(kb.inline_keyboard[1][0].callback_data, "confirm:3")


class GoalFormattingTests(unittest.TestCase):
    def test_parse_goal_args(self) -> None:
        out = parse_goal_args("5000 2027-06-01 New car saved=750.25")
        self.assertEqual(out, dict(target_amount=5000.0, deadline=date(2027, 6, 1), name="New car", current_amount=750.25))

    def test_parse_goal_args_errors(self) -> None:
        for text in ("", "5000 2027-06-01", "-5 2027-06-01 Car", "5000 June Car", "5000 2027-06-01 saved=5"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_goal_args(text)

    def test_progress_bar_clamps_for_display(self) -> None:
        self.assertEqual(progress_bar(120.0), "█" * 10)
        self.assertEqual(progress_bar(-10.0), "░" * 10)
        self.assertEqual(progress_bar(40.0), "████░░░░░░")

    def test_overdue_goal_line(self) -> None:
        goal = SimpleNamespace(id=3, name="Trip", current_amount=1200.0, target_amount=1000.0,
                               deadline=date(2025, 12, 27), monthly_target=0.0)
        line = format_goal_line(goal, datetime(2026, 1, 1))
        self.assertIn("120%", line)
        self.assertIn("5 days overdue", line)

    def test_long_projection_is_elided(self) -> None:
        goal = SimpleNamespace(id=1, name="House", current_amount=0.0, target_amount=24000.0,
                               deadline=date(2028, 1, 1), monthly_target=1000.0)
        lines = format_projection(goal, project(goal, datetime(2026, 1, 1)))
        self.assertIn("…", lines)
        self.assertTrue(lines[-1].startswith("month 25:"))


if __name__ == "__main__":
    unittest.main()
