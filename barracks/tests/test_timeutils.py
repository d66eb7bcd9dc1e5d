from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone

from django.test import SimpleTestCase, override_settings

from .. import timeutils
from .helpers import NEW_YORK, local


class ClockTests(SimpleTestCase):
    def test_today_uses_facility_timezone(self):
        # 02:00 UTC on the 13th is still the evening of the 12th in New York.
        now = datetime(2024, 6, 13, 2, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(timeutils.today_in(now), date(2024, 6, 12))
        self.assertEqual(timeutils.tomorrow_in(now), date(2024, 6, 13))
        self.assertEqual(timeutils.current_hour(now), 22)

    def test_parse_hhmm(self):
        self.assertEqual(timeutils.parse_hhmm("07:30"), 450)
        self.assertEqual(timeutils.parse_hhmm("00:00"), 0)
        for bad in ("25:00", "7.30", "", "12:60"):
            with self.assertRaises(ValueError):
                timeutils.parse_hhmm(bad)

    def test_target_slot_boundaries(self):
        self.assertEqual(timeutils.determine_target_slot(local(2024, 6, 12, 9, 59)), timeutils.BREAKFAST)
        self.assertEqual(timeutils.determine_target_slot(local(2024, 6, 12, 10, 0)), timeutils.LUNCH)
        self.assertEqual(timeutils.determine_target_slot(local(2024, 6, 12, 14, 59)), timeutils.LUNCH)
        self.assertEqual(timeutils.determine_target_slot(local(2024, 6, 12, 15, 0)), timeutils.DINNER)

    def test_notification_format(self):
        value = datetime(2024, 6, 12, 18, 5, tzinfo=dt_timezone.utc)
        self.assertEqual(timeutils.format_for_notification(value), "14:05 Jun 12")

    def test_past_and_today(self):
        now = local(2024, 6, 12, 8, 0)
        self.assertTrue(timeutils.is_today(date(2024, 6, 12), now))
        self.assertTrue(timeutils.is_past(date(2024, 6, 11), now))
        self.assertFalse(timeutils.is_past(date(2024, 6, 12), now))


class WeekendTests(SimpleTestCase):
    def test_next_weekend_from_midweek(self):
        self.assertEqual(
            timeutils.next_weekend(local(2024, 6, 12, 9, 0)),
            (date(2024, 6, 15), date(2024, 6, 16)),
        )

    def test_next_weekend_from_saturday_skips_a_week(self):
        self.assertEqual(
            timeutils.next_weekend(local(2024, 6, 15, 9, 0)),
            (date(2024, 6, 22), date(2024, 6, 23)),
        )

    def test_current_weekend(self):
        self.assertEqual(timeutils.current_weekend(local(2024, 6, 15, 9, 0)), date(2024, 6, 15))
        self.assertEqual(timeutils.current_weekend(local(2024, 6, 16, 9, 0)), date(2024, 6, 15))
        self.assertEqual(timeutils.current_weekend(local(2024, 6, 17, 9, 0)), date(2024, 6, 15))
        self.assertIsNone(timeutils.current_weekend(local(2024, 6, 12, 9, 0)))


@override_settings(WOTS_LIBERTY_DEADLINE_DAY=2, WOTS_LIBERTY_DEADLINE_TIME="23:59")
class LibertyDeadlineTests(SimpleTestCase):
    def test_before_deadline(self):
        self.assertTrue(timeutils.is_before_liberty_deadline(local(2024, 6, 10, 12, 0)))
        self.assertTrue(timeutils.is_before_liberty_deadline(local(2024, 6, 11, 23, 59, 30)))

    def test_after_deadline(self):
        self.assertFalse(timeutils.is_before_liberty_deadline(local(2024, 6, 12, 0, 0)))
        self.assertFalse(timeutils.is_before_liberty_deadline(local(2024, 6, 14, 12, 0)))

    def test_deadline_instant_includes_last_minute(self):
        deadline = timeutils.liberty_deadline(local(2024, 6, 10, 10, 0))
        self.assertEqual(deadline, datetime(2024, 6, 11, 23, 59, 59, 999999, tzinfo=NEW_YORK))

    @override_settings(WOTS_LIBERTY_DEADLINE_DAY=4, WOTS_LIBERTY_DEADLINE_TIME="18:00")
    def test_configured_deadline(self):
        self.assertTrue(timeutils.is_before_liberty_deadline(local(2024, 6, 13, 18, 0)))
        self.assertFalse(timeutils.is_before_liberty_deadline(local(2024, 6, 13, 18, 1)))

    def test_deadline_rolls_to_next_week_once_passed(self):
        deadline = timeutils.liberty_deadline(local(2024, 6, 12, 0, 30))
        self.assertEqual(deadline, datetime(2024, 6, 18, 23, 59, 59, 999999, tzinfo=NEW_YORK))

    def test_deadline_on_deadline_day_before_cutoff(self):
        deadline = timeutils.liberty_deadline(local(2024, 6, 11, 20, 0))
        self.assertEqual(deadline, datetime(2024, 6, 11, 23, 59, 59, 999999, tzinfo=NEW_YORK))

    def test_liberty_window(self):
        window = timeutils.liberty_window(local(2024, 6, 10, 10, 0))
        self.assertEqual(window["weekendDate"], "2024-06-15")
        self.assertEqual(window["sunday"], "2024-06-16")
        self.assertTrue(window["canSubmit"])
        self.assertFalse(timeutils.liberty_window(local(2024, 6, 13, 10, 0))["canSubmit"])

    def test_board_weekend(self):
        self.assertEqual(timeutils.board_weekend(local(2024, 6, 17, 9, 0)), date(2024, 6, 15))
        self.assertEqual(timeutils.board_weekend(local(2024, 6, 12, 9, 0)), date(2024, 6, 15))
