import unittest
from datetime import datetime, timedelta, timezone

from now_working.models import MonthlyReport, User, WorkingSession
from now_working.replies import NO_ORGANIZATION, Replies

START = datetime(2024, 5, 10, 0, 30, tzinfo=timezone.utc)


def session(hours=None, note=None, user=None):
    end = START + timedelta(hours=hours) if hours is not None else None
    return WorkingSession(id=1, user_id=1, organization_id=1, checkin_at=START, checkout_at=end, note=note, user=user)


class RepliesTests(unittest.TestCase):
    def test_roster_uses_display_timezone(self):
        replies = Replies(tz=timezone(timedelta(hours=9)))
        text = replies.roster([session(note="office", user=User(id=1, name="Alice"))])
        self.assertEqual(text, "Currently working (1):\n• Alice (since 09:30) - office")

    def test_checkout_two_decimals(self):
        text = Replies(mention_prefix="@").checked_out("Alice", session(hours=1 / 3), None)
        self.assertTrue(text.endswith("Worked: 0.33 hours"))

    def test_report_summary(self):
        report = MonthlyReport(year=2024, month=5, total_hours=10.75, sessions=[session(hours=10.75), session()])
        text = Replies().report_summary(User(id=1, name="Alice"), report)
        self.assertEqual(text, "Alice: 10.75 hours in 2024-05 (1 completed sessions), 1 still open")

    def test_no_organization_with_selector(self):
        self.assertEqual(Replies().no_organization(), NO_ORGANIZATION)
        self.assertIn("'beta'", Replies().no_organization("beta"))


if __name__ == "__main__":
    unittest.main()
