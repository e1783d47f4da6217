"""Plain-text replies sent back to chat platforms."""

from __future__ import annotations

from datetime import timezone, tzinfo
from typing import List, Optional

from .models import MonthlyReport, User, WorkingSession

REGISTRATION_REQUIRED = "You need to register before using attendance commands. Please contact your administrator."
NO_ORGANIZATION = "No organization membership found. Please contact your administrator."
ALREADY_CHECKED_IN = "Error: you are already checked in. Please check out first."
NOT_CHECKED_IN = "Error: you are not checked in. Please check in first."
NOBODY_WORKING = "Nobody is working right now."
VACATION_COMING_SOON = "Vacation requests are coming soon."
SOMETHING_WENT_WRONG = "Something went wrong. Please try again later."


class Replies:
    """Render reply categories for one chat platform.

    ``mention_prefix`` is put before user names (``@`` on Slack).
    """

    def __init__(self, tz: tzinfo = timezone.utc, mention_prefix: str = "") -> None:
        self.tz = tz
        self.mention_prefix = mention_prefix

    def mention(self, name: str) -> str:
        return f"{self.mention_prefix}{name}"

    def registration_required(self) -> str:
        return REGISTRATION_REQUIRED

    def no_organization(self, slug: Optional[str] = None) -> str:
        if slug:
            return f"You are not an active member of organization '{slug}'."
        return NO_ORGANIZATION

    def already_checked_in(self) -> str:
        return ALREADY_CHECKED_IN

    def not_checked_in(self) -> str:
        return NOT_CHECKED_IN

    def checked_in(self, name: str, note: Optional[str]) -> str:
        return f"{self.mention(name)} checked in!{_quote(note)}"

    def checked_out(self, name: str, session: WorkingSession, note: Optional[str]) -> str:
        return (
            f"{self.mention(name)} checked out!{_quote(note)}"
            f"\nWorked: {session.duration_hours:.2f} hours"
        )

    def roster(self, sessions: List[WorkingSession]) -> str:
        if not sessions:
            return NOBODY_WORKING
        lines = [f"Currently working ({len(sessions)}):"]
        for session in sessions:
            name = session.user.name if session.user else f"user {session.user_id}"
            line = f"• {self.mention(name)} (since {self.clock_time(session)})"
            if session.note:
                line += f" - {session.note}"
            lines.append(line)
        return "\n".join(lines)

    def vacation(self) -> str:
        return VACATION_COMING_SOON

    def report_summary(self, user: User, report: MonthlyReport) -> str:
        closed = sum(1 for session in report.sessions if not session.is_open)
        summary = (
            f"{user.name}: {report.total_hours:.2f} hours in {report.year}-{report.month:02d}"
            f" ({closed} completed sessions)"
        )
        if closed < len(report.sessions):
            summary += f", {len(report.sessions) - closed} still open"
        return summary

    def something_went_wrong(self) -> str:
        return SOMETHING_WENT_WRONG

    def clock_time(self, session: WorkingSession) -> str:
        return session.checkin_at.astimezone(self.tz).strftime("%H:%M")


def _quote(note: Optional[str]) -> str:
    return f"\n> {note}" if note else ""


__all__ = ["Replies"]
