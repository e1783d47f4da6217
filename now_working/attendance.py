"""Check-in / check-out state machine and working-hour reports."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone, tzinfo
from typing import Callable, List, Optional

from .errors import NotCheckedIn
from .models import MonthlyReport, WorkingSession
from .store import SessionStore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceEngine:
    """Stateless service shared by every channel adapter.

    All state lives in the session store; each operation re-reads it.
    """

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], datetime] = utcnow,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.store = store
        self.clock = clock
        self.tz = tz

    async def checkin(self, user_id: int, organization_id: int, note: Optional[str] = None) -> WorkingSession:
        """Open a new session.

        Raises :class:`AlreadyCheckedIn` when one is already open; the store
        enforces this atomically, so concurrent check-ins cannot both succeed.
        """

        return await self.store.create_session(user_id, organization_id, self.clock(), note or None)

    async def checkout(self, user_id: int, organization_id: int, note: Optional[str] = None) -> WorkingSession:
        """Close the open session, keeping its note unless a new one is given."""

        session = await self.store.find_open_session(user_id, organization_id)
        if session is None:
            raise NotCheckedIn(user_id, organization_id)
        closed = await self.store.close_session(session.id, self.clock(), note or None)
        if closed is None:
            # closed by a concurrent checkout
            raise NotCheckedIn(user_id, organization_id)
        return closed

    async def active_session(self, user_id: int, organization_id: int) -> Optional[WorkingSession]:
        return await self.store.find_open_session(user_id, organization_id)

    async def all_active_sessions(self, organization_id: int) -> List[WorkingSession]:
        return await self.store.list_open_sessions(organization_id)

    async def sessions_in_range(
        self, user_id: int, organization_id: int, start: datetime, end: datetime
    ) -> List[WorkingSession]:
        return await self.store.list_sessions_in_range(user_id, organization_id, start, end)

    async def monthly_report(self, user_id: int, organization_id: int, year: int, month: int) -> MonthlyReport:
        """Sum the hours of closed sessions started in the month.

        Open sessions are listed but add nothing to the total.
        """

        start, end = month_bounds(year, month, self.tz)
        sessions = await self.sessions_in_range(user_id, organization_id, start, end)
        total_hours = sum((s.duration_hours for s in sessions if not s.is_open), 0.0)
        return MonthlyReport(year=year, month=month, total_hours=total_hours, sessions=sessions)


def month_bounds(year: int, month: int, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """Return the first and last instant of a calendar month in ``tz``."""

    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime.combine(date(year, month, last_day), time.max, tzinfo=tz)
    return start, end


__all__ = ["AttendanceEngine", "month_bounds", "utcnow"]
