"""Storage interfaces consumed by the attendance core."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from .models import Organization, Platform, User, WorkingSession


class SessionStore(Protocol):
    """Persists working sessions.

    Implementations must make ``create_session`` fail with
    :class:`~now_working.errors.AlreadyCheckedIn` when an open session already
    exists for the pair, and ``close_session`` return ``None`` when the session
    was closed concurrently. Both checks have to be atomic.
    """

    async def create_session(
        self, user_id: int, organization_id: int, checkin_at: datetime, note: Optional[str]
    ) -> WorkingSession: ...

    async def find_open_session(self, user_id: int, organization_id: int) -> Optional[WorkingSession]: ...

    async def close_session(
        self, session_id: int, checkout_at: datetime, note: Optional[str]
    ) -> Optional[WorkingSession]: ...

    async def list_open_sessions(self, organization_id: int) -> List[WorkingSession]: ...

    async def list_sessions_in_range(
        self, user_id: int, organization_id: int, start: datetime, end: datetime
    ) -> List[WorkingSession]: ...


class DirectoryStore(Protocol):
    async def find_user_by_platform_id(self, platform: Platform, platform_user_id: str) -> Optional[User]: ...

    async def active_organizations_of_user(self, user_id: int) -> List[Organization]: ...


__all__ = ["SessionStore", "DirectoryStore"]
