"""Dataclasses representing NowWorking domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Platform(str, Enum):
    slack = "slack"
    chatwork = "chatwork"


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    SUSPENDED = "SUSPENDED"
    LEFT = "LEFT"


@dataclass(slots=True)
class User:
    id: int
    name: str
    email: str | None = None
    slack_user_id: str | None = None
    chatwork_user_id: str | None = None

    def identity(self, platform: Platform) -> str | None:
        if platform is Platform.slack:
            return self.slack_user_id
        return self.chatwork_user_id


@dataclass(slots=True)
class Organization:
    id: int
    slug: str
    name: str


@dataclass(slots=True)
class Membership:
    id: int
    user_id: int
    organization_id: int
    role: Role
    status: MembershipStatus


@dataclass(slots=True)
class WorkingSession:
    """A work period; open while ``checkout_at`` is unset."""

    id: int
    user_id: int
    organization_id: int
    checkin_at: datetime
    checkout_at: Optional[datetime] = None
    note: Optional[str] = None
    user: Optional[User] = None

    @property
    def is_open(self) -> bool:
        return self.checkout_at is None

    @property
    def duration_hours(self) -> float:
        """Elapsed hours for a closed session, ``0.0`` while open."""

        if self.checkout_at is None:
            return 0.0
        return (self.checkout_at - self.checkin_at).total_seconds() / 3600


@dataclass(slots=True)
class MonthlyReport:
    year: int
    month: int
    total_hours: float
    sessions: List[WorkingSession] = field(default_factory=list)


__all__ = [
    "Platform",
    "Role",
    "MembershipStatus",
    "User",
    "Organization",
    "Membership",
    "WorkingSession",
    "MonthlyReport",
]
