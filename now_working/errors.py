"""Exceptions raised by the attendance core."""

from __future__ import annotations

from typing import Optional


class AttendanceError(RuntimeError):
    """Base class for errors the channel adapters render as replies."""


class UnknownIdentity(AttendanceError):
    """Raised when a chat handle is not linked to any user."""

    def __init__(self, platform: str, platform_user_id: str) -> None:
        super().__init__(f"no user linked to {platform} id {platform_user_id}")
        self.platform = platform
        self.platform_user_id = platform_user_id


class NoActiveMembership(AttendanceError):
    """Raised when a user has no ACTIVE organization (or not the selected one)."""

    def __init__(self, user_id: int, slug: Optional[str] = None) -> None:
        detail = f" named {slug!r}" if slug else ""
        super().__init__(f"user {user_id} has no active organization{detail}")
        self.user_id = user_id
        self.slug = slug


class AlreadyCheckedIn(AttendanceError):
    def __init__(self, user_id: int, organization_id: int) -> None:
        super().__init__(f"user {user_id} is already checked in to organization {organization_id}")
        self.user_id = user_id
        self.organization_id = organization_id


class NotCheckedIn(AttendanceError):
    def __init__(self, user_id: int, organization_id: int) -> None:
        super().__init__(f"user {user_id} is not checked in to organization {organization_id}")
        self.user_id = user_id
        self.organization_id = organization_id


class StoreUnavailable(AttendanceError):
    """Raised when the persistence layer fails."""


class DirectoryError(RuntimeError):
    """Raised by provisioning operations on conflicting or missing records."""

    def __init__(self, message: str, *, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


__all__ = [
    "AttendanceError",
    "UnknownIdentity",
    "NoActiveMembership",
    "AlreadyCheckedIn",
    "NotCheckedIn",
    "StoreUnavailable",
    "DirectoryError",
]
