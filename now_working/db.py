"""SQLite persistence layer for NowWorking."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool

from .errors import AlreadyCheckedIn, DirectoryError, StoreUnavailable
from .models import (
    Membership,
    MembershipStatus,
    Organization,
    Platform,
    Role,
    User,
    WorkingSession,
)

Connection = sqlite3.Connection
Row = sqlite3.Row
T = TypeVar("T")

IDENTITY_COLUMNS = {
    Platform.slack: "slack_user_id",
    Platform.chatwork: "chatwork_user_id",
}

SESSION_COLUMNS = "s.id, s.user_id, s.organization_id, s.checkin_at, s.checkout_at, s.note"
USER_COLUMNS = "u.id, u.name, u.email, u.slack_user_id, u.chatwork_user_id"


class Database:
    """SQLite implementation of the session and directory stores.

    Every call opens its own connection, so no session state outlives a call.
    The async methods run their sqlite work in the threadpool; a locked database
    only blocks the worker thread, never the event loop.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open database {self.path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await run_in_threadpool(func, *args)

    def _initialize(self) -> None:
        with self.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE,
                    slack_user_id TEXT UNIQUE,
                    chatwork_user_id TEXT UNIQUE,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS organizations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    slug TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS memberships (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    organization_id INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(user_id, organization_id),
                    FOREIGN KEY(user_id) REFERENCES users(id),
                    FOREIGN KEY(organization_id) REFERENCES organizations(id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS working_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    organization_id INTEGER NOT NULL,
                    checkin_at REAL NOT NULL,
                    checkout_at REAL,
                    note TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id),
                    FOREIGN KEY(organization_id) REFERENCES organizations(id)
                )
                """
            )
            # at most one open session per (user, organization)
            cursor.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS working_sessions_open
                ON working_sessions (user_id, organization_id)
                WHERE checkout_at IS NULL
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS working_sessions_checkin
                ON working_sessions (organization_id, user_id, checkin_at)
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS vacations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    organization_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    reason TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id),
                    FOREIGN KEY(organization_id) REFERENCES organizations(id)
                )
                """
            )
            conn.commit()

    # region Sessions
    async def create_session(
        self, user_id: int, organization_id: int, checkin_at: datetime, note: Optional[str]
    ) -> WorkingSession:
        return await self._run(self._create_session, user_id, organization_id, checkin_at, note)

    def _create_session(
        self, user_id: int, organization_id: int, checkin_at: datetime, note: Optional[str]
    ) -> WorkingSession:
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO working_sessions (user_id, organization_id, checkin_at, note)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, organization_id, _to_ts(checkin_at), note),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                if "working_sessions" in str(exc):
                    raise AlreadyCheckedIn(user_id, organization_id) from exc
                raise
            conn.commit()
            return WorkingSession(
                id=cursor.lastrowid,
                user_id=user_id,
                organization_id=organization_id,
                checkin_at=checkin_at,
                note=note,
            )

    async def find_open_session(self, user_id: int, organization_id: int) -> Optional[WorkingSession]:
        return await self._run(self._find_open_session, user_id, organization_id)

    def _find_open_session(self, user_id: int, organization_id: int) -> Optional[WorkingSession]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {SESSION_COLUMNS} FROM working_sessions s
                WHERE s.user_id = ? AND s.organization_id = ? AND s.checkout_at IS NULL
                """,
                (user_id, organization_id),
            )
            row = cursor.fetchone()
            return _session(row) if row else None

    async def close_session(
        self, session_id: int, checkout_at: datetime, note: Optional[str]
    ) -> Optional[WorkingSession]:
        return await self._run(self._close_session, session_id, checkout_at, note)

    def _close_session(self, session_id: int, checkout_at: datetime, note: Optional[str]) -> Optional[WorkingSession]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE working_sessions
                SET checkout_at = ?, note = COALESCE(?, note)
                WHERE id = ? AND checkout_at IS NULL
                """,
                (_to_ts(checkout_at), note, session_id),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                return None
            conn.commit()
            row = conn.execute(
                f"SELECT {SESSION_COLUMNS} FROM working_sessions s WHERE s.id = ?",
                (session_id,),
            ).fetchone()
            return _session(row)

    async def list_open_sessions(self, organization_id: int) -> List[WorkingSession]:
        """Open sessions of the organization's ACTIVE members, oldest first."""

        return await self._run(self._list_open_sessions, organization_id)

    def _list_open_sessions(self, organization_id: int) -> List[WorkingSession]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {SESSION_COLUMNS},
                       u.name AS user_name,
                       u.email AS user_email,
                       u.slack_user_id,
                       u.chatwork_user_id
                FROM working_sessions s
                JOIN users u ON u.id = s.user_id
                JOIN memberships m
                  ON m.user_id = s.user_id AND m.organization_id = s.organization_id AND m.status = ?
                WHERE s.organization_id = ? AND s.checkout_at IS NULL
                ORDER BY s.checkin_at, s.id
                """,
                (MembershipStatus.ACTIVE.value, organization_id),
            )
            sessions = []
            for row in cursor.fetchall():
                session = _session(row)
                session.user = User(
                    id=row["user_id"],
                    name=row["user_name"],
                    email=row["user_email"],
                    slack_user_id=row["slack_user_id"],
                    chatwork_user_id=row["chatwork_user_id"],
                )
                sessions.append(session)
            return sessions

    async def list_sessions_in_range(
        self, user_id: int, organization_id: int, start: datetime, end: datetime
    ) -> List[WorkingSession]:
        return await self._run(self._list_sessions_in_range, user_id, organization_id, start, end)

    def _list_sessions_in_range(
        self, user_id: int, organization_id: int, start: datetime, end: datetime
    ) -> List[WorkingSession]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {SESSION_COLUMNS} FROM working_sessions s
                WHERE s.user_id = ? AND s.organization_id = ?
                  AND s.checkin_at BETWEEN ? AND ?
                ORDER BY s.checkin_at, s.id
                """,
                (user_id, organization_id, _to_ts(start), _to_ts(end)),
            )
            return [_session(row) for row in cursor.fetchall()]

    # endregion

    # region Users
    async def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        slack_user_id: Optional[str] = None,
        chatwork_user_id: Optional[str] = None,
    ) -> User:
        return await self._run(self._create_user, name, email, slack_user_id, chatwork_user_id)

    def _create_user(
        self,
        name: str,
        email: Optional[str],
        slack_user_id: Optional[str],
        chatwork_user_id: Optional[str],
    ) -> User:
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, slack_user_id, chatwork_user_id)
                    VALUES (?, ?, ?, ?)
                    """,
                    (name, email, slack_user_id, chatwork_user_id),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DirectoryError(f"user conflicts with an existing user: {exc}") from exc
            conn.commit()
            return User(
                id=cursor.lastrowid,
                name=name,
                email=email,
                slack_user_id=slack_user_id,
                chatwork_user_id=chatwork_user_id,
            )

    async def link_identity(self, user_id: int, platform: Platform, platform_user_id: str) -> Optional[User]:
        return await self._run(self._link_identity, user_id, platform, platform_user_id)

    def _link_identity(self, user_id: int, platform: Platform, platform_user_id: str) -> Optional[User]:
        column = IDENTITY_COLUMNS[platform]
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    f"UPDATE users SET {column} = ? WHERE id = ?",
                    (platform_user_id, user_id),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DirectoryError(f"{platform.value} id {platform_user_id} is already linked") from exc
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self._fetch_user("u.id = ?", user_id)

    async def find_user(self, user_id: int) -> Optional[User]:
        return await self._run(self._fetch_user, "u.id = ?", user_id)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self._run(self._fetch_user, "u.email = ?", email)

    async def find_user_by_platform_id(self, platform: Platform, platform_user_id: str) -> Optional[User]:
        return await self._run(self._fetch_user, f"u.{IDENTITY_COLUMNS[platform]} = ?", platform_user_id)

    def _fetch_user(self, clause: str, value: object) -> Optional[User]:
        with self.connect() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users u WHERE {clause}", (value,)).fetchone()
            return _user(row) if row else None

    # endregion

    # region Organizations
    async def create_organization(self, name: str, slug: str, founder_user_id: int) -> Organization:
        return await self._run(self._create_organization, name, slug, founder_user_id)

    def _create_organization(self, name: str, slug: str, founder_user_id: int) -> Organization:
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO organizations (slug, name) VALUES (?, ?)",
                    (slug, name),
                )
                organization_id = cursor.lastrowid
                conn.execute(
                    """
                    INSERT INTO memberships (user_id, organization_id, role, status)
                    VALUES (?, ?, ?, ?)
                    """,
                    (founder_user_id, organization_id, Role.OWNER.value, MembershipStatus.ACTIVE.value),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DirectoryError(f"cannot create organization {slug!r}: {exc}") from exc
            conn.commit()
            return Organization(id=organization_id, slug=slug, name=name)

    async def find_organization(self, organization_id: int) -> Optional[Organization]:
        return await self._run(self._fetch_organization, "id = ?", organization_id)

    async def find_organization_by_slug(self, slug: str) -> Optional[Organization]:
        return await self._run(self._fetch_organization, "slug = ?", slug)

    def _fetch_organization(self, clause: str, value: object) -> Optional[Organization]:
        with self.connect() as conn:
            row = conn.execute(f"SELECT id, slug, name FROM organizations WHERE {clause}", (value,)).fetchone()
            return Organization(id=row["id"], slug=row["slug"], name=row["name"]) if row else None

    async def update_organization(
        self, organization_id: int, name: Optional[str] = None, slug: Optional[str] = None
    ) -> Optional[Organization]:
        return await self._run(self._update_organization, organization_id, name, slug)

    def _update_organization(
        self, organization_id: int, name: Optional[str], slug: Optional[str]
    ) -> Optional[Organization]:
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE organizations
                    SET name = COALESCE(?, name), slug = COALESCE(?, slug)
                    WHERE id = ?
                    """,
                    (name, slug, organization_id),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DirectoryError(f"slug {slug!r} is already taken") from exc
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self._fetch_organization("id = ?", organization_id)

    async def active_organizations_of_user(self, user_id: int) -> List[Organization]:
        return await self._run(self._active_organizations_of_user, user_id)

    def _active_organizations_of_user(self, user_id: int) -> List[Organization]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT o.id, o.slug, o.name
                FROM memberships m
                JOIN organizations o ON o.id = m.organization_id
                WHERE m.user_id = ? AND m.status = ?
                ORDER BY m.id
                """,
                (user_id, MembershipStatus.ACTIVE.value),
            )
            return [Organization(id=row["id"], slug=row["slug"], name=row["name"]) for row in cursor.fetchall()]

    # endregion

    # region Memberships
    async def create_membership(
        self, user_id: int, organization_id: int, role: Role, status: MembershipStatus
    ) -> Membership:
        return await self._run(self._create_membership, user_id, organization_id, role, status)

    def _create_membership(
        self, user_id: int, organization_id: int, role: Role, status: MembershipStatus
    ) -> Membership:
        with self.connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO memberships (user_id, organization_id, role, status)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, organization_id, role.value, status.value),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DirectoryError(
                    f"cannot add user {user_id} to organization {organization_id}: {exc}"
                ) from exc
            conn.commit()
            return Membership(
                id=cursor.lastrowid,
                user_id=user_id,
                organization_id=organization_id,
                role=role,
                status=status,
            )

    async def find_membership(self, user_id: int, organization_id: int) -> Optional[Membership]:
        rows = await self._run(
            self._fetch_memberships, "user_id = ? AND organization_id = ?", (user_id, organization_id)
        )
        return rows[0] if rows else None

    async def get_membership(self, membership_id: int) -> Optional[Membership]:
        rows = await self._run(self._fetch_memberships, "id = ?", (membership_id,))
        return rows[0] if rows else None

    async def list_memberships(self, organization_id: int, active_only: bool = False) -> List[Membership]:
        if active_only:
            return await self._run(
                self._fetch_memberships,
                "organization_id = ? AND status = ?",
                (organization_id, MembershipStatus.ACTIVE.value),
            )
        return await self._run(self._fetch_memberships, "organization_id = ?", (organization_id,))

    async def update_membership(
        self,
        membership_id: int,
        role: Optional[Role] = None,
        status: Optional[MembershipStatus] = None,
    ) -> Optional[Membership]:
        return await self._run(self._update_membership, membership_id, role, status)

    def _update_membership(
        self, membership_id: int, role: Optional[Role], status: Optional[MembershipStatus]
    ) -> Optional[Membership]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE memberships
                SET role = COALESCE(?, role), status = COALESCE(?, status)
                WHERE id = ?
                """,
                (role.value if role else None, status.value if status else None, membership_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        rows = self._fetch_memberships("id = ?", (membership_id,))
        return rows[0] if rows else None

    def _fetch_memberships(self, clause: str, params: tuple) -> List[Membership]:
        with self.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT id, user_id, organization_id, role, status
                FROM memberships WHERE {clause} ORDER BY id
                """,
                params,
            )
            return [
                Membership(
                    id=row["id"],
                    user_id=row["user_id"],
                    organization_id=row["organization_id"],
                    role=Role(row["role"]),
                    status=MembershipStatus(row["status"]),
                )
                for row in cursor.fetchall()
            ]

    # endregion


def _to_ts(value: datetime) -> float:
    return value.timestamp()


def _from_ts(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _session(row: Row) -> WorkingSession:
    return WorkingSession(
        id=row["id"],
        user_id=row["user_id"],
        organization_id=row["organization_id"],
        checkin_at=_from_ts(row["checkin_at"]),
        checkout_at=_from_ts(row["checkout_at"]),
        note=row["note"],
    )


def _user(row: Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        slack_user_id=row["slack_user_id"],
        chatwork_user_id=row["chatwork_user_id"],
    )


__all__ = ["Database"]
