"""MCP server exposing NowWorking attendance tools."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .api import serialize_session
from .attendance import AttendanceEngine
from .config import Settings, load_settings
from .db import Database
from .directory import DirectoryService
from .replies import Replies


def create_mcp(settings: Optional[Settings] = None) -> FastMCP:
    settings = settings or load_settings(os.getenv("NOW_WORKING_ENV"))
    database = Database(settings.database_path)
    engine = AttendanceEngine(database, tz=settings.tz)
    directory = DirectoryService(database)
    replies = Replies(settings.tz)

    mcp = FastMCP("now-working")

    async def _organization(slug: str):
        organization = await directory.find_organization_by_slug(slug)
        if organization is None:
            raise ValueError(f"organization {slug!r} not found")
        return organization

    @mcp.tool()
    async def who_is_working(organization: str) -> dict:
        """Return the members currently checked in to the organization."""

        org = await _organization(organization)
        sessions = await engine.all_active_sessions(org.id)
        return {
            "organization": org.slug,
            "summary": replies.roster(sessions),
            "sessions": [serialize_session(session) for session in sessions],
        }

    @mcp.tool()
    async def monthly_report(
        organization: str, user_id: int, year: Optional[int] = None, month: Optional[int] = None
    ) -> dict:
        """Return a user's worked hours for a month (defaults to the current month)."""

        org = await _organization(organization)
        user = await directory.find_user(user_id)
        if user is None:
            raise ValueError(f"user {user_id} not found")
        today = datetime.now(settings.tz)
        report = await engine.monthly_report(user.id, org.id, year or today.year, month or today.month)
        return {
            "organization": org.slug,
            "summary": replies.report_summary(user, report),
            "total_hours": report.total_hours,
            "sessions": [serialize_session(session) for session in report.sessions],
        }

    return mcp


__all__ = ["create_mcp"]


if __name__ == "__main__":  # pragma: no cover
    create_mcp().run()
