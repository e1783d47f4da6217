"""FastAPI application exposing the chat webhooks and the NowWorking REST API."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import parse_qs

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .adapters import ChatworkAdapter, SlackAdapter
from .attendance import AttendanceEngine, utcnow
from .chatwork_client import ChatworkApiError, ChatworkClient
from .config import Settings, load_settings
from .db import Database
from .directory import DirectoryService
from .errors import DirectoryError, StoreUnavailable
from .identity import IdentityResolver
from .models import MembershipStatus, Platform, Role, WorkingSession
from .replies import Replies
from .security import SharedTokenVerifier, SlackSignatureVerifier, TokenVerifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UserCreate(BaseModel):
    name: str
    email: Optional[str] = None
    slack_user_id: Optional[str] = None
    chatwork_user_id: Optional[str] = None


class IdentityLink(BaseModel):
    platform: Platform
    platform_user_id: str


class OrganizationCreate(BaseModel):
    name: str
    slug: str
    founder_user_id: int


class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None


class MemberInvite(BaseModel):
    user_id: int
    role: Role = Role.MEMBER


class MemberUpdate(BaseModel):
    role: Optional[Role] = None
    status: Optional[MembershipStatus] = None


def create_app(
    settings: Optional[Settings] = None,
    chatwork_client: Optional[ChatworkClient] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    settings = settings or load_settings()
    database = Database(settings.database_path)
    chatwork_client = chatwork_client or ChatworkClient(settings.chatwork_api_token)
    tz = settings.tz

    engine = AttendanceEngine(database, clock=clock, tz=tz)
    resolver = IdentityResolver(database)
    directory = DirectoryService(database)
    slack = SlackAdapter(engine, resolver, Replies(tz, mention_prefix="@"))
    chatwork = ChatworkAdapter(engine, resolver, Replies(tz))
    slack_verifier = SlackSignatureVerifier(settings.slack_signing_secret)
    chatwork_verifier: TokenVerifier = SharedTokenVerifier(settings.chatwork_webhook_token)

    async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> None:
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    app = FastAPI(title="NowWorking API", version="0.1.0")
    app.state.engine = engine
    app.state.directory = directory

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        await chatwork_client.close()

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error("Store unavailable on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "store unavailable"},
        )

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # region Chat webhooks
    @app.post("/slack/commands")
    async def slack_commands(request: Request) -> Dict[str, Any]:
        body = await request.body()
        if not slack_verifier.verify_request(
            request.headers.get("X-Slack-Request-Timestamp", ""),
            body,
            request.headers.get("X-Slack-Signature", ""),
        ):
            logger.warning("Rejected Slack request with invalid signature")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid signature")

        form = {key: values[0] for key, values in parse_qs(body.decode("utf-8")).items()}
        reply = await slack.handle_command(form)
        if not reply:
            return {}
        return {"response_type": "in_channel", "text": reply}

    @app.post("/chatwork/webhook")
    async def chatwork_webhook(request: Request) -> Dict[str, str]:
        if not chatwork_verifier.verify(request.headers.get("X-ChatWorkWebhookTokenAuth", "")):
            logger.warning("Rejected Chatwork webhook with invalid token")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

        try:
            payload = json.loads(await request.body())
        except ValueError:
            return {"status": "ignored"}
        if not isinstance(payload, dict):
            return {"status": "ignored"}

        result = await chatwork.handle_webhook(payload)
        if result is None:
            return {"status": "ignored"}

        room_id, reply = result
        try:
            await chatwork_client.post_message(room_id, reply)
        except (httpx.HTTPError, ChatworkApiError) as exc:
            logger.error("Chatwork message send failed for room %s: %s", room_id, exc)
        return {"status": "success"}

    # endregion

    # region Attendance queries
    @app.get("/api/organizations/{slug}/active-sessions", dependencies=[Depends(verify_api_key)])
    async def get_active_sessions(slug: str) -> List[Dict[str, Any]]:
        organization = await _require(directory.require_organization(slug))
        sessions = await engine.all_active_sessions(organization.id)
        return [serialize_session(session) for session in sessions]

    @app.get("/api/organizations/{slug}/users/{user_id}/sessions", dependencies=[Depends(verify_api_key)])
    async def get_sessions(slug: str, user_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        organization = await _require(directory.require_organization(slug))
        sessions = await engine.sessions_in_range(user_id, organization.id, _aware(start, tz), _aware(end, tz))
        return [serialize_session(session) for session in sessions]

    @app.get("/api/organizations/{slug}/users/{user_id}/report", dependencies=[Depends(verify_api_key)])
    async def get_monthly_report(slug: str, user_id: int, year: int, month: int) -> Dict[str, Any]:
        if not 1 <= month <= 12:
            raise HTTPException(status_code=400, detail="month must be between 1 and 12")
        organization = await _require(directory.require_organization(slug))
        report = await engine.monthly_report(user_id, organization.id, year, month)
        return {
            "organization": organization.slug,
            "user_id": user_id,
            "year": report.year,
            "month": report.month,
            "total_hours": report.total_hours,
            "sessions": [serialize_session(session) for session in report.sessions],
        }

    # endregion

    # region Provisioning
    @app.post("/api/users", status_code=201, dependencies=[Depends(verify_api_key)])
    async def create_user(payload: UserCreate) -> Dict[str, Any]:
        user = await _require(
            directory.register_user(payload.name, payload.email, payload.slack_user_id, payload.chatwork_user_id)
        )
        return asdict(user)

    @app.get("/api/users", dependencies=[Depends(verify_api_key)])
    async def find_user_by_email(email: str) -> Dict[str, Any]:
        user = await directory.find_user_by_email(email)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"no user with email {email!r}")
        return asdict(user)

    @app.post("/api/users/{user_id}/identities", dependencies=[Depends(verify_api_key)])
    async def link_identity(user_id: int, payload: IdentityLink) -> Dict[str, Any]:
        user = await _require(directory.link_identity(user_id, payload.platform, payload.platform_user_id))
        return asdict(user)

    @app.post("/api/organizations", status_code=201, dependencies=[Depends(verify_api_key)])
    async def create_organization(payload: OrganizationCreate) -> Dict[str, Any]:
        organization = await _require(
            directory.create_organization(payload.name, payload.slug, payload.founder_user_id)
        )
        return asdict(organization)

    @app.patch("/api/organizations/{slug}", dependencies=[Depends(verify_api_key)])
    async def update_organization(slug: str, payload: OrganizationUpdate) -> Dict[str, Any]:
        if payload.name is None and payload.slug is None:
            raise HTTPException(status_code=400, detail="nothing to update")
        organization = await _require(directory.require_organization(slug))
        updated = await _require(directory.update_organization(organization.id, name=payload.name, slug=payload.slug))
        return asdict(updated)

    @app.get("/api/organizations/{slug}/members", dependencies=[Depends(verify_api_key)])
    async def list_members(slug: str, active_only: bool = False) -> List[Dict[str, Any]]:
        organization = await _require(directory.require_organization(slug))
        return [asdict(membership) for membership in await directory.members(organization.id, active_only=active_only)]

    @app.get("/api/organizations/{slug}/members/{user_id}", dependencies=[Depends(verify_api_key)])
    async def member_status(slug: str, user_id: int) -> Dict[str, Any]:
        organization = await _require(directory.require_organization(slug))
        active = await directory.is_active_member(user_id, organization.id)
        return {"organization": organization.slug, "user_id": user_id, "active": active}

    @app.post("/api/organizations/{slug}/members", status_code=201, dependencies=[Depends(verify_api_key)])
    async def invite_member(slug: str, payload: MemberInvite) -> Dict[str, Any]:
        organization = await _require(directory.require_organization(slug))
        membership = await _require(directory.invite(payload.user_id, organization.id, payload.role))
        return asdict(membership)

    @app.post("/api/memberships/{membership_id}/accept", dependencies=[Depends(verify_api_key)])
    async def accept_invitation(membership_id: int) -> Dict[str, Any]:
        membership = await _require(directory.accept_invitation(membership_id))
        return asdict(membership)

    @app.patch("/api/organizations/{slug}/members/{user_id}", dependencies=[Depends(verify_api_key)])
    async def update_member(slug: str, user_id: int, payload: MemberUpdate) -> Dict[str, Any]:
        organization = await _require(directory.require_organization(slug))
        membership = None
        if payload.role is not None:
            membership = await _require(directory.change_role(user_id, organization.id, payload.role))
        if payload.status is MembershipStatus.SUSPENDED:
            membership = await _require(directory.suspend_member(user_id, organization.id))
        elif payload.status is MembershipStatus.LEFT:
            membership = await _require(directory.remove_member(user_id, organization.id))
        elif payload.status is not None:
            raise HTTPException(status_code=400, detail="status can only be set to SUSPENDED or LEFT")
        if membership is None:
            raise HTTPException(status_code=400, detail="nothing to update")
        return asdict(membership)

    # endregion

    return app


async def _require(awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except DirectoryError as exc:
        code = status.HTTP_404_NOT_FOUND if exc.not_found else status.HTTP_409_CONFLICT
        raise HTTPException(status_code=code, detail=str(exc)) from exc


def _aware(value: datetime, tz: tzinfo) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=tz)


def serialize_session(session: WorkingSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "user_name": session.user.name if session.user else None,
        "organization_id": session.organization_id,
        "checkin_at": session.checkin_at.isoformat(),
        "checkout_at": session.checkout_at.isoformat() if session.checkout_at else None,
        "note": session.note,
        "duration_hours": session.duration_hours,
    }


__all__ = ["create_app", "serialize_session"]
