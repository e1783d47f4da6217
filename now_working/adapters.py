"""Slack and Chatwork adapters over the shared attendance core."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from .attendance import AttendanceEngine
from .commands import Command, parse_command
from .errors import (
    AlreadyCheckedIn,
    NoActiveMembership,
    NotCheckedIn,
    StoreUnavailable,
    UnknownIdentity,
)
from .identity import Actor, IdentityResolver
from .models import Platform
from .replies import Replies

logger = logging.getLogger(__name__)

Handler = Callable[[Actor, Command], Awaitable[str]]


class ChannelAdapter:
    """Route normalized commands to the engine and render replies.

    Business errors never leave :meth:`dispatch`; every outcome is a reply.
    """

    platform: Platform

    def __init__(self, engine: AttendanceEngine, resolver: IdentityResolver, replies: Replies) -> None:
        self.engine = engine
        self.resolver = resolver
        self.replies = replies
        self._handlers: Dict[str, Handler] = {
            "checkin": self._checkin,
            "checkout": self._checkout,
            "status": self._status,
            "vacation": self._vacation,
        }

    async def dispatch(self, platform_user_id: str, command: Command) -> str:
        try:
            actor = await self.resolver.resolve(self.platform, platform_user_id, command.organization)
            return await self._handlers[command.name](actor, command)
        except UnknownIdentity:
            logger.info("Unregistered %s user %s sent /%s", self.platform.value, platform_user_id, command.name)
            return self.replies.registration_required()
        except NoActiveMembership as exc:
            return self.replies.no_organization(exc.slug)
        except AlreadyCheckedIn:
            return self.replies.already_checked_in()
        except NotCheckedIn:
            return self.replies.not_checked_in()
        except StoreUnavailable:
            logger.exception("Store unavailable while handling /%s from %s", command.name, platform_user_id)
            return self.replies.something_went_wrong()
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error while handling /%s from %s", command.name, platform_user_id)
            return self.replies.something_went_wrong()

    async def _checkin(self, actor: Actor, command: Command) -> str:
        await self.engine.checkin(actor.user.id, actor.organization.id, command.param)
        return self.replies.checked_in(actor.user.name, command.param)

    async def _checkout(self, actor: Actor, command: Command) -> str:
        session = await self.engine.checkout(actor.user.id, actor.organization.id, command.param)
        return self.replies.checked_out(actor.user.name, session, command.param)

    async def _status(self, actor: Actor, command: Command) -> str:
        sessions = await self.engine.all_active_sessions(actor.organization.id)
        return self.replies.roster(sessions)

    async def _vacation(self, actor: Actor, command: Command) -> str:
        return self.replies.vacation()


class SlackAdapter(ChannelAdapter):
    platform = Platform.slack

    async def handle_command(self, form: Mapping[str, str]) -> str:
        """Handle a slash-command form post; empty string for unknown commands."""

        command = parse_command(f"{form.get('command', '')} {form.get('text', '')}")
        if command is None:
            return ""
        return await self.dispatch(form.get("user_id", ""), command)


class ChatworkAdapter(ChannelAdapter):
    platform = Platform.chatwork

    async def handle_webhook(self, payload: Mapping[str, Any]) -> Optional[Tuple[str, str]]:
        """Return ``(room_id, reply)`` for a command message, ``None`` otherwise."""

        if payload.get("webhook_event_type") != "message_created":
            return None
        event = payload.get("webhook_event") or {}
        command = parse_command(event.get("body") or "")
        if command is None:
            return None

        account_id = event.get("account_id") or (event.get("account") or {}).get("account_id")
        if account_id is None:
            logger.warning("Chatwork event without account id: %s", event.get("message_id"))
            return None
        reply = await self.dispatch(str(account_id), command)
        return str(event.get("room_id")), reply


__all__ = ["ChannelAdapter", "SlackAdapter", "ChatworkAdapter"]
