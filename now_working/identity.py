"""Map chat handles to users and the organization a command targets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import NoActiveMembership, UnknownIdentity
from .models import Organization, Platform, User
from .store import DirectoryStore


@dataclass(slots=True)
class Actor:
    user: User
    organization: Organization


class IdentityResolver:
    def __init__(self, store: DirectoryStore) -> None:
        self.store = store

    async def resolve_user(self, platform: Platform, platform_user_id: str) -> Optional[User]:
        return await self.store.find_user_by_platform_id(platform, platform_user_id)

    async def organizations_of(self, user_id: int) -> List[Organization]:
        """ACTIVE organizations of the user, oldest membership first."""

        return await self.store.active_organizations_of_user(user_id)

    async def resolve(
        self, platform: Platform, platform_user_id: str, organization: Optional[str] = None
    ) -> Actor:
        """Return the user and the organization a command acts on.

        Without an ``organization`` slug the first ACTIVE organization is used.
        """

        user = await self.resolve_user(platform, platform_user_id)
        if user is None:
            raise UnknownIdentity(platform.value, platform_user_id)

        organizations = await self.organizations_of(user.id)
        if organization:
            organizations = [org for org in organizations if org.slug == organization]
        if not organizations:
            raise NoActiveMembership(user.id, organization)
        return Actor(user=user, organization=organizations[0])


__all__ = ["Actor", "IdentityResolver"]
