"""User, organization and membership provisioning."""

from __future__ import annotations

import logging
from typing import List, Optional

from .db import Database
from .errors import DirectoryError
from .models import Membership, MembershipStatus, Organization, Platform, Role, User

logger = logging.getLogger(__name__)


class DirectoryService:
    """Registers users, links chat identities and manages memberships."""

    def __init__(self, database: Database) -> None:
        self.database = database

    # region Users
    async def register_user(
        self,
        name: str,
        email: Optional[str] = None,
        slack_user_id: Optional[str] = None,
        chatwork_user_id: Optional[str] = None,
    ) -> User:
        user = await self.database.create_user(name, email, slack_user_id, chatwork_user_id)
        logger.info("Registered user %s (%s)", user.id, user.name)
        return user

    async def link_identity(self, user_id: int, platform: Platform, platform_user_id: str) -> User:
        user = await self.database.link_identity(user_id, platform, platform_user_id)
        if user is None:
            raise DirectoryError(f"user {user_id} not found", not_found=True)
        logger.info("Linked %s id %s to user %s", platform.value, platform_user_id, user_id)
        return user

    async def find_user(self, user_id: int) -> Optional[User]:
        return await self.database.find_user(user_id)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self.database.find_user_by_email(email)

    # endregion

    # region Organizations
    async def create_organization(self, name: str, slug: str, founder_user_id: int) -> Organization:
        """Create an organization with its founder as ACTIVE owner."""

        if await self.database.find_user(founder_user_id) is None:
            raise DirectoryError(f"user {founder_user_id} not found", not_found=True)
        organization = await self.database.create_organization(name, slug, founder_user_id)
        logger.info("Created organization %s owned by user %s", slug, founder_user_id)
        return organization

    async def find_organization(self, organization_id: int) -> Optional[Organization]:
        return await self.database.find_organization(organization_id)

    async def find_organization_by_slug(self, slug: str) -> Optional[Organization]:
        return await self.database.find_organization_by_slug(slug)

    async def require_organization(self, slug: str) -> Organization:
        organization = await self.database.find_organization_by_slug(slug)
        if organization is None:
            raise DirectoryError(f"organization {slug!r} not found", not_found=True)
        return organization

    async def update_organization(
        self, organization_id: int, name: Optional[str] = None, slug: Optional[str] = None
    ) -> Organization:
        organization = await self.database.update_organization(organization_id, name=name, slug=slug)
        if organization is None:
            raise DirectoryError(f"organization {organization_id} not found", not_found=True)
        return organization

    # endregion

    # region Memberships
    async def invite(self, user_id: int, organization_id: int, role: Role = Role.MEMBER) -> Membership:
        return await self.database.create_membership(user_id, organization_id, role, MembershipStatus.INVITED)

    async def accept_invitation(self, membership_id: int) -> Membership:
        membership = await self.database.get_membership(membership_id)
        if membership is None:
            raise DirectoryError(f"membership {membership_id} not found", not_found=True)
        if membership.status is not MembershipStatus.INVITED:
            raise DirectoryError(f"membership {membership_id} is {membership.status.value}, not INVITED")
        return await self.database.update_membership(membership_id, status=MembershipStatus.ACTIVE)

    async def change_role(self, user_id: int, organization_id: int, role: Role) -> Membership:
        membership = await self._membership(user_id, organization_id)
        return await self.database.update_membership(membership.id, role=role)

    async def suspend_member(self, user_id: int, organization_id: int) -> Membership:
        membership = await self._membership(user_id, organization_id)
        return await self.database.update_membership(membership.id, status=MembershipStatus.SUSPENDED)

    async def remove_member(self, user_id: int, organization_id: int) -> Membership:
        """Mark the membership as LEFT; history is kept."""

        membership = await self._membership(user_id, organization_id)
        return await self.database.update_membership(membership.id, status=MembershipStatus.LEFT)

    async def members(self, organization_id: int, active_only: bool = False) -> List[Membership]:
        return await self.database.list_memberships(organization_id, active_only=active_only)

    async def is_active_member(self, user_id: int, organization_id: int) -> bool:
        membership = await self.database.find_membership(user_id, organization_id)
        return membership is not None and membership.status is MembershipStatus.ACTIVE

    async def _membership(self, user_id: int, organization_id: int) -> Membership:
        membership = await self.database.find_membership(user_id, organization_id)
        if membership is None:
            raise DirectoryError(
                f"user {user_id} is not a member of organization {organization_id}", not_found=True
            )
        return membership

    # endregion


__all__ = ["DirectoryService"]
