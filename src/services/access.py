"""Moderator capability checks and role management."""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import (
    ContentRepository,
    ProfileRepository,
    RoleRepository,
    persistence_guard,
    user_exists,
)
from src.errors import AuthorizationError, NotFoundError
from src.models import Identity, Role, UserWithRole

logger = logging.getLogger(__name__)


async def is_moderator(session: AsyncSession, user_id: str) -> bool:
    """True iff the user holds the admin role."""
    async with persistence_guard(session, "check your role", commit=False):
        return await RoleRepository(session).get_role(user_id) == Role.ADMIN


async def require_moderator(session: AsyncSession, actor: Identity) -> None:
    if not await is_moderator(session, actor.user_id):
        raise AuthorizationError("Moderator access required")


async def set_role(session: AsyncSession, target_user_id: str, role: Role) -> Role:
    """Assign a role directly. Used by the operator bootstrap endpoint."""
    async with persistence_guard(session, "update the role"):
        if not await user_exists(session, target_user_id):
            raise NotFoundError("User not found")
        await RoleRepository(session).upsert(target_user_id, role)
    logger.info("Role of %s set to %s by operator", target_user_id, role.value)
    return role


async def toggle_moderator(session: AsyncSession, actor: Identity, target_user_id: str) -> Role:
    """Flip admin <-> user for the target. Returns the new role."""
    await require_moderator(session, actor)
    async with persistence_guard(session, "update the role"):
        if not await user_exists(session, target_user_id):
            raise NotFoundError("User not found")
        roles = RoleRepository(session)
        current = await roles.get_role(target_user_id)
        new_role = Role.USER if current == Role.ADMIN else Role.ADMIN
        await roles.upsert(target_user_id, new_role)
    logger.info("Moderator %s changed role of %s: %s -> %s",
                actor.user_id, target_user_id, current.value, new_role.value)
    return new_role


async def list_users(session: AsyncSession, actor: Identity) -> list[UserWithRole]:
    """Every profile with its role and how much content it has submitted."""
    await require_moderator(session, actor)
    async with persistence_guard(session, "load users", commit=False):
        profiles = await ProfileRepository(session).list_all()
        roles = await RoleRepository(session).all_roles()
        counts = await ContentRepository(session).count_by_author()
    return [
        UserWithRole(
            id=p.id,
            username=p.username,
            role=roles.get(p.id, Role.USER),
            content_count=counts.get(p.id, 0),
            created_at=p.created_at,
        )
        for p in profiles
    ]
