"""Resolution of a user's highest administrative role."""

import asyncio
import logging
from enum import Enum
from typing import Dict, Iterable, Optional

from messaging.repositories.role_repository import RoleRepository
from messaging.schemas.message import Message


logger = logging.getLogger(__name__)


class AdminRole(str, Enum):

    ADMIN = "admin"
    SUPERADMIN = "superadmin"


def highest_admin_role(roles: Iterable[str]) -> Optional[AdminRole]:
    """Return superadmin over admin, or None when neither is held."""
    found = set(roles)
    if AdminRole.SUPERADMIN.value in found:
        return AdminRole.SUPERADMIN
    if AdminRole.ADMIN.value in found:
        return AdminRole.ADMIN
    return None


class RoleService:

    def __init__(self, role_repo: RoleRepository) -> None:
        self._role_repo = role_repo

    async def get_highest_admin_role(self, user_id: str) -> Optional[AdminRole]:
        roles = await self._role_repo.get_roles(user_id)
        return highest_admin_role(roles)


async def resolve_sender_roles(role_service, messages: Iterable[Message]) -> Dict[str, AdminRole]:
    """Highest role of each distinct admin sender; one lookup per sender."""
    admin_ids = sorted({m.sender_id for m in messages if m.sender_type == "admin" and m.sender_id})
    if not admin_ids:
        return {}
    results = await asyncio.gather(
        *(role_service.get_highest_admin_role(user_id) for user_id in admin_ids),
        return_exceptions=True,
    )
    roles: Dict[str, AdminRole] = {}
    for user_id, role in zip(admin_ids, results):
        if isinstance(role, Exception):
            logger.warning("Could not resolve role of %s: %s", user_id, role)
        elif role is not None:
            roles[user_id] = role
    return roles
