from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import ValidationError

from messaging.database.connection import mongo_db_dependency
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.device_repository import DeviceRepository
from messaging.repositories.message_repository import MessageRepository
from messaging.repositories.role_repository import RoleRepository
from messaging.schemas.auth import AuthContext
from messaging.services.message_store import MessageStore
from messaging.services.notification_service import TrainerNotifier
from messaging.services.role_service import RoleService
from messaging.utils.realtime_bus import get_bus


def viewer_from_headers(
    user_id: Optional[str], role: Optional[str], name: Optional[str] = None
) -> Optional[AuthContext]:
    """None when the identity is missing or the role is not one we know."""
    if not user_id or not role:
        return None
    try:
        return AuthContext(user_id=user_id, role=role, display_name=name)
    except ValidationError:
        return None


async def get_current_viewer(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> AuthContext:
    """Viewer identity forwarded by the authenticating proxy."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing viewer identity")
    viewer = viewer_from_headers(x_user_id, x_user_role, x_user_name)
    if viewer is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role")
    return viewer


async def get_realtime_bus():
    return await get_bus()


async def get_message_store(db=Depends(mongo_db_dependency), bus=Depends(get_realtime_bus)) -> MessageStore:
    return MessageStore(
        MessageRepository(db),
        ConversationRepository(db),
        bus=bus,
        notifier=TrainerNotifier(DeviceRepository(db)),
    )


async def get_role_service(db=Depends(mongo_db_dependency)) -> RoleService:
    return RoleService(RoleRepository(db))


async def get_device_repository(db=Depends(mongo_db_dependency)) -> DeviceRepository:
    return DeviceRepository(db)
