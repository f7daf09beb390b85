from fastapi import APIRouter, Depends, HTTPException, status

from messaging.errors import ContentValidationError
from messaging.schemas.auth import AuthContext
from messaging.schemas.message import MessageEdit
from messaging.services.message_store import MessageStore
from messaging.services.moderation import permissions_for
from messaging.utils.dependencies import get_current_viewer, get_message_store


router = APIRouter(prefix="/messages", tags=["messages"])


@router.patch("/{message_id}")
async def edit_message(
    message_id: str,
    body: MessageEdit,
    viewer: AuthContext = Depends(get_current_viewer),
    store: MessageStore = Depends(get_message_store),
):
    if not body.content.strip():
        raise ContentValidationError("Message content cannot be empty")
    message = await store.get_message(message_id)
    if not permissions_for(message, viewer).can_edit:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot edit this message")
    updated = await store.edit_message(message_id, body.content)
    return updated.model_dump(mode="json")


@router.delete("/{message_id}")
async def delete_message(message_id: str, viewer: AuthContext = Depends(get_current_viewer), store: MessageStore = Depends(get_message_store)):
    message = await store.get_message(message_id)
    if not permissions_for(message, viewer).can_delete:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot delete this message")
    deleted = await store.soft_delete_message(message_id, viewer.user_id)
    return deleted.model_dump(mode="json")
