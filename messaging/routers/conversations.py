import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from messaging.errors import ConversationNotFoundError
from messaging.schemas.auth import AuthContext
from messaging.schemas.conversation import Conversation, ViewMode
from messaging.schemas.events import conversation_channel
from messaging.schemas.message import MessageCreate
from messaging.services.message_store import MessageStore, can_access, incoming_filter, own_side
from messaging.services.moderation import can_moderate_conversation
from messaging.services.role_service import RoleService, resolve_sender_roles
from messaging.utils.dependencies import (
    get_current_viewer,
    get_message_store,
    get_realtime_bus,
    get_role_service,
    viewer_from_headers,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversations"])


async def get_accessible_conversation(
    conversation_id: str,
    viewer: AuthContext = Depends(get_current_viewer),
    store: MessageStore = Depends(get_message_store),
) -> Conversation:
    conversation = await store.get_conversation(conversation_id)
    if not can_access(conversation, viewer):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant of this conversation")
    return conversation


@router.get("/sessions/{session_id}/conversations")
async def list_conversations(
    session_id: str,
    view_mode: ViewMode = Query("admin"),
    participant_id: Optional[str] = None,
    viewer: AuthContext = Depends(get_current_viewer),
    store: MessageStore = Depends(get_message_store),
):
    if view_mode == "admin":
        if not viewer.is_admin:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin view requires an admin role")
    else:
        # trainers and learners only ever see their own conversations
        participant_id = viewer.user_id
    items = await store.list_conversations(session_id, view_mode, participant_id=participant_id)
    return {"items": [c.model_dump(mode="json") for c in items]}


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation: Conversation = Depends(get_accessible_conversation)):
    return conversation.model_dump(mode="json")


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: str, viewer: AuthContext = Depends(get_current_viewer), store: MessageStore = Depends(get_message_store)):
    if not can_moderate_conversation("admin", viewer):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can delete conversations")
    await store.delete_conversation(conversation_id)


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation: Conversation = Depends(get_accessible_conversation),
    store: MessageStore = Depends(get_message_store),
    role_service: RoleService = Depends(get_role_service),
):
    messages = await store.list_messages(conversation.id)
    roles = await resolve_sender_roles(role_service, messages)
    return {
        "items": [m.model_dump(mode="json") for m in messages],
        "sender_roles": {user_id: role.value for user_id, role in roles.items()},
    }


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    body: MessageCreate,
    conversation: Conversation = Depends(get_accessible_conversation),
    viewer: AuthContext = Depends(get_current_viewer),
    store: MessageStore = Depends(get_message_store),
):
    message = await store.send_message(conversation.id, body.content, own_side(viewer.role), sender=viewer)
    return message.model_dump(mode="json")


@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation: Conversation = Depends(get_accessible_conversation),
    viewer: AuthContext = Depends(get_current_viewer),
    store: MessageStore = Depends(get_message_store),
):
    sender_type, exclude = incoming_filter(viewer.role)
    count = await store.mark_read(conversation.id, sender_type, exclude=exclude)
    return {"updated": count}


async def _may_follow(conversation_id: str, viewer: Optional[AuthContext], store: MessageStore) -> bool:
    if viewer is None:
        return False
    try:
        conversation = await store.get_conversation(conversation_id)
    except ConversationNotFoundError:
        return False
    return can_access(conversation, viewer)


@router.websocket("/conversations/{conversation_id}/ws")
async def conversation_socket(
    websocket: WebSocket,
    conversation_id: str,
    store: MessageStore = Depends(get_message_store),
    bus=Depends(get_realtime_bus),
):
    """Streams the conversation's change events as JSON text frames."""
    headers = websocket.headers
    viewer = viewer_from_headers(headers.get("x-user-id"), headers.get("x-user-role"), headers.get("x-user-name"))
    if not await _may_follow(conversation_id, viewer, store):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # subscribed before the handshake completes so no event slips between the two
    subscriber = await bus.subscribe(conversation_channel(conversation_id), websocket.send_text)
    await websocket.accept()
    sub_task = asyncio.create_task(subscriber.run())
    try:
        while True:
            # clients only listen; incoming frames are keep-alives
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Websocket closed for conversation %s", conversation_id)
    finally:
        await subscriber.cancel()
        sub_task.cancel()
        try:
            await sub_task
        except asyncio.CancelledError:
            pass
