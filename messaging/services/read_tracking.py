"""Marks the other side's messages as read when a conversation is opened."""

import logging
from typing import Callable, Optional

from messaging.errors import MessagingError
from messaging.schemas.message import Message
from messaging.services.message_store import incoming_filter, own_side


logger = logging.getLogger(__name__)


class ReadTracker:

    def __init__(self, store, on_messages_read: Optional[Callable[[str], None]] = None) -> None:
        self._store = store
        self._on_messages_read = on_messages_read
        self._last_marked: Optional[str] = None

    @property
    def last_marked(self) -> Optional[str]:
        return self._last_marked

    def reset(self) -> None:
        self._last_marked = None

    async def mark_read(self, conversation_id: str, viewer_role: str) -> int:
        """Mark once per activation; repeated calls for the same id are no-ops."""
        if self._last_marked == conversation_id:
            return 0
        self._last_marked = conversation_id
        return await self._sweep(conversation_id, viewer_role)

    async def mark_incoming(self, message: Message, viewer_role: str) -> int:
        """Mark right away a message from the other side that arrived live."""
        if message.read_at is not None or message.sender_type == own_side(viewer_role):
            return 0
        sender_type, exclude = incoming_filter(viewer_role)
        if exclude == (message.sender_type == sender_type):
            return 0
        return await self._sweep(message.conversation_id, viewer_role)

    async def _sweep(self, conversation_id: str, viewer_role: str) -> int:
        sender_type, exclude = incoming_filter(viewer_role)
        try:
            marked = await self._store.mark_read(conversation_id, sender_type, exclude=exclude)
        except MessagingError:
            logger.exception("Error marking messages as read for %s in %s", viewer_role, conversation_id)
            return 0
        if own_side(viewer_role) == "admin" and self._on_messages_read is not None:
            self._on_messages_read(conversation_id)
        return marked
