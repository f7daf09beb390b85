"""Async client over the conversation and message collections.

Every write is followed by a change event on the conversation channel of the
realtime bus, so open views pick up inserts and updates without refetching.
"""

import logging
from typing import Any, Dict, List, NoReturn, Optional, Tuple

from pymongo.errors import OperationFailure, PyMongoError

from messaging.errors import (
    AccessDeniedError,
    ContentValidationError,
    ConversationDeletePartialFailure,
    ConversationNotFoundError,
    FetchError,
    MessageDeletedError,
    MessageNotFoundError,
    MutationError,
)
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.message_repository import MessageRepository
from messaging.schemas.auth import AuthContext
from messaging.schemas.conversation import Conversation, ViewMode
from messaging.schemas.events import ChangeEvent, ChangeType, conversation_channel
from messaging.schemas.message import Message, SenderType


logger = logging.getLogger(__name__)

# MongoDB "Unauthorized"
UNAUTHORIZED_CODE = 13
PREVIEW_LENGTH = 200


def own_side(role: str) -> SenderType:
    """Sender type a viewer writes as."""
    if role in ("admin", "superadmin"):
        return "admin"
    if role == "formateur":
        return "formateur"
    return "apprenant"


def incoming_filter(role: str) -> Tuple[SenderType, bool]:
    """(sender_type, exclude) selecting the messages a viewer receives.

    Trainers receive admin messages; admins and learners receive everything
    not written by their own side.
    """
    side = own_side(role)
    if side == "formateur":
        return "admin", False
    return side, True


def can_access(conversation: Conversation, viewer: AuthContext) -> bool:
    """Admins reach every conversation; others only their own and, for learners, group ones."""
    if viewer.is_admin:
        return True
    side = own_side(viewer.role)
    if conversation.type == "groupe":
        return side == "apprenant"
    return conversation.type == side and conversation.participant_id == viewer.user_id


def _raise_mutation_error(exc: PyMongoError, action: str) -> NoReturn:
    if isinstance(exc, OperationFailure) and exc.code == UNAUTHORIZED_CODE:
        raise AccessDeniedError(f"Access denied while trying to {action}") from exc
    raise MutationError(f"Failed to {action}: {exc}") from exc


class MessageStore:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        bus=None,
        notifier=None,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._bus = bus
        self._notifier = notifier

    async def list_conversations(
        self,
        session_id: str,
        view_mode: ViewMode,
        participant_id: Optional[str] = None,
    ) -> List[Conversation]:
        conversation_type = None
        include_groups = False
        if view_mode == "formateur":
            conversation_type = "formateur"
        elif view_mode == "apprenant":
            conversation_type = "apprenant"
            include_groups = True
        try:
            rows = await self._conversation_repo.list_for_session(
                session_id,
                conversation_type=conversation_type,
                participant_id=participant_id if conversation_type else None,
                include_groups=include_groups,
            )
            sender_type, exclude = incoming_filter(view_mode)
            conversations = []
            for row in rows:
                conversations.append(await self._enrich(row, sender_type, exclude))
        except PyMongoError as exc:
            raise FetchError(f"Could not list conversations for session {session_id}") from exc
        return conversations

    async def get_conversation(self, conversation_id: str) -> Conversation:
        try:
            row = await self._conversation_repo.get(conversation_id)
        except PyMongoError as exc:
            raise FetchError(f"Could not load conversation {conversation_id}") from exc
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return Conversation.model_validate(row)

    async def list_messages(self, conversation_id: str) -> List[Message]:
        try:
            rows = await self._message_repo.list_by_conversation(conversation_id)
        except PyMongoError as exc:
            raise FetchError(f"Could not list messages of conversation {conversation_id}") from exc
        return [Message.model_validate(row) for row in rows]

    async def get_message(self, message_id: str) -> Message:
        try:
            row = await self._message_repo.get(message_id)
        except PyMongoError as exc:
            raise FetchError(f"Could not load message {message_id}") from exc
        if row is None:
            raise MessageNotFoundError(message_id)
        return Message.model_validate(row)

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        sender_type: SenderType,
        sender: Optional[AuthContext] = None,
    ) -> Message:
        trimmed = (content or "").strip()
        if not trimmed:
            raise ContentValidationError("Message content cannot be empty")
        conversation = await self.get_conversation(conversation_id)
        try:
            row = await self._message_repo.insert(
                conversation_id=conversation.id,
                sender_type=sender_type,
                content=trimmed,
                sender_id=sender.user_id if sender else None,
                sender_name=sender.display_name if sender else None,
            )
        except PyMongoError as exc:
            _raise_mutation_error(exc, "send message")
        message = Message.model_validate(row)
        await self._publish("insert", message)

        if sender_type == "admin" and conversation.type == "formateur":
            await self._notify_formateur(conversation, message)
        return message

    async def edit_message(self, message_id: str, new_content: str) -> Optional[Message]:
        trimmed = (new_content or "").strip()
        if not trimmed:
            return None
        try:
            row = await self._message_repo.update_content(message_id, trimmed)
        except PyMongoError as exc:
            _raise_mutation_error(exc, "edit message")
        if row is None:
            # no live row matched; unknown ids raise MessageNotFoundError here
            await self.get_message(message_id)
            raise MessageDeletedError(f"Message {message_id} was deleted and cannot be edited")
        message = Message.model_validate(row)
        await self._publish("update", message)
        return message

    async def soft_delete_message(self, message_id: str, deleter_id: Optional[str]) -> Message:
        try:
            row = await self._message_repo.soft_delete(message_id, deleter_id)
        except PyMongoError as exc:
            _raise_mutation_error(exc, "delete message")
        if row is None:
            raise MessageNotFoundError(message_id)
        message = Message.model_validate(row)
        await self._publish("update", message)
        return message

    async def delete_conversation(self, conversation_id: str) -> None:
        try:
            removed = await self._message_repo.delete_by_conversation(conversation_id)
        except PyMongoError as exc:
            _raise_mutation_error(exc, "delete conversation messages")
        try:
            deleted = await self._conversation_repo.delete(conversation_id)
        except PyMongoError as exc:
            raise ConversationDeletePartialFailure(
                f"Removed {removed} message(s) but conversation {conversation_id} is still there"
            ) from exc
        if not deleted:
            raise ConversationDeletePartialFailure(
                f"Removed {removed} message(s) but conversation {conversation_id} was not deleted"
            )
        logger.info("Deleted conversation %s and %d message(s)", conversation_id, removed)

    async def mark_read(self, conversation_id: str, sender_type: SenderType, exclude: bool = False) -> int:
        try:
            rows = await self._message_repo.mark_read(conversation_id, sender_type, exclude=exclude)
        except PyMongoError as exc:
            _raise_mutation_error(exc, "mark messages read")
        for row in rows:
            await self._publish("update", Message.model_validate(row))
        return len(rows)

    async def _enrich(self, row: Dict[str, Any], sender_type: SenderType, exclude: bool) -> Conversation:
        conversation = Conversation.model_validate(row)
        conversation.unread_count = await self._message_repo.count_unread(conversation.id, sender_type, exclude=exclude)
        last = await self._message_repo.last_message(conversation.id)
        if last:
            conversation.last_message = last["content"][:PREVIEW_LENGTH]
            conversation.last_message_date = last["created_at"]
        return conversation

    async def _publish(self, change: ChangeType, message: Message) -> None:
        if self._bus is None:
            return
        event = ChangeEvent(type=change, conversation_id=message.conversation_id, row=message.model_dump(mode="json"))
        try:
            await self._bus.publish(conversation_channel(message.conversation_id), event.model_dump_json())
        except Exception:
            logger.exception("Could not publish %s event for message %s", change, message.id)

    async def _notify_formateur(self, conversation: Conversation, message: Message) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_formateur(conversation, message)
        except Exception:
            logger.exception("Error notifying formateur of message %s", message.id)
