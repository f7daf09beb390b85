"""In-memory state of one messaging view.

The view model merges three sources into the conversation list and the open
conversation's messages: the initial fetch, realtime change events and the
optimistic mutations applied by the moderation engine.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from messaging.errors import AccessDeniedError, ContentValidationError, FetchError, MessagingError
from messaging.schemas.auth import AuthContext
from messaging.schemas.conversation import Conversation, Participant, RoleBadge, ViewMode
from messaging.schemas.events import ChangeEvent
from messaging.schemas.message import Message, SenderType
from messaging.services.read_tracking import ReadTracker
from messaging.services.realtime import RealtimeSubscription
from messaging.services.role_service import AdminRole, resolve_sender_roles
from messaging.utils.toasts import ToastQueue


logger = logging.getLogger(__name__)

SEND_FAILED = "Erreur lors de l'envoi du message"
ACCESS_DENIED = "Accès refusé : vous n'avez pas les droits pour envoyer ce message"
LOAD_FAILED = "Erreur lors du chargement des conversations"


class Phase(str, Enum):

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


def enrich_conversation(
    conversation: Conversation,
    formateur: Optional[Participant] = None,
    inscriptions: Sequence[Participant] = (),
) -> Conversation:
    """Fill participant name and badges from what the host page knows."""
    if conversation.type == "formateur":
        if formateur is not None:
            conversation.participant_name = formateur.full_name
            conversation.role_badges = [RoleBadge(label="Formateur", type="formateur")]
    elif conversation.type == "apprenant":
        inscription = next((i for i in inscriptions if i.id == conversation.participant_id), None)
        conversation.participant_name = inscription.full_name if inscription else "Apprenant"
        conversation.role_badges = [RoleBadge(label="Apprenant", type="apprenant")]
    else:
        conversation.participant_name = "Groupe d'apprenants"
        conversation.role_badges = [RoleBadge(label="Message groupé", type="groupe")]
    return conversation


def merge_message(existing: Message, incoming: Message) -> Message:
    """Apply an update row; deletion and read state never go back to null."""
    merged = incoming.model_copy()
    if existing.deleted_at is not None and incoming.deleted_at is None:
        merged.deleted_at = existing.deleted_at
        merged.deleted_by = existing.deleted_by
    if existing.read_at is not None and incoming.read_at is None:
        merged.read_at = existing.read_at
    return merged


class MessagingViewModel:

    def __init__(
        self,
        store,
        role_service,
        viewer: AuthContext,
        view_mode: ViewMode,
        session_id: str,
        *,
        bus=None,
        toasts: Optional[ToastQueue] = None,
        participant_id: Optional[str] = None,
        formateur: Optional[Participant] = None,
        inscriptions: Sequence[Participant] = (),
        on_messages_read: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._role_service = role_service
        self.viewer = viewer
        self.view_mode = view_mode
        self.session_id = session_id
        self.toasts = toasts or ToastQueue()
        if participant_id is None and view_mode != "admin":
            participant_id = viewer.user_id
        self.participant_id = participant_id
        self._formateur = formateur
        self._inscriptions = list(inscriptions)
        self._on_messages_read = on_messages_read

        self.conversations: List[Conversation] = []
        self.messages: List[Message] = []
        self.sender_roles: Dict[str, AdminRole] = {}
        self.phase = Phase.IDLE
        self.active_conversation_id: Optional[str] = None
        self.loading_conversations = False
        self.sending = False

        self._generation = 0
        self._early_events: List[ChangeEvent] = []
        # message id -> message as it was before the local delete
        self._pending_deletes: Dict[str, Message] = {}
        self._deletion_listeners: List[Callable[[str], None]] = []
        self._read_tracker = ReadTracker(store, on_messages_read=self._messages_read)
        self._subscription = RealtimeSubscription(bus, self.handle_event) if bus is not None else None

    @property
    def sender_type(self) -> SenderType:
        return self.view_mode

    @property
    def selected_conversation(self) -> Optional[Conversation]:
        return next((c for c in self.conversations if c.id == self.active_conversation_id), None)

    @property
    def pending_message_ids(self) -> List[str]:
        return list(self._pending_deletes)

    @property
    def subscription(self) -> Optional[RealtimeSubscription]:
        return self._subscription

    def add_deletion_listener(self, callback: Callable[[str], None]) -> None:
        """Called with the message id when an update turns a shown message deleted."""
        self._deletion_listeners.append(callback)

    # conversations

    async def load_conversations(self, initial_conversation_id: Optional[str] = None) -> bool:
        self.loading_conversations = True
        try:
            conversations = await self._store.list_conversations(
                self.session_id, self.view_mode, participant_id=self.participant_id
            )
        except FetchError:
            logger.exception("Error fetching conversations for session %s", self.session_id)
            self.toasts.error(LOAD_FAILED)
            return False
        finally:
            self.loading_conversations = False

        self.conversations = [enrich_conversation(c, self._formateur, self._inscriptions) for c in conversations]
        target = self._initial_target(initial_conversation_id)
        if target is not None and target.id != self.active_conversation_id:
            await self.select_conversation(target.id)
        return True

    def _initial_target(self, initial_conversation_id: Optional[str]) -> Optional[Conversation]:
        if not self.conversations:
            return None
        if initial_conversation_id:
            for conversation in self.conversations:
                if conversation.id == initial_conversation_id:
                    return conversation
            return self.conversations[0]
        if self.active_conversation_id is not None:
            return None
        return self.conversations[0]

    async def remove_conversation(self, conversation_id: str) -> None:
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.active_conversation_id == conversation_id:
            self._generation += 1
            self.active_conversation_id = None
            self.messages = []
            self.sender_roles = {}
            self._pending_deletes = {}
            self._early_events = []
            self.phase = Phase.IDLE
            self._read_tracker.reset()
            if self._subscription is not None:
                await self._subscription.close()

    # messages

    async def select_conversation(self, conversation_id: str) -> bool:
        """Load a conversation; returns False when a newer selection won the race."""
        self._generation += 1
        generation = self._generation
        self.active_conversation_id = conversation_id
        self.phase = Phase.LOADING
        self.messages = []
        self.sender_roles = {}
        self._pending_deletes = {}
        self._early_events = []
        if self._subscription is not None:
            await self._subscription.open(conversation_id)

        fetched = True
        try:
            messages = await self._store.list_messages(conversation_id)
        except FetchError:
            logger.exception("Error fetching messages for conversation %s", conversation_id)
            messages = []
            fetched = False
        if generation != self._generation:
            return False

        roles = await resolve_sender_roles(self._role_service, messages)
        if generation != self._generation:
            return False

        self.messages = list(messages)
        self.sender_roles = roles
        self.phase = Phase.READY
        early, self._early_events = self._early_events, []
        for event in early:
            await self.handle_event(event)

        # nothing was shown, so nothing counts as read
        if fetched:
            await self._read_tracker.mark_read(conversation_id, self.view_mode)
        return True

    async def handle_event(self, event: ChangeEvent) -> None:
        if event.conversation_id != self.active_conversation_id:
            return
        if self.phase == Phase.LOADING:
            self._early_events.append(event)
            return
        message = Message.model_validate(event.row)
        if event.type == "insert":
            if self.append_message(message):
                await self._after_insert(message)
        else:
            self.apply_update(message)

    def append_message(self, message: Message) -> bool:
        """Append unless the id is already shown; no re-sorting."""
        if message.conversation_id != self.active_conversation_id:
            return False
        if any(m.id == message.id for m in self.messages):
            return False
        self.messages.append(message)
        return True

    def apply_update(self, message: Message) -> bool:
        for index, existing in enumerate(self.messages):
            if existing.id == message.id:
                original = self._pending_deletes.get(message.id)
                if original is not None:
                    if message.deleted_at is not None:
                        del self._pending_deletes[message.id]
                    else:
                        # keep a rollback target with the newer fields
                        self._pending_deletes[message.id] = merge_message(original, message)
                merged = merge_message(existing, message)
                self.messages[index] = merged
                if merged.is_deleted and not existing.is_deleted:
                    for callback in self._deletion_listeners:
                        callback(message.id)
                return True
        return False

    async def _after_insert(self, message: Message) -> None:
        if message.sender_type == "admin" and message.sender_id and message.sender_id not in self.sender_roles:
            self.sender_roles.update(await resolve_sender_roles(self._role_service, [message]))
        await self._read_tracker.mark_incoming(message, self.view_mode)

    # optimistic soft delete, applied before the round trip

    def apply_pending_delete(self, message_id: str, deleter_id: Optional[str]) -> bool:
        for index, existing in enumerate(self.messages):
            if existing.id == message_id:
                if existing.is_deleted:
                    return False
                self._pending_deletes[message_id] = existing
                self.messages[index] = existing.model_copy(
                    update={"deleted_at": datetime.now(timezone.utc), "deleted_by": deleter_id}
                )
                return True
        return False

    def reconcile_pending_delete(self, row: Message) -> None:
        self._pending_deletes.pop(row.id, None)
        self.apply_update(row)

    def rollback_pending_delete(self, message_id: str) -> None:
        original = self._pending_deletes.pop(message_id, None)
        if original is None:
            return
        for index, existing in enumerate(self.messages):
            if existing.id == message_id:
                self.messages[index] = original
                return

    # sending

    async def send_message(self, content: str) -> Optional[Message]:
        conversation_id = self.active_conversation_id
        if not content or not content.strip() or conversation_id is None:
            return None
        self.sending = True
        try:
            message = await self._store.send_message(conversation_id, content, self.sender_type, sender=self.viewer)
        except ContentValidationError:
            return None
        except AccessDeniedError:
            logger.warning("Send refused in conversation %s", conversation_id)
            self.toasts.error(ACCESS_DENIED)
            return None
        except MessagingError:
            logger.exception("Error sending message to conversation %s", conversation_id)
            self.toasts.error(SEND_FAILED)
            return None
        finally:
            self.sending = False
        if self.active_conversation_id == conversation_id and self.phase == Phase.READY:
            self.append_message(message)
        self.toasts.success("Message envoyé")
        return message

    def _messages_read(self, conversation_id: str) -> None:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                conversation.unread_count = 0
        if self._on_messages_read is not None:
            self._on_messages_read(conversation_id)

    async def close(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
