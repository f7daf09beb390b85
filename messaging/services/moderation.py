"""Edit/delete permissions per message and the moderation actions behind them.

Rules, evaluated per message:

* own message, not deleted: edit and delete
* someone else's message, viewer is superadmin: delete only
* someone else's message otherwise: nothing
* soft-deleted message: nothing
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from messaging.errors import MessageDeletedError, MessagingError
from messaging.schemas.auth import AuthContext
from messaging.schemas.conversation import ViewMode
from messaging.schemas.message import Message


logger = logging.getLogger(__name__)

PromptKind = Literal["message", "conversation"]


@dataclass(frozen=True)
class MessagePermissions:
    can_edit: bool
    can_delete: bool

    def show_menu(self, is_editing: bool = False) -> bool:
        return (self.can_edit or self.can_delete) and not is_editing


def permissions_for(message: Message, viewer: AuthContext) -> MessagePermissions:
    if message.is_deleted:
        return MessagePermissions(can_edit=False, can_delete=False)
    own = message.sender_id is not None and message.sender_id == viewer.user_id
    return MessagePermissions(can_edit=own, can_delete=own or viewer.is_superadmin)


def can_moderate_conversation(view_mode: ViewMode, viewer: AuthContext) -> bool:
    return view_mode == "admin" and viewer.is_admin


@dataclass(frozen=True)
class ConfirmationPrompt:
    kind: PromptKind
    target_id: str
    title: str
    description: str
    confirm_label: str
    cancel_label: str = "Annuler"


def _message_prompt(message: Message) -> ConfirmationPrompt:
    return ConfirmationPrompt(
        kind="message",
        target_id=message.id,
        title="Supprimer ce message ?",
        description=(
            "Le message sera remplacé par \"Ce message a été supprimé\". "
            "Cette action est irréversible."
        ),
        confirm_label="Supprimer",
    )


def _conversation_prompt(conversation_id: str) -> ConfirmationPrompt:
    return ConfirmationPrompt(
        kind="conversation",
        target_id=conversation_id,
        title="Supprimer cette conversation ?",
        description=(
            "Tous les messages de cette conversation seront définitivement supprimés. "
            "Cette action est irréversible."
        ),
        confirm_label="Supprimer la conversation",
    )


class ModerationEngine:
    """Drives the edit and delete flows for one messaging view."""

    def __init__(self, store, view_model, viewer: AuthContext) -> None:
        self._store = store
        self._view_model = view_model
        self._viewer = viewer
        self.editing_message_id: Optional[str] = None
        self.edit_buffer: str = ""
        self.prompt: Optional[ConfirmationPrompt] = None
        view_model.add_deletion_listener(self._message_deleted)

    def permissions(self, message: Message) -> MessagePermissions:
        return permissions_for(message, self._viewer)

    @property
    def can_delete_conversation(self) -> bool:
        return (
            can_moderate_conversation(self._view_model.view_mode, self._viewer)
            and self._view_model.active_conversation_id is not None
        )

    # edit flow

    def start_edit(self, message: Message) -> bool:
        if not self.permissions(message).can_edit:
            return False
        self.editing_message_id = message.id
        self.edit_buffer = message.content
        return True

    def update_buffer(self, text: str) -> None:
        self.edit_buffer = text

    def _still_editable(self) -> bool:
        current = next((m for m in self._view_model.messages if m.id == self.editing_message_id), None)
        return current is not None and self.permissions(current).can_edit

    @property
    def can_confirm_edit(self) -> bool:
        return (
            self.editing_message_id is not None
            and bool(self.edit_buffer.strip())
            and self._still_editable()
        )

    def cancel_edit(self) -> None:
        self.editing_message_id = None
        self.edit_buffer = ""

    def _message_deleted(self, message_id: str) -> None:
        if message_id == self.editing_message_id:
            self.cancel_edit()

    async def confirm_edit(self) -> bool:
        if self.editing_message_id is not None and not self._still_editable():
            self.cancel_edit()
            return False
        if not self.can_confirm_edit:
            return False
        message_id = self.editing_message_id
        try:
            updated = await self._store.edit_message(message_id, self.edit_buffer)
        except MessageDeletedError:
            logger.warning("Message %s was deleted during the edit", message_id)
            self.cancel_edit()
            self._view_model.toasts.error("Ce message a été supprimé")
            return False
        except MessagingError:
            logger.exception("Error editing message %s", message_id)
            self._view_model.toasts.error("Erreur lors de la modification")
            return False
        if updated is not None:
            self._view_model.apply_update(updated)
        self.cancel_edit()
        self._view_model.toasts.success("Message modifié")
        return True

    # delete flows

    def request_delete(self, message: Message) -> Optional[ConfirmationPrompt]:
        if not self.permissions(message).can_delete:
            return None
        self.prompt = _message_prompt(message)
        return self.prompt

    def request_delete_conversation(self) -> Optional[ConfirmationPrompt]:
        if not self.can_delete_conversation:
            return None
        self.prompt = _conversation_prompt(self._view_model.active_conversation_id)
        return self.prompt

    def dismiss(self) -> None:
        self.prompt = None

    async def confirm(self) -> bool:
        prompt = self.prompt
        if prompt is None:
            return False
        self.prompt = None
        if prompt.kind == "message":
            return await self._delete_message(prompt.target_id)
        return await self._delete_conversation(prompt.target_id)

    async def _delete_message(self, message_id: str) -> bool:
        if not self._view_model.apply_pending_delete(message_id, self._viewer.user_id):
            return False
        try:
            row = await self._store.soft_delete_message(message_id, self._viewer.user_id)
        except MessagingError:
            logger.exception("Error deleting message %s", message_id)
            self._view_model.rollback_pending_delete(message_id)
            self._view_model.toasts.error("Erreur lors de la suppression")
            return False
        self._view_model.reconcile_pending_delete(row)
        self._view_model.toasts.success("Message supprimé")
        return True

    async def _delete_conversation(self, conversation_id: str) -> bool:
        try:
            await self._store.delete_conversation(conversation_id)
        except MessagingError:
            logger.exception("Error deleting conversation %s", conversation_id)
            self._view_model.toasts.error("Erreur lors de la suppression de la conversation")
            return False
        await self._view_model.remove_conversation(conversation_id)
        self._view_model.toasts.success("Conversation supprimée")
        return True
