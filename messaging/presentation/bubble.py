"""Render model of a single message bubble."""

from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum
from typing import Dict, Literal, Optional, Tuple

from messaging.schemas.auth import AuthContext
from messaging.schemas.message import Message
from messaging.services.moderation import permissions_for
from messaging.services.role_service import AdminRole


DELETED_PLACEHOLDER = "Ce message a été supprimé"
EDITED_SUFFIX = "(modifié)"


class Tone(str, Enum):

    SUPERADMIN = "red"
    ADMIN = "orange"
    FORMATEUR = "cyan"
    APPRENANT = "blue"
    MUTED = "muted"


@dataclass(frozen=True)
class Badge:
    label: str
    tone: Tone


_ADMIN_BADGES = {
    AdminRole.SUPERADMIN: Badge("Superadmin", Tone.SUPERADMIN),
    AdminRole.ADMIN: Badge("Admin", Tone.ADMIN),
}


def badge_for(message: Message, sender_roles: Dict[str, AdminRole]) -> Badge:
    if message.sender_type == "admin":
        role = sender_roles.get(message.sender_id) if message.sender_id else None
        return _ADMIN_BADGES[role or AdminRole.ADMIN]
    if message.sender_type == "formateur":
        return Badge("Formateur", Tone.FORMATEUR)
    return Badge("Apprenant", Tone.APPRENANT)


@dataclass(frozen=True)
class EditorView:
    buffer: str
    can_confirm: bool


@dataclass(frozen=True)
class BubbleView:
    message_id: str
    align: Literal["left", "right"]
    own: bool
    sender_label: str
    badge: Badge
    tone: Tone
    time: str
    edited: bool
    body: Optional[str]
    italic: bool
    deleted: bool
    actions: Tuple[str, ...]
    editor: Optional[EditorView] = None
    pending: bool = False


def _sender_label(message: Message, own: bool) -> str:
    if own:
        return f"{message.sender_name or 'Moi'} (vous)"
    if message.sender_name:
        return message.sender_name
    return "Admin" if message.sender_type == "admin" else "Inconnu"


def render_bubble(
    message: Message,
    viewer: AuthContext,
    sender_roles: Dict[str, AdminRole],
    editing_message_id: Optional[str] = None,
    edit_buffer: str = "",
    pending: bool = False,
    tz: Optional[tzinfo] = None,
) -> BubbleView:
    own = message.sender_id is not None and message.sender_id == viewer.user_id
    deleted = message.is_deleted
    editing = not deleted and editing_message_id == message.id
    badge = badge_for(message, sender_roles)

    actions: Tuple[str, ...] = ()
    permissions = permissions_for(message, viewer)
    if permissions.show_menu(is_editing=editing):
        actions = tuple(
            name for name, allowed in (("edit", permissions.can_edit), ("delete", permissions.can_delete)) if allowed
        )

    created = message.created_at.astimezone(tz) if tz else message.created_at
    editor = EditorView(edit_buffer, bool(edit_buffer.strip())) if editing else None
    if deleted:
        body = DELETED_PLACEHOLDER
    elif editing:
        body = None
    else:
        body = message.content

    return BubbleView(
        message_id=message.id,
        align="right" if own else "left",
        own=own,
        sender_label=_sender_label(message, own),
        badge=badge,
        tone=Tone.MUTED if deleted else badge.tone,
        time=created.strftime("%H:%M"),
        edited=message.edited_at is not None and not deleted,
        body=body,
        italic=deleted,
        deleted=deleted,
        actions=actions,
        editor=editor,
        pending=pending,
    )


def bubble_text(view: BubbleView) -> str:
    """One-line text rendering of a bubble."""
    time = f"{view.time} {EDITED_SUFFIX}" if view.edited else view.time
    head = f"[{view.badge.label}] {view.sender_label} {time}"
    if view.editor is not None:
        body = f"<edit: {view.editor.buffer}>"
    elif view.italic:
        body = f"_{view.body}_"
    else:
        body = view.body or ""
    line = f"{head}: {body}"
    return line.rjust(80) if view.align == "right" else line
