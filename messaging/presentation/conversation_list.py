from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from messaging.schemas.conversation import Conversation, ViewMode


@dataclass(frozen=True)
class ConversationItemView:
    conversation_id: str
    title: str
    subtitle: str
    icon: str
    tone: str
    selected: bool
    unread_count: int
    last_message: Optional[str]
    last_message_date: Optional[datetime]


_ICONS = {"formateur": "graduation-cap", "groupe": "users", "apprenant": "user"}
_TONES = {"formateur": "cyan", "groupe": "purple", "apprenant": "blue"}
_TYPE_LABELS = {"formateur": "Formateur", "groupe": "Message groupé", "apprenant": "Apprenant"}


def conversation_icon(conversation: Conversation) -> str:
    return _ICONS[conversation.type]


def render_conversation_list(
    conversations: Sequence[Conversation],
    selected_id: Optional[str],
    view_mode: ViewMode,
) -> List[ConversationItemView]:
    items = []
    for conversation in conversations:
        if view_mode == "admin":
            title = conversation.participant_name or _TYPE_LABELS[conversation.type]
            subtitle = _TYPE_LABELS[conversation.type]
        else:
            title = conversation.formation_title or "Session"
            subtitle = "Administration" if conversation.type != "groupe" else _TYPE_LABELS["groupe"]
        items.append(
            ConversationItemView(
                conversation_id=conversation.id,
                title=title,
                subtitle=subtitle,
                icon=_ICONS[conversation.type],
                tone=_TONES[conversation.type],
                selected=conversation.id == selected_id,
                unread_count=conversation.unread_count,
                last_message=conversation.last_message,
                last_message_date=conversation.last_message_date,
            )
        )
    return items
