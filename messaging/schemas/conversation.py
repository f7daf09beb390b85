from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from messaging.models.conversation import ConversationType


ViewMode = Literal["admin", "formateur", "apprenant"]


class RoleBadge(BaseModel):

    label: str
    type: ConversationType


class Conversation(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    session_id: str
    type: ConversationType
    participant_id: Optional[str] = None
    created_at: datetime
    # enriched at fetch time
    participant_name: Optional[str] = None
    formation_title: Optional[str] = None
    role_badges: List[RoleBadge] = Field(default_factory=list)
    unread_count: int = 0
    last_message: Optional[str] = None
    last_message_date: Optional[datetime] = None


class Participant(BaseModel):
    """Display data the host page knows about a session participant."""

    id: str
    prenom: str
    nom: str

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}"
