from datetime import datetime
from typing import Literal, Optional, TypedDict


ConversationType = Literal["formateur", "apprenant", "groupe"]


class ConversationDocument(TypedDict, total=False):
    _id: str
    session_id: str
    type: ConversationType
    # null for "groupe" conversations
    participant_id: Optional[str]
    created_at: datetime
