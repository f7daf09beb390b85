from datetime import datetime
from typing import Literal, Optional, TypedDict


SenderType = Literal["admin", "formateur", "apprenant"]


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_type: SenderType
    sender_id: Optional[str]
    sender_name: Optional[str]
    content: str
    created_at: datetime
    edited_at: Optional[datetime]
    # soft delete
    deleted_at: Optional[datetime]
    deleted_by: Optional[str]
    read_at: Optional[datetime]
