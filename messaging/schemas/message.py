from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from messaging.models.message import SenderType


class Message(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    conversation_id: str
    sender_type: SenderType
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    content: str = ""
    created_at: datetime
    edited_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    read_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class MessageCreate(BaseModel):

    content: str = Field(min_length=1, max_length=5000)


class MessageEdit(BaseModel):

    content: str = Field(max_length=5000)
