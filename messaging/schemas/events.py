from typing import Any, Dict, Literal

from pydantic import BaseModel


ChangeType = Literal["insert", "update"]


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class ChangeEvent(BaseModel):
    """A row change delivered on a conversation channel."""

    type: ChangeType
    conversation_id: str
    row: Dict[str, Any]
