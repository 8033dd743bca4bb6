# StudentNetwork/server/studentnet/schemas/chat.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime

from studentnet.models.user import ParticipantInfo


class MessageCreate(BaseModel):
    """Request body for sending a message. The sender comes from the token."""
    text: str = Field(..., max_length=5000, description="Message text; whitespace-only text is rejected")

    model_config = ConfigDict(
        json_schema_extra={"example": {"text": "Hi! Are you going to the career fair on Friday?"}}
    )


class ThreadOut(BaseModel):
    """A conversation as seen by one of its participants."""
    id: str
    other: ParticipantInfo
    last_message: str = ""
    last_message_time: Optional[datetime] = None
    last_message_sender: Optional[str] = None
    unread: int = 0


class MarkReadOut(BaseModel):
    applied: int
    failed: int
    failed_ids: List[str] = Field(default_factory=list)
