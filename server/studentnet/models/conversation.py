# StudentNetwork/server/studentnet/models/conversation.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, List
from datetime import datetime


class Conversation(BaseModel):
    """
    One-to-one chat thread stored in 'chats' under pair_key(a, b).
    Created lazily on the first chat between two users and never deleted.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str
    participants: List[str]
    participant_names: Dict[str, Optional[str]] = Field(default_factory=dict)
    participant_photos: Dict[str, Optional[str]] = Field(default_factory=dict)
    last_message: str = ""
    last_message_time: Optional[datetime] = None
    last_message_sender: Optional[str] = None
    # Exact per-user unread message counters
    unread_counts: Dict[str, int] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class Message(BaseModel):
    """
    Message document in 'messages', owned by the thread named in thread_id.
    Text is immutable; read flips once from False to True.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str
    thread_id: str
    sender_id: str
    sender_name: Optional[str] = None
    text: str
    timestamp: Optional[datetime] = Field(default=None, description="Assigned by the store")
    read: bool = False
    read_time: Optional[datetime] = None
