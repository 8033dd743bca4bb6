# StudentNetwork/server/studentnet/models/notification.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class Notification(BaseModel):
    """
    Document in 'notifications'. Payload fields vary by type; the common ones
    are declared and any other key is kept as an extra attribute.
    """
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    id: str
    user_id: str = Field(..., description="Recipient")
    type: str
    read: bool = False
    timestamp: Optional[datetime] = None
    read_time: Optional[datetime] = None

    # --- Common payload fields ---
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    sender_photo: Optional[str] = None
    message: Optional[str] = None
    post_id: Optional[str] = None
    job_title: Optional[str] = None
    event_id: Optional[str] = None
    thread_id: Optional[str] = None
