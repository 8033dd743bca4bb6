# StudentNetwork/server/studentnet/schemas/notification.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional

from studentnet.models.notification import Notification


class NotificationCreate(BaseModel):
    """Fan-out request from another feature (jobs, events, posts)."""
    user_id: str = Field(..., description="Recipient")
    type: str = Field(..., min_length=1, max_length=64)
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": "u_alice",
                "type": "job_recommendation",
                "payload": {"job_title": "Data Analyst Intern", "message": "A new job matches your skills"},
            }
        }
    )


class NotificationOut(BaseModel):
    notification: Notification
    route: Optional[str] = None


class CountOut(BaseModel):
    count: int
