# StudentNetwork/server/studentnet/models/user.py

from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional, List
from datetime import datetime, timezone


class User(BaseModel):
    """
    Represents a User document in the 'users' collection.
    Created at registration (outside this service) and mutated only by its owner.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra='ignore'
    )

    id: str = Field(..., description="Document id (the auth provider's user id)")
    display_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    photo_url: Optional[str] = Field(default=None, description="Avatar reference")

    # --- Profile fields ---
    headline: Optional[str] = Field(default=None, max_length=200)
    university: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    location: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=2000)
    skills: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ParticipantInfo(BaseModel):
    """Denormalized display snapshot of a user, embedded in connections and chats."""
    id: str
    name: str = "Unknown User"
    photo_url: Optional[str] = None
