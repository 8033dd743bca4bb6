# StudentNetwork/server/studentnet/schemas/user.py

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional


class ProfileUpdate(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""
    model_config = ConfigDict(extra='forbid')

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    photo_url: Optional[str] = None
    headline: Optional[str] = Field(None, max_length=200)
    university: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[int] = Field(None, ge=1900, le=2100)
    location: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    skills: Optional[List[str]] = None


class UserSummary(BaseModel):
    id: str
    display_name: str
    photo_url: Optional[str] = None
    headline: Optional[str] = None
