from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    class_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=1000)


class UserProfileRead(BaseModel):
    id: int
    user_id: int
    display_name: Optional[str] = None
    class_name: Optional[str] = None
    bio: Optional[str] = None
    # Read-only: only the scoring engine changes this
    total_points: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
