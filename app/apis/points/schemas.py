from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PointsBalance(BaseModel):
    user_id: int
    total_points: int


class PointTransactionRead(BaseModel):
    id: int
    activity_type: str
    points_earned: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PointsHistory(BaseModel):
    items: list[PointTransactionRead]
    total: int
    page: int
    limit: int
