from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import PointLedgerService
from app.apis.deps import CurrentUser
from .schemas import PointsBalance, PointsHistory, PointTransactionRead


router = APIRouter()


@router.get(
    f"/{settings.app.version}/points/balance",
    response_model=PointsBalance,
    tags=["points"],
)
async def get_balance(
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
):
    total = await PointLedgerService(session).balance(user.id)
    return PointsBalance(user_id=user.id, total_points=total)


@router.get(
    f"/{settings.app.version}/points/history",
    response_model=PointsHistory,
    tags=["points"],
)
async def get_history(
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    """Most recent earnings first"""
    items, total = await PointLedgerService(session).history(
        user.id, page=page, limit=limit
    )
    return PointsHistory(
        items=[PointTransactionRead.model_validate(i) for i in items],
        total=total,
        page=page,
        limit=limit,
    )
