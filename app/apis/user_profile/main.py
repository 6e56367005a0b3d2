from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import UserProfileService
from app.apis.deps import CurrentUser
from .schemas import UserProfileUpdate, UserProfileRead


router = APIRouter()


@router.get(
    f"/{settings.app.version}/profile",
    response_model=UserProfileRead,
    tags=["user_profile"],
)
async def get_profile(
    current_user: CurrentUser,
    session: AsyncSession = Depends(get_session),
):
    """Get user profile, auto-create if doesn't exist"""
    profile = await UserProfileService(session).get_or_create(current_user.id)
    await session.commit()
    await session.refresh(profile)
    return UserProfileRead.model_validate(profile)


@router.put(
    f"/{settings.app.version}/profile",
    response_model=UserProfileRead,
    tags=["user_profile"],
)
async def update_profile(
    profile_data: UserProfileUpdate,
    current_user: CurrentUser,
    session: AsyncSession = Depends(get_session),
):
    """Update user profile, auto-create if doesn't exist"""
    profile = await UserProfileService(session).get_or_create(current_user.id)

    update_data = profile_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(profile, field, value)

    await session.commit()
    await session.refresh(profile)

    return UserProfileRead.model_validate(profile)
