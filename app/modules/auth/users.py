from typing import AsyncIterator, Optional, cast

from fastapi import Depends, Request
from fastapi_users import FastAPIUsers, exceptions
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
)
from fastapi_users.authentication.transport import Transport
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from fastapi_users.manager import BaseUserManager, IntegerIDMixin
from fastapi_users import schemas as fa_schemas

from pydantic import EmailStr, Field, field_validator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User, UserRole
from app.core.logging import get_logger


logger = get_logger(__name__)


class UserRead(fa_schemas.BaseUser[int]):
    id: int
    email: EmailStr
    username: str
    role: UserRole
    avatar_url: Optional[str] = None


class UserCreate(fa_schemas.BaseUserCreate):
    email: EmailStr
    password: str
    username: str = Field(..., min_length=3, max_length=64)
    role: UserRole = UserRole.STUDENT
    avatar_url: Optional[str] = None

    @field_validator("role")
    @classmethod
    def _no_self_service_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("admin accounts cannot be self-registered")
        return v


class UserUpdate(fa_schemas.BaseUserUpdate):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    avatar_url: Optional[str] = None


async def get_user_db(
    session: AsyncSession = Depends(get_session),
) -> AsyncIterator[SQLAlchemyUserDatabase]:
    yield SQLAlchemyUserDatabase(session, User)


class UserManager(IntegerIDMixin, BaseUserManager[User, int]):  # type: ignore[type-arg]
    reset_password_token_secret = settings.app.jwt_secret
    verification_token_secret = settings.app.jwt_secret

    async def create(
        self,
        user_create: UserCreate,
        safe: bool = False,
        request: Optional[Request] = None,
    ) -> User:
        # Usernames are unique too; surface a clash like a duplicate email
        result = await self.user_db.session.execute(
            select(User.id).where(User.username == user_create.username)
        )
        if result.scalar_one_or_none() is not None:
            raise exceptions.UserAlreadyExists()
        return await super().create(user_create, safe, request)

    async def on_after_register(
        self, user: User, request: Optional[Request] = None
    ) -> None:
        logger.info(
            f"Registered {user.role.value} account {user.username}",
            extra={"user_id": user.id},
        )


async def get_user_manager(
    user_db: SQLAlchemyUserDatabase = Depends(get_user_db),
) -> AsyncIterator[UserManager]:
    yield UserManager(user_db)


# Auth backend: JWT over Bearer, using versioned path for login
bearer_transport = BearerTransport(tokenUrl=f"{settings.app.version}/auth/login")


_jwt_strategy = None


def get_jwt_strategy():
    global _jwt_strategy
    if _jwt_strategy is None:
        from app.core.jwt_strategy import RS256JWTStrategyWithKid

        _jwt_strategy = RS256JWTStrategyWithKid(
            lifetime_seconds=settings.jwt.token_lifetime_seconds,
            key_id="v1",
        )
    return _jwt_strategy


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cast(Transport, bearer_transport),
    get_strategy=get_jwt_strategy,
)


fastapi_users = FastAPIUsers[User, int](  # type: ignore[type-arg]
    get_user_manager,
    [auth_backend],
)
