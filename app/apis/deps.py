from __future__ import annotations

from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.base import async_session_maker, get_session
from app.core.db.schemas.auth import User
from app.modules.auth import fastapi_users
from app.modules.auth.users import get_user_manager, get_jwt_strategy
from app.modules.quiz.service import LiveQuizService


CurrentUser = Annotated[User, Depends(fastapi_users.current_user(active=True))]


async def current_user_or_query_token(
    access_token: Optional[str] = None,
    authorization: Optional[str] = Header(default=None),
    user_manager=Depends(get_user_manager),
) -> User:
    """Resolve current user from Authorization header or `access_token` query param.

    Useful for SSE, where setting custom headers is inconvenient. Falls back to
    query param token when header is missing.
    """
    token: Optional[str] = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    elif access_token:
        token = access_token

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    strategy = get_jwt_strategy()
    user = await strategy.read_token(token, user_manager)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


async def require_host(user: CurrentUser) -> User:
    """Teachers and admins only."""
    if not user.can_host:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "not_a_host", "message": "Teacher or admin role required"},
        )
    return user


HostUser = Annotated[User, Depends(require_host)]


async def get_quiz_service(
    session: AsyncSession = Depends(get_session),
) -> AsyncIterator[LiveQuizService]:
    yield LiveQuizService(session)


QuizService = Annotated[LiveQuizService, Depends(get_quiz_service)]


def get_session_factory():
    """Session factory for long-lived handlers (SSE) that open short sessions."""
    return async_session_maker
