"""
Pytest configuration and shared fixtures for the live quiz tests.

Each test gets its own SQLite database file, so nothing leaks between tests
and the SSE handler can open extra connections while a request is in flight.
"""

import itertools
import os
import tempfile

# Settings are read at import time; configure before importing the app
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MODE"] = "test"
os.environ.setdefault(
    "JWT_KEY_FILE", os.path.join(tempfile.gettempdir(), "kuis-live-test-jwt.pem")
)

from typing import Optional, Sequence, Union

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.db.base import Base, get_session
from app.core.db.schemas.auth import User, UserRole
from app.core.db.schemas.quiz import Difficulty, QuizCategory, QuizQuestion
from app.core.db.schemas.user_profile import UserProfile
from app.modules.quiz.service import LiveQuizService


class DataFactory:
    """Inserts users, categories and questions through a session."""

    _seq = itertools.count(1)

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(
        self,
        role: UserRole = UserRole.STUDENT,
        *,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        n = next(self._seq)
        user = User(
            email=f"user{n}@example.com",
            hashed_password="not-a-real-hash",
            username=username or f"user{n}",
            role=role,
            avatar_url=avatar_url,
            is_active=True,
            is_superuser=False,
            is_verified=True,
        )
        self.session.add(user)
        await self.session.flush()
        if display_name:
            self.session.add(
                UserProfile(user_id=user.id, display_name=display_name, total_points=0)
            )
        await self.session.commit()
        return user

    async def teacher(self, **kwargs) -> User:
        return await self.user(UserRole.TEACHER, **kwargs)

    async def category(self, name: str) -> int:
        category = QuizCategory(name=name)
        self.session.add(category)
        await self.session.commit()
        return category.id

    async def questions(
        self,
        n: int = 3,
        *,
        answers: Union[bool, Sequence[bool]] = True,
        category_id: Optional[int] = None,
        active: bool = True,
    ) -> list[int]:
        rows = []
        for i in range(n):
            correct = answers if isinstance(answers, bool) else answers[i]
            rows.append(
                QuizQuestion(
                    text=f"Statement number {i + 1} is {'true' if correct else 'false'}",
                    correct_answer=correct,
                    explanation=f"Explanation {i + 1}",
                    category_id=category_id,
                    difficulty=Difficulty.EASY,
                    is_active=active,
                )
            )
        self.session.add_all(rows)
        await self.session.commit()
        return [q.id for q in rows]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kuis.db'}")

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def factory(db):
    """Factory sharing the service's session, so tests never wait on locks."""
    return DataFactory(db)


@pytest.fixture
def service(db):
    return LiveQuizService(db)


@pytest_asyncio.fixture
async def seed(session_maker):
    """Factory on its own session, for HTTP tests."""
    async with session_maker() as session:
        yield DataFactory(session)


@pytest_asyncio.fixture
async def client(session_maker):
    from main import app
    from app.apis.deps import get_session_factory

    async def _get_test_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_test_session
    app.dependency_overrides[get_session_factory] = lambda: session_maker
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from app.modules.auth.users import get_jwt_strategy

    async def _headers(user: User) -> dict:
        token = await get_jwt_strategy().write_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers
