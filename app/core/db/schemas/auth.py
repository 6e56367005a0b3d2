from __future__ import annotations

from typing import TYPE_CHECKING, Optional
from sqlalchemy import Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTable

from app.core.db.base import Base

if TYPE_CHECKING:
    from .user_profile import UserProfile
    from .points import PointTransaction


class UserRole(enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


# Roles allowed to create and run live quiz sessions
HOST_ROLES = frozenset({UserRole.TEACHER, UserRole.ADMIN})


class User(SQLAlchemyBaseUserTable[int], Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), nullable=False, default=UserRole.STUDENT
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Relationships
    profile: Mapped["UserProfile"] = relationship(
        "UserProfile",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )
    point_transactions: Mapped[list["PointTransaction"]] = relationship(
        "PointTransaction", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def can_host(self) -> bool:
        return self.role in HOST_ROLES


__all__ = ["UserRole", "HOST_ROLES", "User"]
