"""Database service classes for the question bank, users, points and profiles.

These are the collaborators the live quiz engine calls into. None of them
commit: they run inside whatever transaction the caller owns, so the
scoring engine can fold a ledger entry and a profile update into the same
unit of work as the answer it is scoring.
"""

from __future__ import annotations

import random
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.db.schemas.auth import User, UserRole
from app.core.db.schemas.points import PointTransaction
from app.core.db.schemas.quiz import Difficulty, QuizCategory, QuizQuestion
from app.core.db.schemas.user_profile import UserProfile
from app.modules.quiz.errors import ConflictError, NotFoundError, ValidationError
from app.modules.quiz.models import QuestionSelector, UserInfo


class QuestionBankService:
    """Read access to true/false questions plus the authoring writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_questions_by_ids(
        self, ids: Iterable[int]
    ) -> dict[int, QuizQuestion]:
        id_list = list(ids)
        if not id_list:
            return {}
        result = await self.session.execute(
            select(QuizQuestion)
            .options(selectinload(QuizQuestion.category))
            .where(QuizQuestion.id.in_(id_list))
        )
        return {q.id: q for q in result.scalars().all()}

    async def select_question_ids(
        self, selector: QuestionSelector, *, max_questions: int
    ) -> list[int]:
        """Resolve a selector to a concrete, non-empty list of question ids."""
        if selector.question_ids is not None:
            ids = list(selector.question_ids)
            if not ids:
                raise ValidationError(
                    "Select at least one question", code="empty_question_selection"
                )
            if len(ids) > max_questions:
                raise ValidationError(
                    f"A session can hold at most {max_questions} questions",
                    code="too_many_questions",
                )
            rows = await self.session.execute(
                select(QuizQuestion.id).where(
                    QuizQuestion.id.in_(ids), QuizQuestion.is_active.is_(True)
                )
            )
            found = set(rows.scalars().all())
            missing = [i for i in ids if i not in found]
            if missing:
                raise ValidationError(
                    f"Unknown or inactive questions: {missing}",
                    code="unknown_question",
                )
            if selector.shuffle:
                random.shuffle(ids)
            return ids

        total = int(selector.total_questions)
        if total < 1 or total > max_questions:
            raise ValidationError(
                f"total_questions must be between 1 and {max_questions}",
                code="empty_question_selection" if total < 1 else "too_many_questions",
            )

        where = [QuizQuestion.is_active.is_(True)]
        if selector.category_id is not None:
            category = await self.session.get(QuizCategory, selector.category_id)
            if category is None:
                raise ValidationError("Unknown category", code="unknown_category")
            where.append(QuizQuestion.category_id == selector.category_id)

        rows = await self.session.execute(
            select(QuizQuestion.id).where(*where).order_by(QuizQuestion.id)
        )
        available = list(rows.scalars().all())
        if not available:
            raise ValidationError(
                "No questions available for this selection",
                code="empty_question_selection",
            )
        if len(available) < total:
            raise ValidationError(
                f"Only {len(available)} questions available (requested {total})",
                code="insufficient_questions",
            )
        picked = random.sample(available, total)
        if not selector.shuffle:
            picked.sort()
        return picked

    async def create_category(
        self, *, name: str, description: Optional[str] = None
    ) -> QuizCategory:
        category = QuizCategory(name=name.strip(), description=description)
        self.session.add(category)
        try:
            await self.session.flush()
        except IntegrityError:
            raise ConflictError(
                "A category with this name already exists", code="category_exists"
            )
        return category

    async def list_categories(self) -> list[tuple[QuizCategory, int]]:
        counts = (
            select(QuizQuestion.category_id, func.count(QuizQuestion.id).label("n"))
            .where(QuizQuestion.is_active.is_(True))
            .group_by(QuizQuestion.category_id)
            .subquery()
        )
        rows = await self.session.execute(
            select(QuizCategory, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.category_id == QuizCategory.id)
            .order_by(QuizCategory.name)
        )
        return [(c, int(n)) for c, n in rows.all()]

    async def add_questions(
        self,
        items: Sequence[dict],
        *,
        created_by_id: Optional[int] = None,
    ) -> list[QuizQuestion]:
        category_ids = {i["category_id"] for i in items if i.get("category_id")}
        if category_ids:
            rows = await self.session.execute(
                select(QuizCategory.id).where(QuizCategory.id.in_(category_ids))
            )
            missing = category_ids - set(rows.scalars().all())
            if missing:
                raise ValidationError(
                    f"Unknown categories: {sorted(missing)}", code="unknown_category"
                )

        created: list[QuizQuestion] = []
        for item in items:
            text = str(item.get("text") or "").strip()
            if not text:
                raise ValidationError("Question text is required", code="missing_text")
            question = QuizQuestion(
                text=text,
                correct_answer=bool(item["correct_answer"]),
                explanation=item.get("explanation"),
                category_id=item.get("category_id"),
                difficulty=item.get("difficulty") or Difficulty.MEDIUM,
                is_active=item.get("is_active", True),
                created_by_id=created_by_id,
            )
            self.session.add(question)
            created.append(question)
        await self.session.flush()
        return created

    async def list_questions(
        self,
        *,
        category_id: Optional[int] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[QuizQuestion]:
        stmt = select(QuizQuestion).options(selectinload(QuizQuestion.category))
        if category_id is not None:
            stmt = stmt.where(QuizQuestion.category_id == category_id)
        if not include_inactive:
            stmt = stmt.where(QuizQuestion.is_active.is_(True))
        rows = await self.session.execute(
            stmt.order_by(QuizQuestion.id).limit(limit).offset(offset)
        )
        return list(rows.scalars().all())


class UserDirectoryService:
    """Resolves users to the display data and privileges the engine needs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: int) -> UserInfo:
        result = await self.session.execute(
            select(User).options(selectinload(User.profile)).where(User.id == user_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found", code="user_not_found")
        display_name = (
            user.profile.display_name
            if user.profile and user.profile.display_name
            else user.username
        )
        return UserInfo(
            id=user.id,
            display_name=display_name,
            avatar_url=user.avatar_url,
            can_host=user.can_host,
            is_admin=user.role == UserRole.ADMIN,
        )


class UserProfileService:
    """Owns the per-user aggregate, including lifetime total points."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int) -> Optional[UserProfile]:
        result = await self.session.execute(
            select(UserProfile).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int) -> UserProfile:
        profile = await self.get(user_id)
        if profile is not None:
            return profile
        profile = UserProfile(user_id=user_id, total_points=0)
        try:
            async with self.session.begin_nested():
                self.session.add(profile)
                await self.session.flush()
        except IntegrityError:
            # Created concurrently by another request
            existing = await self.get(user_id)
            if existing is None:
                raise
            return existing
        return profile

    async def increment_total_points(self, user_id: int, amount: int) -> None:
        if amount == 0:
            return
        result = await self.session.execute(
            update(UserProfile)
            .where(UserProfile.user_id == user_id)
            .values(total_points=UserProfile.total_points + amount)
        )
        if result.rowcount == 0:
            profile = await self.get_or_create(user_id)
            await self.session.execute(
                update(UserProfile)
                .where(UserProfile.id == profile.id)
                .values(total_points=UserProfile.total_points + amount)
            )


class PointLedgerService:
    """Append-only ledger of earned points."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_earning(
        self,
        *,
        user_id: int,
        amount: int,
        activity_type: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PointTransaction:
        entry = PointTransaction(
            user_id=user_id,
            activity_type=activity_type,
            points_earned=int(amount),
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def balance(self, user_id: int) -> int:
        result = await self.session.execute(
            select(UserProfile.total_points).where(UserProfile.user_id == user_id)
        )
        return int(result.scalar_one_or_none() or 0)

    async def history(
        self, user_id: int, *, page: int = 1, limit: int = 20
    ) -> tuple[list[PointTransaction], int]:
        page = max(1, int(page))
        limit = min(100, max(1, int(limit)))
        total_row = await self.session.execute(
            select(func.count(PointTransaction.id)).where(
                PointTransaction.user_id == user_id
            )
        )
        total = int(total_row.scalar_one())
        rows = await self.session.execute(
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(rows.scalars().all()), total
