"""Live quiz session engine.

Every operation is a self-contained transaction against the database: the
service re-reads the session row, checks the lifecycle rule, writes, and
commits. Nothing about a running game is held in process, so any worker
can serve any request for any session.

Concurrency notes:
- state transitions lock the session row (``FOR UPDATE``) and are written
  as conditional updates on the expected status;
- joins and answer submissions take a shared lock on the session row, so
  an ``end`` either lands before them (they are rejected) or after them
  (they count);
- at-most-once scoring is enforced by the unique key on
  (session, participant, question); a losing concurrent duplicate replays
  the winner's recorded result;
- score increments are ``score = score + :points`` in SQL, never a
  read-modify-write in Python.
"""

from __future__ import annotations

import asyncio
import math
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import QuizSettings, settings
from app.core.db.schemas.quiz import (
    QuizCategory,
    QuizQuestion,
    QuizSession,
    QuizSessionAnswer,
    QuizSessionParticipant,
    QuizSessionQuestion,
    SessionStatus,
    utcnow,
)
from app.core.db_services import (
    PointLedgerService,
    QuestionBankService,
    UserDirectoryService,
    UserProfileService,
)
from app.core.logging import get_logger
from app.modules.quiz import state
from app.modules.quiz.codes import generate_code, normalize_code
from app.modules.quiz.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from app.modules.quiz.leaderboard import rank
from app.modules.quiz.models import (
    AnswerResult,
    LeaderboardEntry,
    ParticipantSummary,
    PublicQuestion,
    QuestionSelector,
    QuestionSet,
    SessionSummary,
    UserInfo,
)
from app.modules.quiz.scoring import ScoreFunction, apply_score, speed_bonus_score

logger = get_logger(__name__)

POINTS_ACTIVITY_TYPE = "quiz"
POINTS_REFERENCE_TYPE = "quiz_session"

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def _is_transient(error: DBAPIError) -> bool:
    if isinstance(error, OperationalError):
        return True
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


def _participant_summary(p: QuizSessionParticipant) -> ParticipantSummary:
    return ParticipantSummary(
        id=p.id,
        user_id=p.user_id,
        display_name=p.display_name,
        avatar_url=p.avatar_url,
        score=int(p.score or 0),
        joined_at=p.joined_at,
    )


class LiveQuizService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        score_fn: ScoreFunction = speed_bonus_score,
        quiz_settings: Optional[QuizSettings] = None,
    ) -> None:
        self.session = session
        self.score_fn = score_fn
        self.config = quiz_settings or settings.quiz
        self.questions = QuestionBankService(session)
        self.users = UserDirectoryService(session)
        self.ledger = PointLedgerService(session)
        self.profiles = UserProfileService(session)

    # Lookups ------------------------------------------------------------
    async def _load_session(
        self, code: str, *, lock: Optional[str] = None
    ) -> QuizSession:
        stmt = (
            select(QuizSession)
            .where(QuizSession.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        if lock == "update":
            stmt = stmt.with_for_update()
        elif lock == "share":
            stmt = stmt.with_for_update(read=True)
        result = await self.session.execute(stmt)
        quiz_session = result.scalar_one_or_none()
        if quiz_session is None:
            raise NotFoundError("Session not found", code="session_not_found")
        return quiz_session

    async def lookup_by_code(self, code: str) -> QuizSession:
        return await self._load_session(code)

    async def _find_participant(
        self, session_id: int, user_id: int
    ) -> Optional[QuizSessionParticipant]:
        result = await self.session.execute(
            select(QuizSessionParticipant)
            .where(
                QuizSessionParticipant.session_id == session_id,
                QuizSessionParticipant.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _find_answer(
        self, session_id: int, participant_id: int, question_id: int
    ) -> Optional[QuizSessionAnswer]:
        result = await self.session.execute(
            select(QuizSessionAnswer).where(
                QuizSessionAnswer.session_id == session_id,
                QuizSessionAnswer.participant_id == participant_id,
                QuizSessionAnswer.question_id == question_id,
            )
        )
        return result.scalar_one_or_none()

    async def _participant_count(self, session_id: int) -> int:
        result = await self.session.execute(
            select(func.count(QuizSessionParticipant.id)).where(
                QuizSessionParticipant.session_id == session_id
            )
        )
        return int(result.scalar_one())

    async def _question_count(self, session_id: int) -> int:
        result = await self.session.execute(
            select(func.count(QuizSessionQuestion.id)).where(
                QuizSessionQuestion.session_id == session_id
            )
        )
        return int(result.scalar_one())

    async def _summary(self, quiz_session: QuizSession) -> SessionSummary:
        return SessionSummary(
            id=quiz_session.id,
            code=quiz_session.code,
            title=quiz_session.title,
            status=quiz_session.status,
            host_id=quiz_session.host_id,
            timer_per_question_seconds=quiz_session.timer_per_question_seconds,
            is_shuffled=quiz_session.is_shuffled,
            total_questions=await self._question_count(quiz_session.id),
            participant_count=await self._participant_count(quiz_session.id),
            created_at=quiz_session.created_at,
            started_at=quiz_session.started_at,
            ended_at=quiz_session.ended_at,
        )

    @staticmethod
    def _ensure_host(quiz_session: QuizSession, user: UserInfo) -> None:
        if quiz_session.host_id != user.id and not user.is_admin:
            raise AuthorizationError(
                "Only the session host can do this", code="not_session_host"
            )

    # Session registry ---------------------------------------------------
    def _validate_timer(self, timer_seconds) -> int:
        lo, hi = self.config.timer_min_seconds, self.config.timer_max_seconds
        if isinstance(timer_seconds, bool) or not isinstance(timer_seconds, int):
            raise ValidationError(
                "Timer must be a whole number of seconds", code="invalid_timer"
            )
        if timer_seconds < lo or timer_seconds > hi:
            raise ValidationError(
                f"Timer must be between {lo} and {hi} seconds", code="invalid_timer"
            )
        return timer_seconds

    async def create_session(
        self,
        *,
        title: str,
        selector: QuestionSelector,
        timer_seconds: int,
        host_user_id: int,
    ) -> SessionSummary:
        host = await self.users.get_user(host_user_id)
        if not host.can_host:
            raise AuthorizationError(
                "Only teachers can host a live quiz", code="not_a_host"
            )
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("Session title is required", code="missing_title")
        timer = self._validate_timer(timer_seconds)
        # Resolved once; the session keeps these exact ids for its lifetime
        question_ids = await self.questions.select_question_ids(
            selector, max_questions=self.config.max_questions
        )

        for attempt in range(1, max(1, self.config.code_max_retries) + 1):
            code = generate_code(self.config.code_length)
            taken = await self.session.execute(
                select(QuizSession.id).where(QuizSession.code == code)
            )
            if taken.scalar_one_or_none() is not None:
                logger.info(
                    f"Join code collision on attempt {attempt}, retrying",
                    extra={"session_code": code},
                )
                continue

            quiz_session = QuizSession(
                code=code,
                title=clean_title,
                host_id=host.id,
                timer_per_question_seconds=timer,
                is_shuffled=selector.shuffle,
                status=SessionStatus.WAITING,
                created_at=utcnow(),
            )
            quiz_session.questions = [
                QuizSessionQuestion(question_id=qid, position=pos)
                for pos, qid in enumerate(question_ids, start=1)
            ]
            self.session.add(quiz_session)
            try:
                await self.session.commit()
            except IntegrityError:
                # Lost a race for the same code
                await self.session.rollback()
                continue

            logger.info(
                f"Created live quiz '{clean_title}' with {len(question_ids)} questions",
                extra={"session_code": code, "user_id": host.id},
            )
            return SessionSummary(
                id=quiz_session.id,
                code=quiz_session.code,
                title=quiz_session.title,
                status=quiz_session.status,
                host_id=quiz_session.host_id,
                timer_per_question_seconds=quiz_session.timer_per_question_seconds,
                is_shuffled=quiz_session.is_shuffled,
                total_questions=len(question_ids),
                participant_count=0,
                created_at=quiz_session.created_at,
            )

        raise StorageUnavailableError(
            "Could not allocate a unique join code, please try again",
            code="code_generation_failed",
        )

    async def get_session_summary(self, code: str) -> SessionSummary:
        quiz_session = await self._load_session(code)
        return await self._summary(quiz_session)

    async def list_hosted(self, host_user_id: int) -> list[SessionSummary]:
        participants = (
            select(
                QuizSessionParticipant.session_id,
                func.count(QuizSessionParticipant.id).label("n"),
            )
            .group_by(QuizSessionParticipant.session_id)
            .subquery()
        )
        questions = (
            select(
                QuizSessionQuestion.session_id,
                func.count(QuizSessionQuestion.id).label("n"),
            )
            .group_by(QuizSessionQuestion.session_id)
            .subquery()
        )
        rows = await self.session.execute(
            select(
                QuizSession,
                func.coalesce(participants.c.n, 0),
                func.coalesce(questions.c.n, 0),
            )
            .outerjoin(participants, participants.c.session_id == QuizSession.id)
            .outerjoin(questions, questions.c.session_id == QuizSession.id)
            .where(QuizSession.host_id == host_user_id)
            .order_by(QuizSession.created_at.desc(), QuizSession.id.desc())
        )
        return [
            SessionSummary(
                id=s.id,
                code=s.code,
                title=s.title,
                status=s.status,
                host_id=s.host_id,
                timer_per_question_seconds=s.timer_per_question_seconds,
                is_shuffled=s.is_shuffled,
                total_questions=int(q_count),
                participant_count=int(p_count),
                created_at=s.created_at,
                started_at=s.started_at,
                ended_at=s.ended_at,
            )
            for s, p_count, q_count in rows.all()
        ]

    # State machine ------------------------------------------------------
    async def _transition(
        self,
        quiz_session: QuizSession,
        *,
        expected: SessionStatus,
        target: SessionStatus,
        values: dict,
    ) -> None:
        if not state.can_transition(expected, target):
            raise ConflictError(
                f"Cannot move a session from {expected.value} to {target.value}",
                code="invalid_transition",
            )
        result = await self.session.execute(
            update(QuizSession)
            .where(QuizSession.id == quiz_session.id, QuizSession.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise ConflictError(
                "Session state changed concurrently", code="session_state_changed"
            )
        await self.session.commit()
        await self.session.refresh(quiz_session)

    async def start_session(self, code: str, user_id: int) -> SessionSummary:
        user = await self.users.get_user(user_id)
        quiz_session = await self._load_session(code, lock="update")
        self._ensure_host(quiz_session, user)
        state.ensure_can_start(quiz_session.status)
        if await self._participant_count(quiz_session.id) == 0:
            raise ConflictError(
                "At least one participant must join before starting",
                code="no_participants",
            )
        await self._transition(
            quiz_session,
            expected=SessionStatus.WAITING,
            target=SessionStatus.ACTIVE,
            values={"started_at": utcnow()},
        )
        logger.info(
            "Live quiz started",
            extra={"session_code": quiz_session.code, "user_id": user.id},
        )
        return await self._summary(quiz_session)

    async def end_session(self, code: str, user_id: int) -> SessionSummary:
        user = await self.users.get_user(user_id)
        quiz_session = await self._load_session(code, lock="update")
        self._ensure_host(quiz_session, user)
        state.ensure_can_end(quiz_session.status)
        ended_at = utcnow()
        if quiz_session.started_at and ended_at < quiz_session.started_at:
            ended_at = quiz_session.started_at
        await self._transition(
            quiz_session,
            expected=SessionStatus.ACTIVE,
            target=SessionStatus.ENDED,
            values={"ended_at": ended_at},
        )
        logger.info(
            "Live quiz ended",
            extra={"session_code": quiz_session.code, "user_id": user.id},
        )
        return await self._summary(quiz_session)

    # Participant roster -------------------------------------------------
    async def join_session(self, code: str, user_id: int) -> ParticipantSummary:
        user = await self.users.get_user(user_id)
        quiz_session = await self._load_session(code, lock="share")
        state.ensure_accepting_joins(quiz_session.status)
        session_id, session_code = quiz_session.id, quiz_session.code

        existing = await self._find_participant(session_id, user.id)
        if existing is not None:
            await self.session.commit()
            return _participant_summary(existing)

        await self.profiles.get_or_create(user.id)
        participant = QuizSessionParticipant(
            session_id=session_id,
            user_id=user.id,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            score=0,
            joined_at=utcnow(),
        )
        self.session.add(participant)
        try:
            await self.session.commit()
        except IntegrityError:
            # Same user joined concurrently from another tab
            await self.session.rollback()
            existing = await self._find_participant(session_id, user.id)
            if existing is None:
                raise
            return _participant_summary(existing)

        logger.info(
            f"{user.display_name} joined",
            extra={"session_code": session_code, "user_id": user.id},
        )
        return _participant_summary(participant)

    async def list_participants(self, code: str) -> list[ParticipantSummary]:
        quiz_session = await self._load_session(code)
        result = await self.session.execute(
            select(QuizSessionParticipant)
            .where(QuizSessionParticipant.session_id == quiz_session.id)
            .order_by(QuizSessionParticipant.joined_at, QuizSessionParticipant.id)
            .execution_options(populate_existing=True)
        )
        return [_participant_summary(p) for p in result.scalars().all()]

    # Question set -------------------------------------------------------
    async def get_question_set(self, code: str, user_id: int) -> QuestionSet:
        quiz_session = await self._load_session(code)
        state.ensure_questions_visible(quiz_session.status)
        if quiz_session.host_id != user_id:
            if await self._find_participant(quiz_session.id, user_id) is None:
                raise AuthorizationError(
                    "Only participants can see the questions", code="not_a_participant"
                )

        # Answer-key columns are never selected on this path
        rows = await self.session.execute(
            select(
                QuizSessionQuestion.position,
                QuizQuestion.id,
                QuizQuestion.text,
                QuizQuestion.difficulty,
                QuizCategory.name,
            )
            .join(QuizQuestion, QuizQuestion.id == QuizSessionQuestion.question_id)
            .outerjoin(QuizCategory, QuizCategory.id == QuizQuestion.category_id)
            .where(QuizSessionQuestion.session_id == quiz_session.id)
            .order_by(QuizSessionQuestion.position)
        )
        return QuestionSet(
            session_id=quiz_session.id,
            code=quiz_session.code,
            title=quiz_session.title,
            timer_per_question_seconds=quiz_session.timer_per_question_seconds,
            questions=[
                PublicQuestion(
                    id=qid,
                    position=position,
                    text=text,
                    category=category,
                    difficulty=difficulty,
                )
                for position, qid, text, difficulty, category in rows.all()
            ],
        )

    # Scoring engine -----------------------------------------------------
    async def submit_answer(
        self,
        code: str,
        user_id: int,
        *,
        question_id: int,
        answer: bool,
        time_remaining_seconds: float,
    ) -> AnswerResult:
        if time_remaining_seconds is None or not math.isfinite(
            float(time_remaining_seconds)
        ):
            raise ValidationError(
                "time_remaining_seconds must be a finite number",
                code="invalid_time_remaining",
            )

        attempts = max(1, self.config.submit_max_retries)
        for attempt in range(1, attempts + 1):
            try:
                return await self._submit_once(
                    code,
                    user_id,
                    question_id=question_id,
                    answer=bool(answer),
                    time_remaining_seconds=float(time_remaining_seconds),
                )
            except DBAPIError as e:
                if not _is_transient(e):
                    raise
                await self.session.rollback()
                if attempt >= attempts:
                    logger.error(
                        f"Giving up on answer for question {question_id}: {e}",
                        extra={"session_code": normalize_code(code), "user_id": user_id},
                    )
                    raise StorageUnavailableError(
                        "Could not record the answer, please try again",
                        code="storage_unavailable",
                    ) from e
                logger.warning(
                    f"Transient storage error on attempt {attempt}, retrying: {e}",
                    extra={"session_code": normalize_code(code), "user_id": user_id},
                )
                await asyncio.sleep(0.05 * attempt)
        raise AssertionError("unreachable")

    async def _replay(
        self, previous: QuizSessionAnswer, participant_id: int
    ) -> AnswerResult:
        question_id = previous.question_id
        is_correct = previous.is_correct
        points = previous.points_awarded
        explanation = await self.session.scalar(
            select(QuizQuestion.explanation).where(QuizQuestion.id == question_id)
        )
        score = await self.session.scalar(
            select(QuizSessionParticipant.score).where(
                QuizSessionParticipant.id == participant_id
            )
        )
        await self.session.commit()
        return AnswerResult(
            question_id=question_id,
            is_correct=is_correct,
            points_awarded=points,
            explanation=explanation,
            already_answered=True,
            score=int(score or 0),
        )

    async def _submit_once(
        self,
        code: str,
        user_id: int,
        *,
        question_id: int,
        answer: bool,
        time_remaining_seconds: float,
    ) -> AnswerResult:
        quiz_session = await self._load_session(code, lock="share")
        state.ensure_accepting_answers(quiz_session.status)
        session_id = quiz_session.id
        session_code = quiz_session.code
        session_title = quiz_session.title
        timer = quiz_session.timer_per_question_seconds

        position = await self.session.scalar(
            select(QuizSessionQuestion.position).where(
                QuizSessionQuestion.session_id == session_id,
                QuizSessionQuestion.question_id == question_id,
            )
        )
        if position is None:
            raise ValidationError(
                "Question is not part of this session", code="unknown_question"
            )

        participant = await self._find_participant(session_id, user_id)
        if participant is None:
            raise AuthorizationError(
                "Join the session before answering", code="not_a_participant"
            )
        participant_id = participant.id

        previous = await self._find_answer(session_id, participant_id, question_id)
        if previous is not None:
            logger.info(
                f"Duplicate answer for question {question_id} ignored",
                extra={"session_code": session_code, "user_id": user_id},
            )
            return await self._replay(previous, participant_id)

        question = (await self.questions.get_questions_by_ids([question_id]))[
            question_id
        ]
        explanation = question.explanation
        is_correct = answer == bool(question.correct_answer)
        remaining = min(max(time_remaining_seconds, 0.0), float(timer))
        points = apply_score(self.score_fn, is_correct, remaining, timer)

        self.session.add(
            QuizSessionAnswer(
                session_id=session_id,
                participant_id=participant_id,
                question_id=question_id,
                submitted_answer=answer,
                time_remaining_seconds=remaining,
                is_correct=is_correct,
                points_awarded=points,
                answered_at=utcnow(),
            )
        )
        try:
            await self.session.flush()
        except IntegrityError:
            # A concurrent request from the same participant recorded it first
            await self.session.rollback()
            previous = await self._find_answer(session_id, participant_id, question_id)
            if previous is None:
                raise
            return await self._replay(previous, participant_id)

        if points > 0:
            await self.session.execute(
                update(QuizSessionParticipant)
                .where(QuizSessionParticipant.id == participant_id)
                .values(score=QuizSessionParticipant.score + points)
                .execution_options(synchronize_session=False)
            )
            await self.ledger.record_earning(
                user_id=user_id,
                amount=points,
                activity_type=POINTS_ACTIVITY_TYPE,
                reference_type=POINTS_REFERENCE_TYPE,
                reference_id=f"{session_id}:{question_id}",
                description=f"Live quiz '{session_title}': question {position} correct",
            )
            await self.profiles.increment_total_points(user_id, points)

        score = await self.session.scalar(
            select(QuizSessionParticipant.score).where(
                QuizSessionParticipant.id == participant_id
            )
        )
        await self.session.commit()

        logger.info(
            f"Answer for question {question_id}: correct={is_correct} points={points}",
            extra={"session_code": session_code, "user_id": user_id},
        )
        return AnswerResult(
            question_id=question_id,
            is_correct=is_correct,
            points_awarded=points,
            explanation=explanation,
            already_answered=False,
            score=int(score or 0),
        )

    # Leaderboard --------------------------------------------------------
    async def get_leaderboard(self, code: str) -> list[LeaderboardEntry]:
        _, entries = await self.leaderboard_snapshot(code)
        return entries

    async def leaderboard_snapshot(
        self, code: str
    ) -> tuple[SessionStatus, list[LeaderboardEntry]]:
        quiz_session = await self._load_session(code)
        result = await self.session.execute(
            select(QuizSessionParticipant).where(
                QuizSessionParticipant.session_id == quiz_session.id
            )
            .execution_options(populate_existing=True)
        )
        return quiz_session.status, rank(result.scalars().all())
