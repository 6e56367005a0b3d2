from __future__ import annotations

import asyncio
import json
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.db.schemas.auth import User
from app.core.db.schemas.quiz import SessionStatus
from app.core.logging import get_logger
from app.apis.deps import (
    CurrentUser,
    HostUser,
    QuizService,
    current_user_or_query_token,
    get_session_factory,
)
from app.modules.quiz.codes import normalize_code
from app.modules.quiz.models import (
    AnswerResult,
    LeaderboardEntry,
    ParticipantSummary,
    QuestionSet,
    SessionSummary,
)
from app.modules.quiz.service import LiveQuizService
from .schemas import (
    CreateSessionRequest,
    JoinSessionRequest,
    JoinSessionResponse,
    SubmitAnswerRequest,
)


router = APIRouter()
logger = get_logger(__name__)

PREFIX = f"/{settings.app.version}/quiz-sessions"


@router.post(
    PREFIX,
    response_model=SessionSummary,
    status_code=status.HTTP_201_CREATED,
    tags=["quiz-sessions"],
)
async def create_session(
    req: CreateSessionRequest, user: CurrentUser, service: QuizService
) -> SessionSummary:
    return await service.create_session(
        title=req.title,
        selector=req.selector(),
        timer_seconds=req.timer_per_question_seconds,
        host_user_id=user.id,
    )


@router.get(PREFIX, response_model=list[SessionSummary], tags=["quiz-sessions"])
async def list_my_sessions(user: HostUser, service: QuizService) -> list[SessionSummary]:
    return await service.list_hosted(user.id)


@router.post(
    f"{PREFIX}/join",
    response_model=JoinSessionResponse,
    tags=["quiz-sessions"],
)
async def join_session(
    req: JoinSessionRequest, user: CurrentUser, service: QuizService
) -> JoinSessionResponse:
    participant = await service.join_session(req.code, user.id)
    summary = await service.get_session_summary(req.code)
    return JoinSessionResponse(participant=participant, session=summary)


@router.get(
    f"{PREFIX}/{{code}}",
    response_model=SessionSummary,
    tags=["quiz-sessions"],
)
async def get_session_summary(
    code: str, user: CurrentUser, service: QuizService
) -> SessionSummary:
    return await service.get_session_summary(code)


@router.post(
    f"{PREFIX}/{{code}}/start",
    response_model=SessionSummary,
    tags=["quiz-sessions"],
)
async def start_session(
    code: str, user: CurrentUser, service: QuizService
) -> SessionSummary:
    return await service.start_session(code, user.id)


@router.post(
    f"{PREFIX}/{{code}}/end",
    response_model=SessionSummary,
    tags=["quiz-sessions"],
)
async def end_session(
    code: str, user: CurrentUser, service: QuizService
) -> SessionSummary:
    return await service.end_session(code, user.id)


@router.get(
    f"{PREFIX}/{{code}}/participants",
    response_model=list[ParticipantSummary],
    tags=["quiz-sessions"],
)
async def list_participants(
    code: str, user: CurrentUser, service: QuizService
) -> list[ParticipantSummary]:
    return await service.list_participants(code)


@router.get(
    f"{PREFIX}/{{code}}/questions",
    response_model=QuestionSet,
    tags=["quiz-sessions"],
)
async def get_question_set(
    code: str, user: CurrentUser, service: QuizService
) -> QuestionSet:
    return await service.get_question_set(code, user.id)


@router.post(
    f"{PREFIX}/{{code}}/submit",
    response_model=AnswerResult,
    tags=["quiz-sessions"],
)
async def submit_answer(
    code: str, req: SubmitAnswerRequest, user: CurrentUser, service: QuizService
) -> AnswerResult:
    """Score one answer.

    A repeat answer for the same question is a conflict that the engine
    resolves idempotently: 200 with the first recorded result and
    ``already_answered`` set, so a client retrying a lost response sees
    the same outcome.
    """
    return await service.submit_answer(
        code,
        user.id,
        question_id=req.question_id,
        answer=req.answer,
        time_remaining_seconds=req.time_remaining_seconds,
    )


@router.get(
    f"{PREFIX}/{{code}}/leaderboard",
    response_model=list[LeaderboardEntry],
    tags=["quiz-sessions"],
)
async def get_leaderboard(
    code: str, user: CurrentUser, service: QuizService
) -> list[LeaderboardEntry]:
    return await service.get_leaderboard(code)


def _sse(event: str | None, data: dict) -> bytes:
    payload = json.dumps(data, ensure_ascii=False)
    parts = []
    if event:
        parts.append(f"event: {event}")
    parts.append(f"data: {payload}")
    parts.append("")
    return ("\n".join(parts) + "\n").encode("utf-8")


@router.get(
    f"{PREFIX}/{{code}}/leaderboard/events",
    tags=["quiz-sessions"],
)
async def stream_leaderboard(
    code: str,
    user: User = Depends(current_user_or_query_token),
    session_factory=Depends(get_session_factory),
) -> StreamingResponse:
    """Push the ranked leaderboard whenever it changes, until the session ends."""
    code = normalize_code(code)

    # Validate the code up front using a short-lived session
    async with session_factory() as _sess:
        await LiveQuizService(_sess).lookup_by_code(code)

    poll = max(0.1, float(settings.quiz.poll_interval_seconds))
    max_seconds = settings.quiz.stream_max_seconds

    async def gen():
        last_entries = None
        last_status = None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_seconds
        tick = 0
        try:
            while True:
                async with session_factory() as session:
                    current, entries = await LiveQuizService(
                        session
                    ).leaderboard_snapshot(code)
                payload = [e.model_dump(mode="json") for e in entries]

                if payload != last_entries or current != last_status:
                    last_entries, last_status = payload, current
                    yield _sse(
                        "leaderboard",
                        {"code": code, "status": current.value, "entries": payload},
                    )

                if current == SessionStatus.ENDED:
                    yield _sse("end", {"status": current.value})
                    break
                if loop.time() >= deadline:
                    yield _sse("end", {"reason": "timeout"})
                    break

                # Heartbeat ping roughly every 15 seconds
                tick += 1
                if tick % max(1, int(15 / poll)) == 0:
                    yield _sse("ping", {"ts": datetime.utcnow().isoformat() + "Z"})

                await asyncio.sleep(poll)
        except asyncio.CancelledError:
            logger.info(
                "Leaderboard stream closed by client",
                extra={"session_code": code, "user_id": user.id},
            )
            raise

    return StreamingResponse(
        gen(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
