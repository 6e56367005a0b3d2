from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import QuestionBankService
from app.core.logging import get_logger
from app.apis.deps import CurrentUser, HostUser
from app.modules.quiz.generator import generate_ai_questions, generate_math_questions
from .schemas import (
    CategoryCreate,
    CategoryRead,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    QuestionCreate,
    QuestionRead,
)


router = APIRouter()
logger = get_logger(__name__)


@router.get(
    f"/{settings.app.version}/quiz-categories",
    response_model=list[CategoryRead],
    tags=["question-bank"],
)
async def list_categories(
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> list[CategoryRead]:
    rows = await QuestionBankService(session).list_categories()
    return [
        CategoryRead(
            id=c.id,
            name=c.name,
            description=c.description,
            question_count=n,
            created_at=c.created_at,
        )
        for c, n in rows
    ]


@router.post(
    f"/{settings.app.version}/quiz-categories",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    tags=["question-bank"],
)
async def create_category(
    req: CategoryCreate,
    user: HostUser,
    session: AsyncSession = Depends(get_session),
) -> CategoryRead:
    category = await QuestionBankService(session).create_category(
        name=req.name, description=req.description
    )
    await session.commit()
    await session.refresh(category)
    return CategoryRead(
        id=category.id,
        name=category.name,
        description=category.description,
        question_count=0,
        created_at=category.created_at,
    )


@router.get(
    f"/{settings.app.version}/questions",
    response_model=list[QuestionRead],
    tags=["question-bank"],
)
async def list_questions(
    user: HostUser,
    category_id: int | None = None,
    include_inactive: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[QuestionRead]:
    rows = await QuestionBankService(session).list_questions(
        category_id=category_id,
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )
    return [QuestionRead.model_validate(q) for q in rows]


@router.post(
    f"/{settings.app.version}/questions",
    response_model=list[QuestionRead],
    status_code=status.HTTP_201_CREATED,
    tags=["question-bank"],
)
async def create_questions(
    items: list[QuestionCreate],
    user: HostUser,
    session: AsyncSession = Depends(get_session),
) -> list[QuestionRead]:
    if not items:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "validation_error", "message": "No questions given"},
        )
    created = await QuestionBankService(session).add_questions(
        [i.model_dump() for i in items], created_by_id=user.id
    )
    await session.commit()
    for q in created:
        await session.refresh(q)
    return [QuestionRead.model_validate(q) for q in created]


@router.post(
    f"/{settings.app.version}/questions/generate",
    response_model=GenerateQuestionsResponse,
    tags=["question-bank"],
)
async def generate_questions(
    req: GenerateQuestionsRequest,
    user: HostUser,
    session: AsyncSession = Depends(get_session),
) -> GenerateQuestionsResponse:
    if req.mode == "math":
        drafts = generate_math_questions(
            num_questions=req.num_questions,
            min_value=req.min_value,
            max_value=req.max_value,
            ops=req.math_ops,
            false_ratio=req.false_ratio,
        )
    else:
        topic = (req.topic or "").strip() or "General knowledge"
        try:
            drafts = await generate_ai_questions(
                topic, n=req.num_questions, difficulty=req.difficulty
            )
        except RuntimeError as e:
            logger.error(f"AI question generation unavailable: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"code": "generator_unavailable", "message": str(e)},
            )

    saved: list[QuestionRead] = []
    if req.persist and drafts:
        created = await QuestionBankService(session).add_questions(
            [
                {**d.model_dump(), "category_id": req.category_id}
                for d in drafts
            ],
            created_by_id=user.id,
        )
        await session.commit()
        for q in created:
            await session.refresh(q)
        saved = [QuestionRead.model_validate(q) for q in created]
        logger.info(
            f"Saved {len(saved)} generated {req.mode} questions",
            extra={"user_id": user.id},
        )

    return GenerateQuestionsResponse(questions=drafts, saved=saved)
