from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.logging import SESSION_FORMAT, get_logger, setup_logging
from app.apis.auth.main import router as auth_router
from app.apis.user_profile.main import router as user_profile_router
from app.apis.quiz.main import router as quiz_router
from app.apis.question_bank.main import router as question_bank_router
from app.apis.points.main import router as points_router
from app.modules.quiz.errors import QuizError

import uvicorn
from fastapi.middleware.cors import CORSMiddleware


logger = get_logger(__name__)


async def quiz_error_handler(request: Request, exc: QuizError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_app() -> FastAPI:
    setup_logging(fmt=SESSION_FORMAT)

    app = FastAPI(title=settings.app.name, version=settings.app.version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(QuizError, quiz_error_handler)

    app.include_router(auth_router)
    app.include_router(user_profile_router)
    app.include_router(quiz_router)
    app.include_router(question_bank_router)
    app.include_router(points_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        logger.error(f"An error occurred when starting the server: {e}.")
        raise
