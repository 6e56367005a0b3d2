"""Error taxonomy for the live quiz engine.

Every error carries a stable machine ``code`` and a human message. The API
layer maps each class to one HTTP status; nothing here is retried except
``StorageUnavailableError``, which is what the engine raises once its own
bounded retries against transient storage failures are exhausted.
"""

from __future__ import annotations


class QuizError(Exception):
    status_code: int = 400
    default_code: str = "quiz_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(QuizError):
    status_code = 422
    default_code = "validation_error"


class AuthorizationError(QuizError):
    status_code = 403
    default_code = "forbidden"


class NotFoundError(QuizError):
    status_code = 404
    default_code = "not_found"


class ConflictError(QuizError):
    status_code = 409
    default_code = "conflict"


class StorageUnavailableError(QuizError):
    status_code = 500
    default_code = "internal_error"


__all__ = [
    "QuizError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StorageUnavailableError",
]
