# Import models so Alembic and Base metadata are aware of them
from .auth import User  # noqa: F401
from .user_profile import UserProfile  # noqa: F401
from .points import PointTransaction  # noqa: F401
from .quiz import (  # noqa: F401
    QuizCategory,
    QuizQuestion,
    QuizSession,
    QuizSessionQuestion,
    QuizSessionParticipant,
    QuizSessionAnswer,
)
