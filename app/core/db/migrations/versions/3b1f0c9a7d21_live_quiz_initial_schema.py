"""live quiz initial schema: users, profiles, points ledger, question bank, sessions

Revision ID: 3b1f0c9a7d21
Revises:
Create Date: 2026-10-19 10:12:41.503118

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1f0c9a7d21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum("STUDENT", "TEACHER", "ADMIN", name="userrole")
session_status = sa.Enum("WAITING", "ACTIVE", "ENDED", name="sessionstatus")
difficulty = sa.Enum("EASY", "MEDIUM", "HARD", name="difficulty")


def upgrade() -> None:
    """Create every table the live quiz service needs."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("class_name", sa.String(length=50), nullable=True),
        sa.Column("bio", sa.String(), nullable=True),
        sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_profiles_id"), "user_profiles", ["id"], unique=False)
    op.create_index(
        op.f("ix_user_profiles_user_id"), "user_profiles", ["user_id"], unique=True
    )
    op.create_index(
        op.f("ix_user_profiles_created_at"),
        "user_profiles",
        ["created_at"],
        unique=False,
    )
    op.create_index(
        op.f("ix_user_profiles_updated_at"),
        "user_profiles",
        ["updated_at"],
        unique=False,
    )

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("activity_type", sa.String(length=32), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_point_transactions_id"), "point_transactions", ["id"], unique=False
    )
    op.create_index(
        op.f("ix_point_transactions_user_id"),
        "point_transactions",
        ["user_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_point_transactions_reference_id"),
        "point_transactions",
        ["reference_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_point_transactions_created_at"),
        "point_transactions",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "quiz_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(
        op.f("ix_quiz_categories_id"), "quiz_categories", ["id"], unique=False
    )
    op.create_index(
        op.f("ix_quiz_categories_created_at"),
        "quiz_categories",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("correct_answer", sa.Boolean(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("difficulty", difficulty, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True
        ),
        sa.ForeignKeyConstraint(["category_id"], ["quiz_categories.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_quiz_questions_id"), "quiz_questions", ["id"], unique=False)
    op.create_index(
        op.f("ix_quiz_questions_category_id"),
        "quiz_questions",
        ["category_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_questions_is_active"),
        "quiz_questions",
        ["is_active"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_questions_created_at"),
        "quiz_questions",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "quiz_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("timer_per_question_seconds", sa.Integer(), nullable=False),
        sa.Column("is_shuffled", sa.Boolean(), nullable=False),
        sa.Column("status", session_status, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["host_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_quiz_sessions_id"), "quiz_sessions", ["id"], unique=False)
    op.create_index(
        op.f("ix_quiz_sessions_code"), "quiz_sessions", ["code"], unique=True
    )
    op.create_index(
        op.f("ix_quiz_sessions_host_id"), "quiz_sessions", ["host_id"], unique=False
    )
    op.create_index(
        op.f("ix_quiz_sessions_status"), "quiz_sessions", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_quiz_sessions_created_at"),
        "quiz_sessions",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "quiz_session_questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["quiz_sessions.id"]),
        sa.ForeignKeyConstraint(["question_id"], ["quiz_questions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_question"),
    )
    op.create_index(
        op.f("ix_quiz_session_questions_id"),
        "quiz_session_questions",
        ["id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_session_questions_session_id"),
        "quiz_session_questions",
        ["session_id"],
        unique=False,
    )

    op.create_table(
        "quiz_session_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("score", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "joined_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(["session_id"], ["quiz_sessions.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "user_id", name="uq_session_participant"),
    )
    op.create_index(
        op.f("ix_quiz_session_participants_id"),
        "quiz_session_participants",
        ["id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_session_participants_session_id"),
        "quiz_session_participants",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_session_participants_user_id"),
        "quiz_session_participants",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "quiz_session_answers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("submitted_answer", sa.Boolean(), nullable=False),
        sa.Column("time_remaining_seconds", sa.Float(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False),
        sa.Column(
            "answered_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.ForeignKeyConstraint(["session_id"], ["quiz_sessions.id"]),
        sa.ForeignKeyConstraint(["participant_id"], ["quiz_session_participants.id"]),
        sa.ForeignKeyConstraint(["question_id"], ["quiz_questions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "session_id", "participant_id", "question_id", name="uq_session_answer"
        ),
    )
    op.create_index(
        op.f("ix_quiz_session_answers_id"),
        "quiz_session_answers",
        ["id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_session_answers_session_id"),
        "quiz_session_answers",
        ["session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_quiz_session_answers_participant_id"),
        "quiz_session_answers",
        ["participant_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_table("quiz_session_answers")
    op.drop_table("quiz_session_participants")
    op.drop_table("quiz_session_questions")
    op.drop_table("quiz_sessions")
    op.drop_table("quiz_questions")
    op.drop_table("quiz_categories")
    op.drop_table("point_transactions")
    op.drop_table("user_profiles")
    op.drop_table("users")
    bind = op.get_bind()
    difficulty.drop(bind, checkfirst=True)
    session_status.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
