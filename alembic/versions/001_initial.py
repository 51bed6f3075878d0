"""Initial schema: study_packs, flashcards, user_streaks, review_sessions, quizzes, quiz_items, quiz_results.

Revision ID: 001
Revises:
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "study_packs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_study_packs_user_id", "study_packs", ["user_id"])

    op.create_table(
        "flashcards",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("study_pack_id", sa.String(36), sa.ForeignKey("study_packs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, nullable=False),
        sa.Column("topic", sa.String(255), nullable=True),
        sa.Column("ease", sa.Float, server_default="2.5"),
        sa.Column("interval_days", sa.Integer, server_default="0"),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reps", sa.Integer, server_default="0"),
        sa.Column("lapses", sa.Integer, server_default="0"),
        sa.Column("version", sa.Integer, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_flashcards_study_pack_id", "flashcards", ["study_pack_id"])
    op.create_index("ix_flashcards_topic", "flashcards", ["topic"])

    op.create_table(
        "user_streaks",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("current_streak", sa.Integer, server_default="0"),
        sa.Column("longest_streak", sa.Integer, server_default="0"),
        sa.Column("last_review_date", sa.Date, nullable=True),
        sa.Column("total_reviews", sa.Integer, server_default="0"),
        sa.Column("freezes", sa.Integer, server_default="0"),
        sa.Column("freeze_just_used", sa.Boolean, server_default=sa.false()),
        sa.Column("version", sa.Integer, server_default="0", nullable=False),
    )

    op.create_table(
        "review_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("study_pack_id", sa.String(36), sa.ForeignKey("study_packs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic_filter", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cards_reviewed", sa.Integer, server_default="0"),
        sa.Column("accuracy", sa.Float, nullable=True),
    )
    op.create_index("ix_review_sessions_user_id", "review_sessions", ["user_id"])

    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("study_pack_id", sa.String(36), sa.ForeignKey("study_packs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("config_json", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_quizzes_study_pack_id", "quizzes", ["study_pack_id"])

    op.create_table(
        "quiz_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quiz_id", sa.String(36), sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer, server_default="0"),
        sa.Column("question", sa.Text, nullable=False),
        sa.Column("answer", sa.Text, nullable=False),
        sa.Column("question_type", sa.String(32), server_default="short_answer"),
        sa.Column("topic", sa.String(255), nullable=True),
        sa.Column("options", sa.JSON, nullable=True),
    )
    op.create_index("ix_quiz_items_quiz_id", "quiz_items", ["quiz_id"])

    op.create_table(
        "quiz_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("quiz_id", sa.String(36), sa.ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("duration_s", sa.Integer, server_default="0"),
        sa.Column("taken_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("detail_json", sa.JSON, nullable=False),
    )
    op.create_index("ix_quiz_results_quiz_id", "quiz_results", ["quiz_id"])
    op.create_index("ix_quiz_results_user_id", "quiz_results", ["user_id"])


def downgrade() -> None:
    op.drop_table("quiz_results")
    op.drop_table("quiz_items")
    op.drop_table("quizzes")
    op.drop_table("review_sessions")
    op.drop_table("user_streaks")
    op.drop_table("flashcards")
    op.drop_table("study_packs")
