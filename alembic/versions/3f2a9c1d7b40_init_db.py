"""Init DB

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    session_status = sa.Enum(
        "pending", "in_progress", "completed", "submitted", name="test_session_status"
    )
    session_payment_status = sa.Enum(
        "pending", "completed", "failed", name="test_session_payment_status"
    )
    payment_status = sa.Enum("pending", "success", "failed", name="payment_status")

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("first_name", sa.VARCHAR(), nullable=False),
        sa.Column("last_name", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("phone", sa.VARCHAR(), nullable=False),
        sa.Column("password_hash", sa.VARCHAR(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "temp_registrations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("token", sa.VARCHAR(), nullable=False),
        sa.Column("first_name", sa.VARCHAR(), nullable=False),
        sa.Column("last_name", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("phone", sa.VARCHAR(), nullable=False),
        sa.Column("password_hash", sa.VARCHAR(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_temp_registrations_token"),
        "temp_registrations",
        ["token"],
        unique=True,
    )
    op.create_index(
        op.f("ix_temp_registrations_email"), "temp_registrations", ["email"]
    )
    op.create_index(
        op.f("ix_temp_registrations_expires_at"), "temp_registrations", ["expires_at"]
    )

    op.create_table(
        "auth_tokens",
        sa.Column("token", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("token"),
    )
    op.create_index(op.f("ix_auth_tokens_user_id"), "auth_tokens", ["user_id"])
    op.create_index(op.f("ix_auth_tokens_expires_at"), "auth_tokens", ["expires_at"])

    op.create_table(
        "test_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column(
            "status", session_status, nullable=False, server_default="pending"
        ),
        sa.Column(
            "payment_status",
            session_payment_status,
            nullable=False,
            server_default="pending",
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_score", sa.INTEGER(), nullable=True),
        sa.Column("reading_score", sa.INTEGER(), nullable=True),
        sa.Column("listening_score", sa.INTEGER(), nullable=True),
        sa.Column("writing_score", sa.INTEGER(), nullable=True),
        sa.Column("speaking_score", sa.INTEGER(), nullable=True),
        sa.Column("certificate_id", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_test_sessions_user_id"), "test_sessions", ["user_id"])

    op.create_table(
        "test_answers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("section", sa.VARCHAR(), nullable=False),
        sa.Column("question_id", sa.VARCHAR(), nullable=False),
        sa.Column("answer", sa.JSON(), nullable=True),
        sa.Column("is_correct", sa.BOOLEAN(), nullable=True),
        sa.Column("score", sa.INTEGER(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["test_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "session_id",
            "section",
            "question_id",
            name="uq_test_answers_session_section_question",
        ),
    )
    op.create_index(
        op.f("ix_test_answers_session_id"), "test_answers", ["session_id"]
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("provider_reference", sa.VARCHAR(), nullable=False),
        sa.Column("amount", sa.INTEGER(), nullable=False),
        sa.Column("currency", sa.VARCHAR(), nullable=True),
        sa.Column(
            "status", payment_status, nullable=False, server_default="pending"
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["test_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payments_session_id"), "payments", ["session_id"])
    op.create_index(
        op.f("ix_payments_provider_reference"),
        "payments",
        ["provider_reference"],
        unique=True,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("payments")
    op.drop_table("test_answers")
    op.drop_table("test_sessions")
    op.drop_table("auth_tokens")
    op.drop_table("temp_registrations")
    op.drop_table("users")

    bind = op.get_bind()
    sa.Enum(name="payment_status").drop(bind, checkfirst=True)
    sa.Enum(name="test_session_payment_status").drop(bind, checkfirst=True)
    sa.Enum(name="test_session_status").drop(bind, checkfirst=True)
