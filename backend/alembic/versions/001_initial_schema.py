"""Initial schema — users, interviews, refresh_tokens.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False, server_default="anonymous"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("password_hash", sa.String(100), nullable=True),
        sa.Column("device_alias", sa.String(200), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("upgraded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_device_alias", "users", ["device_alias"])
    op.create_index(
        "uq_users_email_authenticated", "users", ["email"], unique=True,
        postgresql_where=sa.text("kind = 'authenticated'"),
    )
    op.create_index(
        "uq_users_device_alias_anonymous", "users", ["device_alias"], unique=True,
        postgresql_where=sa.text("kind = 'anonymous'"),
    )

    op.create_table(
        "interviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("room_name", sa.String(200), nullable=False),
        sa.Column("participant_identity", sa.String(200), nullable=False),
        sa.Column("session_data", sa.JSON, nullable=False),
        sa.Column("case_question", sa.Text, nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("candidate_answer", sa.Text, nullable=True),
        sa.Column("capability_token", sa.String(64), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("result", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_interviews_owner_created", "interviews", ["owner_id", "created_at"])

    op.create_table(
        "refresh_tokens",
        sa.Column(
            "user_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column("expires_at_ms", sa.BigInteger, nullable=False),
    )
    op.create_index(
        "ix_refresh_tokens_user_expiry", "refresh_tokens", ["user_id", "expires_at_ms"],
    )


def downgrade() -> None:
    op.drop_table("refresh_tokens")
    op.drop_table("interviews")
    op.drop_table("users")
