"""RefreshToken ORM — per-user ordered set of redeemable refresh tokens.

Invariants:
    - (user_id, token_hash) is the primary key: a token is a member at most once
    - token_hash is the SHA-256 hex digest of the raw JWT string
    - expires_at_ms is the member's score: absolute expiry in epoch milliseconds

Design Decisions:
    - Digest instead of the raw token: the table never holds a usable credential
"""

import uuid

from sqlalchemy import String, BigInteger, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from casecoach.db.base import Base


class RefreshToken(Base):
    """Registry member: one valid refresh token of one user."""
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_expiry", "user_id", "expires_at_ms"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    expires_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
