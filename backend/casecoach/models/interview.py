"""Interview ORM — one analysis job per submitted practice session.

Invariants:
    - owner_id references users.id (survives anonymous -> authenticated upgrade)
    - capability_token is 64 lowercase hex chars, unique
    - status transitions processing -> completed | failed once (see InterviewRepository)
    - result is non-null only when status == completed

Design Decisions:
    - session_data stored as submitted (JSON): transcript, pace timeline, fillers, pauses
    - processed_at stamped on completion only
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from casecoach.db.base import Base
from casecoach.core.domain_types import InterviewStatus


class Interview(Base):
    """Interview-analysis job."""
    __tablename__ = "interviews"
    __table_args__ = (
        Index("ix_interviews_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    room_name: Mapped[str] = mapped_column(String(200), nullable=False)
    participant_identity: Mapped[str] = mapped_column(String(200), nullable=False)
    session_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    case_question: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    candidate_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    capability_token: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InterviewStatus.PROCESSING.value,
    )
    result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    owner: Mapped["User"] = relationship("User", back_populates="interviews")
