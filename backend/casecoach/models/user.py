"""User ORM — persists anonymous and authenticated identities in one table.

Invariants:
    - id is UUID primary key; upgrade never changes it
    - kind in {anonymous, authenticated}
    - email unique among authenticated rows (partial unique index)
    - device_alias unique among anonymous rows (partial unique index)
    - upgraded rows keep device_alias as history, outside the anonymous index

Design Decisions:
    - Single table with a kind column: interviews.owner_id stays valid across upgrade
    - Partial indexes emitted for both PostgreSQL and SQLite (tests)
    - consent_metadata attribute maps to the "metadata" column (name reserved on Base)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, JSON, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from casecoach.db.base import Base
from casecoach.core.domain_types import IdentityKind, DEFAULT_CONSENT_METADATA

_AUTHENTICATED_ONLY = text("kind = 'authenticated'")
_ANONYMOUS_ONLY = text("kind = 'anonymous'")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Identity record — one row per person or device, both kinds."""
    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_email_authenticated", "email", unique=True,
            postgresql_where=_AUTHENTICATED_ONLY, sqlite_where=_AUTHENTICATED_ONLY,
        ),
        Index(
            "uq_users_device_alias_anonymous", "device_alias", unique=True,
            postgresql_where=_ANONYMOUS_ONLY, sqlite_where=_ANONYMOUS_ONLY,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IdentityKind.ANONYMOUS.value,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    device_alias: Mapped[str | None] = mapped_column(
        String(200), nullable=True, index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    consent_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False,
        default=lambda: dict(DEFAULT_CONSENT_METADATA),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    upgraded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    interviews: Mapped[list["Interview"]] = relationship(
        "Interview", back_populates="owner",
        cascade="all, delete-orphan", lazy="raise", passive_deletes=True,
    )
