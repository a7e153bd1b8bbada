"""Identity Variants — anonymous vs authenticated users as a sum type.

Invariants:
    - AnonymousIdentity always has a device_alias; never an email or password hash
    - AuthenticatedIdentity always has an email and a password hash
    - Both variants share one id space: upgrade keeps the id, only the variant changes
    - identity_from_record is the only place a persisted row becomes a domain identity

Design Decisions:
    - Frozen dataclasses with __post_init__ checks: kind-specific fields are enforced at
      construction, call sites pattern-match on the type instead of testing optional fields
    - Token claims built here (pure) so TokenIssuer only signs and verifies
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Protocol, Union
from uuid import UUID

from casecoach.core.domain_types import IdentityKind, UserId, DEFAULT_CONSENT_METADATA


class IdentityRecord(Protocol):
    """Structural contract for the persisted user row (ORM model)."""
    id: UUID
    kind: str
    name: str
    email: str | None
    password_hash: str | None
    device_alias: str | None
    is_active: bool
    consent_metadata: dict | None
    created_at: datetime | None
    last_login_at: datetime | None
    upgraded_at: datetime | None


@dataclass(frozen=True)
class AnonymousIdentity:
    """Device-bound guest identity."""

    kind: ClassVar[IdentityKind] = IdentityKind.ANONYMOUS

    id: UserId
    name: str
    device_alias: str
    is_active: bool = True
    metadata: dict = field(default_factory=lambda: dict(DEFAULT_CONSENT_METADATA))
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    def __post_init__(self):
        if not self.device_alias:
            raise ValueError("anonymous identity requires a device_alias")


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Email/password identity. device_alias is kept when upgraded from a guest."""

    kind: ClassVar[IdentityKind] = IdentityKind.AUTHENTICATED

    id: UserId
    name: str
    email: str
    password_hash: str = field(repr=False)
    is_active: bool = True
    metadata: dict = field(default_factory=lambda: dict(DEFAULT_CONSENT_METADATA))
    device_alias: str | None = None
    created_at: datetime | None = None
    last_login_at: datetime | None = None
    upgraded_at: datetime | None = None

    def __post_init__(self):
        if not self.email:
            raise ValueError("authenticated identity requires an email")
        if not self.password_hash:
            raise ValueError("authenticated identity requires a password hash")


Identity = Union[AnonymousIdentity, AuthenticatedIdentity]


def identity_from_record(record: IdentityRecord) -> Identity:
    """Build the domain variant for a persisted user row.

    Raises ValueError if the row violates its kind's required fields.
    """
    metadata = {**DEFAULT_CONSENT_METADATA, **(record.consent_metadata or {})}
    kind = IdentityKind(record.kind)
    if kind is IdentityKind.ANONYMOUS:
        return AnonymousIdentity(
            id=UserId(record.id),
            name=record.name,
            device_alias=record.device_alias or "",
            is_active=record.is_active,
            metadata=metadata,
            created_at=record.created_at,
            last_login_at=record.last_login_at,
        )
    return AuthenticatedIdentity(
        id=UserId(record.id),
        name=record.name,
        email=record.email or "",
        password_hash=record.password_hash or "",
        is_active=record.is_active,
        metadata=metadata,
        device_alias=record.device_alias,
        created_at=record.created_at,
        last_login_at=record.last_login_at,
        upgraded_at=record.upgraded_at,
    )


# ─── Token claims ────────────────────────────────────────────────

@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by both access and refresh tokens."""
    user_id: UserId
    identity_kind: IdentityKind
    email: str | None = None
    device_alias: str | None = None


def claims_for(identity: Identity) -> TokenClaims:
    if isinstance(identity, AuthenticatedIdentity):
        return TokenClaims(
            user_id=identity.id,
            identity_kind=identity.kind,
            email=identity.email,
            device_alias=identity.device_alias,
        )
    return TokenClaims(
        user_id=identity.id,
        identity_kind=identity.kind,
        device_alias=identity.device_alias,
    )


def claims_to_payload(claims: TokenClaims) -> dict:
    """Serialize claims for signing. Optional claims are omitted, not null."""
    payload = {
        "userId": str(claims.user_id),
        "identityKind": claims.identity_kind.value,
    }
    if claims.email:
        payload["email"] = claims.email
    if claims.device_alias:
        payload["deviceAlias"] = claims.device_alias
    return payload


def claims_from_payload(payload: dict) -> TokenClaims:
    """Parse a verified token payload. Raises ValueError on malformed claims."""
    try:
        user_id = UserId(UUID(payload["userId"]))
        kind = IdentityKind(payload["identityKind"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"malformed token claims: {e}") from e
    return TokenClaims(
        user_id=user_id,
        identity_kind=kind,
        email=payload.get("email"),
        device_alias=payload.get("deviceAlias"),
    )
