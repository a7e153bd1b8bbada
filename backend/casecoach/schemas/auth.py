"""Auth Schemas — identity requests and token/user responses.

Invariants:
    - Passwords: at least 8 chars and at most 72 UTF-8 bytes (bcrypt's input limit),
      with at least one lowercase, one uppercase and one digit
    - Emails validated by EmailStr and lower-cased
    - Names and device ids are stripped and non-empty
"""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from casecoach.core.domain_types import IdentityKind
from casecoach.core.identity import Identity, AuthenticatedIdentity
from casecoach.schemas.base import CamelModel
from casecoach.services.passwords import MAX_PASSWORD_BYTES, password_byte_length
from casecoach.services.token_issuer import TokenPair


def _strip_non_empty(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("cannot be empty or whitespace")
    return v


def _check_password_strength(v: str) -> str:
    if password_byte_length(v) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    if not any(c.islower() for c in v):
        raise ValueError("password must contain a lowercase letter")
    if not any(c.isupper() for c in v):
        raise ValueError("password must contain an uppercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("password must contain a digit")
    return v


class AnonymousSessionRequest(CamelModel):
    device_id: str = Field(min_length=1, max_length=200)

    @field_validator("device_id")
    @classmethod
    def strip_device_id(cls, v: str) -> str:
        return _strip_non_empty(v)


class CredentialsRequest(CamelModel):
    """Signup and upgrade body."""
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=72)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_non_empty(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class ConsentMetadata(CamelModel):
    has_granted_interview_consent: bool = False


class MetadataUpdateRequest(CamelModel):
    metadata: ConsentMetadata


# --- Responses ---------------------------------------------------------------

class TokensResponse(CamelModel):
    access_token: str
    refresh_token: str

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokensResponse":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class UserResponse(CamelModel):
    id: UUID
    name: str
    identity_kind: IdentityKind
    email: str | None = None
    device_alias: str | None = None
    created_at: datetime | None = None
    upgraded_at: datetime | None = None
    metadata: ConsentMetadata

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        email = identity.email if isinstance(identity, AuthenticatedIdentity) else None
        upgraded_at = (
            identity.upgraded_at if isinstance(identity, AuthenticatedIdentity) else None
        )
        return cls(
            id=identity.id,
            name=identity.name,
            identity_kind=identity.kind,
            email=email,
            device_alias=identity.device_alias,
            created_at=identity.created_at,
            upgraded_at=upgraded_at,
            metadata=ConsentMetadata.model_validate(identity.metadata),
        )


class AuthResponse(CamelModel):
    tokens: TokensResponse
    user: UserResponse


class RefreshResponse(CamelModel):
    tokens: TokensResponse


class MessageResponse(CamelModel):
    message: str
