"""Identity Lifecycle Manager — anonymous sessions, signup/login, upgrade, refresh, logout.

Invariants:
    - At most one authenticated user per email: checked up front, enforced by the
      partial unique index when two signups race (loser gets ConflictError)
    - create_anonymous is find-or-create: same alias -> same id until the alias is upgraded
    - upgrade mutates the anonymous row in place; the id (and every interview owner_id) is kept
    - login failures are indistinguishable to the caller (missing user, inactive, bad password)
    - refresh follows verify -> membership -> atomic remove -> issue; any failure collapses
      into AuthError(INVALID_OR_EXPIRED_TOKEN)
    - Every issued refresh token is registered before the transaction commits

Design Decisions:
    - Reuse of an already-rotated refresh token is rejected but does not revoke the
      user's other refresh tokens
    - Missing-user logins still pay for one bcrypt check to keep timing uniform
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.core.domain_types import (
    IdentityKind, ANONYMOUS_NAME_PREFIX, ANONYMOUS_NAME_ALIAS_CHARS,
)
from casecoach.core.errors import AuthError, AuthFailure, ConflictError, NotFoundError
from casecoach.core.identity import Identity, identity_from_record
from casecoach.models.user import User
from casecoach.services.passwords import hash_password, verify_password, DEFAULT_ROUNDS
from casecoach.services.refresh_registry import RefreshTokenRegistry
from casecoach.services.repositories import UserRepository
from casecoach.services.token_issuer import TokenIssuer, TokenPair

logger = logging.getLogger(__name__)

# Checked against when the email is unknown; never matches a real password.
_TIMING_PLACEHOLDER_PASSWORD = "placeholder-password-for-uniform-timing"


@dataclass(frozen=True)
class AuthResult:
    tokens: TokenPair
    identity: Identity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def find_or_create_anonymous(db: AsyncSession, device_alias: str) -> User:
    """Anonymous row for the alias, created if absent. Flushes, never commits."""
    users = UserRepository(db)
    record = await users.find_anonymous(device_alias)
    if record is not None:
        record.last_login_at = _utcnow()
        return record
    record = User(
        kind=IdentityKind.ANONYMOUS.value,
        device_alias=device_alias,
        name=f"{ANONYMOUS_NAME_PREFIX}{device_alias[:ANONYMOUS_NAME_ALIAS_CHARS]}",
        last_login_at=_utcnow(),
    )
    try:
        await users.add(record)
    except IntegrityError:
        # Concurrent request created the alias first; use its row.
        await db.rollback()
        record = await users.find_anonymous(device_alias)
        if record is None:
            raise
        record.last_login_at = _utcnow()
        return record
    logger.info("Anonymous user created", extra={"user_id": str(record.id)})
    return record


async def resolve_device_owner(db: AsyncSession, device_alias: str) -> User:
    """Owner for work arriving from a device: the upgraded account or guest already
    linked to the alias, else a new guest. Flushes, never commits."""
    record = await UserRepository(db).find_by_device(device_alias)
    if record is not None:
        return record
    return await find_or_create_anonymous(db, device_alias)


class IdentityLifecycleManager:
    """Per-request service: one AsyncSession, one transaction per operation."""

    _placeholder_hashes: dict[int, str] = {}

    def __init__(
        self,
        db: AsyncSession,
        issuer: TokenIssuer,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        registry: RefreshTokenRegistry | None = None,
    ):
        self.db = db
        self.issuer = issuer
        self.bcrypt_rounds = bcrypt_rounds
        self.users = UserRepository(db)
        self.registry = registry or RefreshTokenRegistry(db)

    # ─── Anonymous ───────────────────────────────────────────────

    async def create_anonymous(self, device_alias: str) -> AuthResult:
        record = await find_or_create_anonymous(self.db, device_alias)
        result = await self._issue(record)
        await self.db.commit()
        return result

    # ─── Authenticated ───────────────────────────────────────────

    async def signup(self, email: str, name: str, password: str) -> AuthResult:
        logger.info("Signup attempt")
        if await self.users.find_authenticated(email) is not None:
            raise ConflictError()
        record = User(
            kind=IdentityKind.AUTHENTICATED.value,
            email=email,
            name=name,
            password_hash=await hash_password(password, self.bcrypt_rounds),
            last_login_at=_utcnow(),
        )
        try:
            await self.users.add(record)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError()
        result = await self._issue(record)
        await self.db.commit()
        logger.info("User created", extra={"user_id": str(record.id)})
        return result

    async def login(self, email: str, password: str) -> AuthResult:
        record = await self.users.find_authenticated(email)
        stored_hash = record.password_hash if record else await self._placeholder_hash()
        password_ok = await verify_password(password, stored_hash)

        if record is None or not password_ok:
            self._reject_login(AuthFailure.INVALID_CREDENTIALS, record)
        if not record.is_active:
            self._reject_login(AuthFailure.INACTIVE_ACCOUNT, record)

        record.last_login_at = _utcnow()
        result = await self._issue(record)
        await self.db.commit()
        logger.info("Login successful", extra={"user_id": str(record.id)})
        return result

    def _reject_login(self, reason: AuthFailure, record: User | None) -> None:
        logger.warning(
            "Login rejected",
            extra={
                "reason": reason.value,
                "user_id": str(record.id) if record else None,
            },
        )
        raise AuthError(reason)

    async def _placeholder_hash(self) -> str:
        cached = self._placeholder_hashes.get(self.bcrypt_rounds)
        if cached is None:
            cached = await hash_password(_TIMING_PLACEHOLDER_PASSWORD, self.bcrypt_rounds)
            self._placeholder_hashes[self.bcrypt_rounds] = cached
        return cached

    async def upgrade(
        self, device_alias: str, email: str, name: str, password: str,
    ) -> AuthResult:
        record = await self.users.find_anonymous(device_alias)
        if record is None:
            raise NotFoundError("Anonymous user")
        if await self.users.find_authenticated(email) is not None:
            raise ConflictError()

        password_hash = await hash_password(password, self.bcrypt_rounds)
        now = _utcnow()
        record.kind = IdentityKind.AUTHENTICATED.value
        record.email = email
        record.name = name
        record.password_hash = password_hash
        record.upgraded_at = now
        record.last_login_at = now
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError()

        linked = await self.users.count_interviews(record.id)
        logger.info(
            f"Account upgraded, linked interviews: {linked}",
            extra={"user_id": str(record.id)},
        )
        result = await self._issue(record)
        await self.db.commit()
        return result

    # ─── Tokens ──────────────────────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenPair:
        claims = self.issuer.verify_refresh(refresh_token)
        if not await self.registry.validate(claims.user_id, refresh_token):
            self._reject_refresh("not registered or expired", claims.user_id)

        record = await self.users.get(claims.user_id)
        if record is None or not record.is_active:
            self._reject_refresh("user missing or inactive", claims.user_id)

        if not await self.registry.remove(claims.user_id, refresh_token):
            self._reject_refresh("already redeemed", claims.user_id)

        result = await self._issue(record)
        await self.db.commit()
        return result.tokens

    def _reject_refresh(self, why: str, user_id) -> None:
        logger.warning(
            f"Refresh rejected: {why}",
            extra={
                "user_id": str(user_id),
                "reason": AuthFailure.INVALID_OR_EXPIRED_TOKEN.value,
            },
        )
        raise AuthError(AuthFailure.INVALID_OR_EXPIRED_TOKEN)

    async def logout(self, identity: Identity, refresh_token: str | None = None) -> None:
        """Revoke one device (token given) or every device (no token)."""
        if refresh_token:
            claims = self.issuer.verify_refresh(refresh_token)
            if claims.user_id != identity.id:
                self._reject_refresh("token belongs to another user", identity.id)
            if not await self.registry.remove(identity.id, refresh_token):
                self._reject_refresh("not registered or expired", identity.id)
            logger.info("Logout (single device)", extra={"user_id": str(identity.id)})
        else:
            removed = await self.registry.remove_all(identity.id)
            logger.info(
                f"Logout (all devices, {removed} tokens revoked)",
                extra={"user_id": str(identity.id)},
            )
        await self.db.commit()

    async def resolve_access(self, access_token: str) -> Identity:
        """Bearer-token check: valid signature, unexpired, user exists and is active."""
        claims = self.issuer.verify_access(access_token)
        record = await self.users.get(claims.user_id)
        if record is None or not record.is_active:
            raise AuthError(AuthFailure.INVALID_OR_EXPIRED_TOKEN)
        return identity_from_record(record)

    # ─── Profile ─────────────────────────────────────────────────

    async def update_metadata(self, identity: Identity, metadata: dict) -> Identity:
        record = await self.users.get(identity.id)
        if record is None:
            raise NotFoundError("User")
        record.consent_metadata = {**(record.consent_metadata or {}), **metadata}
        await self.db.commit()
        logger.info("Metadata updated", extra={"user_id": str(record.id)})
        return identity_from_record(record)

    async def _issue(self, record: User) -> AuthResult:
        identity = identity_from_record(record)
        tokens = self.issuer.issue(identity)
        await self.registry.add(
            record.id, tokens.refresh_token, self.issuer.refresh_ttl_seconds,
        )
        return AuthResult(tokens=tokens, identity=identity)
