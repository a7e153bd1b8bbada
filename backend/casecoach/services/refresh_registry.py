"""Refresh Token Registry — per-user expiring set of redeemable refresh tokens.

Invariants:
    - Member = SHA-256 of the token, score = absolute expiry (epoch ms)
    - validate() is true iff the member is present AND its score is in the future
    - Every operation is one SQL statement; no read-then-write sequences
    - remove() reports whether this call removed the member: concurrent redeemers
      of one token see exactly one True
    - add() purges the user's expired members, so an idle user's set empties itself
      once its longest-lived member expires

Design Decisions:
    - Lives in the primary database next to users: revocation survives restarts and
      needs no second store
    - Caller owns the transaction (commit happens in IdentityLifecycleManager)
"""

import hashlib
import time
from typing import Callable
from uuid import UUID

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.models.refresh_token import RefreshToken


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RefreshTokenRegistry:
    """Revocable refresh-token set, scoped per user."""

    def __init__(self, db: AsyncSession, clock: Callable[[], float] = time.time):
        self.db = db
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def add(self, user_id: UUID, token: str, ttl_seconds: int) -> None:
        now_ms = self._now_ms()
        await self.db.execute(
            delete(RefreshToken).where(and_(
                RefreshToken.user_id == user_id,
                RefreshToken.expires_at_ms <= now_ms,
            )),
        )
        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=token_digest(token),
            expires_at_ms=now_ms + ttl_seconds * 1000,
        ))
        await self.db.flush()

    async def validate(self, user_id: UUID, token: str) -> bool:
        result = await self.db.execute(
            select(RefreshToken.expires_at_ms).where(and_(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == token_digest(token),
            )),
        )
        expires_at_ms = result.scalar_one_or_none()
        return expires_at_ms is not None and expires_at_ms > self._now_ms()

    async def remove(self, user_id: UUID, token: str) -> bool:
        """Single-device revocation. True iff this call removed a live member."""
        result = await self.db.execute(
            delete(RefreshToken).where(and_(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == token_digest(token),
                RefreshToken.expires_at_ms > self._now_ms(),
            )),
        )
        return result.rowcount == 1

    async def remove_all(self, user_id: UUID) -> int:
        """All-devices revocation. Returns how many members were removed."""
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id),
        )
        return result.rowcount
