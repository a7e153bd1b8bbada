"""Token Issuer — signs and verifies access/refresh JWT pairs.

Invariants:
    - Access tokens signed with the access secret, refresh tokens with the refresh secret
    - typ claim pins each token to its role; a refresh token never verifies as access
    - Every verification failure raises AuthError(INVALID_OR_EXPIRED_TOKEN) — no detail leaks
    - jti is random per token: two pairs issued in the same second still differ
"""

import logging
import time
import uuid
from dataclasses import dataclass

import jwt

from casecoach.core.domain_types import TokenType
from casecoach.core.errors import AuthError, AuthFailure
from casecoach.core.identity import (
    Identity, TokenClaims, claims_for, claims_to_payload, claims_from_payload,
)

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_response(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


class TokenIssuer:
    """Stateless JWT signer/verifier. Registry bookkeeping lives elsewhere."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl_seconds: int = 30 * 60,
        refresh_ttl_seconds: int = 7 * 24 * 60 * 60,
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self._secrets = {
            TokenType.ACCESS: access_secret,
            TokenType.REFRESH: refresh_secret,
        }
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    def issue(self, identity: Identity) -> TokenPair:
        claims = claims_for(identity)
        return TokenPair(
            access_token=self._sign(claims, TokenType.ACCESS, self.access_ttl_seconds),
            refresh_token=self._sign(claims, TokenType.REFRESH, self.refresh_ttl_seconds),
        )

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.REFRESH)

    def _sign(self, claims: TokenClaims, token_type: TokenType, ttl_seconds: int) -> str:
        now = int(time.time())
        payload = {
            **claims_to_payload(claims),
            "typ": token_type.value,
            "iat": now,
            "exp": now + ttl_seconds,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secrets[token_type], algorithm=ALGORITHM)

    def _verify(self, token: str, token_type: TokenType) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat", "typ"]},
            )
            if payload.get("typ") != token_type.value:
                raise ValueError(f"expected {token_type.value} token")
            return claims_from_payload(payload)
        except (jwt.PyJWTError, ValueError) as e:
            logger.info(
                f"{token_type.value} token rejected: {type(e).__name__}",
                extra={"reason": AuthFailure.INVALID_OR_EXPIRED_TOKEN.value},
            )
            raise AuthError(AuthFailure.INVALID_OR_EXPIRED_TOKEN)
