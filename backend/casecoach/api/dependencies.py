"""Request Dependencies — bearer identity, capability header, per-request services.

Invariants:
    - get_current_identity: missing or invalid bearer → AuthError (401)
    - get_optional_identity: missing or invalid bearer → None (request continues unauthenticated)
    - Capability header absent → empty string, rejected by the orchestrator as NotFound
"""

import logging

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.core.errors import AuthError, AuthFailure
from casecoach.core.identity import Identity
from casecoach.infrastructure.database import get_db
from casecoach.services.identity_lifecycle import IdentityLifecycleManager
from casecoach.services.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
) -> IdentityLifecycleManager:
    return IdentityLifecycleManager(
        db, runtime.issuer, bcrypt_rounds=runtime.settings.bcrypt_rounds,
    )


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
) -> Identity:
    if credentials is None:
        raise AuthError(AuthFailure.INVALID_OR_EXPIRED_TOKEN)
    return await lifecycle.resolve_access(credentials.credentials)


async def get_optional_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
) -> Identity | None:
    if credentials is None:
        return None
    try:
        return await lifecycle.resolve_access(credentials.credentials)
    except AuthError:
        logger.info("Ignoring invalid bearer token on optional-auth route")
        return None


def get_capability_token(
    x_interview_token: str | None = Header(None, alias="X-Interview-Token"),
) -> str:
    return x_interview_token or ""
