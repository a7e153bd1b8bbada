"""Auth Routes — anonymous sessions, signup/login, refresh, logout, upgrade, profile.

Invariants:
    - Every successful identity operation returns {tokens, user}
    - Bearer-protected routes resolve the caller via get_current_identity
    - Thin handlers: all rules live in IdentityLifecycleManager
"""

from fastapi import APIRouter, Depends, Path, status

from casecoach.api.dependencies import get_current_identity, get_lifecycle
from casecoach.core.identity import Identity
from casecoach.schemas.auth import (
    AnonymousSessionRequest, AuthResponse, CredentialsRequest, LoginRequest,
    LogoutRequest, MessageResponse, MetadataUpdateRequest, RefreshRequest,
    RefreshResponse, TokensResponse, UserResponse,
)
from casecoach.services.identity_lifecycle import AuthResult, IdentityLifecycleManager

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        tokens=TokensResponse.from_pair(result.tokens),
        user=UserResponse.from_identity(result.identity),
    )


@router.post("/anonymous-session", response_model=AuthResponse)
async def anonymous_session(
    body: AnonymousSessionRequest,
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    """Find-or-create the guest identity bound to a device id."""
    return _auth_response(await lifecycle.create_anonymous(body.device_id))


@router.post(
    "/signup", response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    body: CredentialsRequest,
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    return _auth_response(
        await lifecycle.signup(body.email, body.name, body.password),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    return _auth_response(await lifecycle.login(body.email, body.password))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest,
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    """Rotate a refresh token: the presented one is spent, a new pair is returned."""
    tokens = await lifecycle.refresh(body.refresh_token)
    return RefreshResponse(tokens=TokensResponse.from_pair(tokens))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    body: LogoutRequest | None = None,
    identity: Identity = Depends(get_current_identity),
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    """Revoke one device's refresh token, or all of them when none is given."""
    refresh_token = body.refresh_token if body else None
    await lifecycle.logout(identity, refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/upgrade/{device_alias}", response_model=AuthResponse)
async def upgrade(
    body: CredentialsRequest,
    device_alias: str = Path(min_length=1, max_length=200),
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    """Turn the device's guest identity into an email/password account, keeping its id."""
    return _auth_response(
        await lifecycle.upgrade(device_alias, body.email, body.name, body.password),
    )


@router.patch("/metadata", response_model=UserResponse)
async def update_metadata(
    body: MetadataUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    lifecycle: IdentityLifecycleManager = Depends(get_lifecycle),
):
    updated = await lifecycle.update_metadata(
        identity, body.metadata.model_dump(),
    )
    return UserResponse.from_identity(updated)


@router.get("/me", response_model=UserResponse)
async def me(identity: Identity = Depends(get_current_identity)):
    return UserResponse.from_identity(identity)
