"""Live Room Routes — room-join credentials.

Invariants:
    - Issuing a credential (re)starts the room's reclamation timer
"""

import logging

from fastapi import APIRouter, Depends

from casecoach.schemas.livekit import RoomCredentialRequest, RoomCredentialResponse
from casecoach.services.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/livekit", tags=["livekit"])


@router.post("/token", response_model=RoomCredentialResponse)
async def create_room_token(
    body: RoomCredentialRequest,
    runtime: Runtime = Depends(get_runtime),
):
    credential = runtime.gateway.issue_credential(body.room_name, body.participant_name)
    runtime.room_timer.start(body.room_name)
    logger.info("Room credential issued", extra={"room_name": body.room_name})
    return credential
