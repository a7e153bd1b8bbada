"""LiveKit Gateway — room-join credentials and room deletion for live interview rooms.

Invariants:
    - Credentials are signed with the API secret through livekit.api.AccessToken:
      identity = participant, video grant {roomJoin, room}, short TTL
    - delete_room is a single RoomService.DeleteRoom call; a Twirp error or transport
      failure raises LiveSessionError (callers decide whether to swallow)

Design Decisions:
    - The server API client is created on first use: it owns an aiohttp session,
      which must be opened inside the running loop
    - The server API client is injectable so tests never touch the network
"""

import logging
from datetime import timedelta

from livekit import api

from casecoach.core.errors import LiveSessionError, ErrorContext

logger = logging.getLogger(__name__)


class LiveKitGateway:
    """LiveSessionGateway backed by a LiveKit server."""

    def __init__(
        self,
        url: str,
        api_key: str,
        api_secret: str,
        credential_ttl_seconds: int = 600,
        api_client=None,
    ):
        self.url = url
        self.api_key = api_key
        self.api_secret = api_secret
        self.credential_ttl_seconds = credential_ttl_seconds
        self._api = api_client

    def _server_api(self):
        if self._api is None:
            self._api = api.LiveKitAPI(self.url, self.api_key, self.api_secret)
        return self._api

    def issue_credential(self, room_name: str, participant_name: str) -> dict:
        """Room-join token for one participant of one room."""
        token = (
            api.AccessToken(self.api_key, self.api_secret)
            .with_identity(participant_name)
            .with_name(participant_name)
            .with_grants(api.VideoGrants(room_join=True, room=room_name))
            .with_ttl(timedelta(seconds=self.credential_ttl_seconds))
            .to_jwt()
        )
        logger.info(
            f"Issued room credential for participant {participant_name}",
            extra={"room_name": room_name},
        )
        return {"token": token, "url": self.url}

    async def delete_room(self, room_name: str) -> None:
        ctx = ErrorContext(room_name=room_name)
        try:
            await self._server_api().room.delete_room(
                api.DeleteRoomRequest(room=room_name),
            )
        except api.TwirpError as e:
            raise LiveSessionError(
                f"Twirp {e.code}: {e.message}", "delete_room", context=ctx,
            )
        except Exception as e:
            raise LiveSessionError(str(e), "delete_room", context=ctx)
        logger.info("Room deleted", extra={"room_name": room_name})

    async def aclose(self) -> None:
        if self._api is not None:
            await self._api.aclose()
