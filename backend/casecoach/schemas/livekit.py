"""Live Room Schemas — room credential request/response."""

from pydantic import Field

from casecoach.schemas.base import CamelModel


class RoomCredentialRequest(CamelModel):
    room_name: str = Field(min_length=1, max_length=200)
    participant_name: str = Field(min_length=1, max_length=200)


class RoomCredentialResponse(CamelModel):
    token: str
    url: str
