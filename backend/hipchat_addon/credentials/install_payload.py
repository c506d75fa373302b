"""
Installation webhook payload schema.

HipChat posts this body to /installed:
    {"capabilitiesUrl": "...", "oauthId": "...", "oauthSecret": "...",
     "groupId": 1, "roomId": 2}

roomId is absent (or null) for group-scoped installations.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hipchat_addon.credentials.records import NO_ROOM, InstallRecord
from hipchat_addon.platform.errors import DecodeError


class InstallPayload(BaseModel):
    """Body of the installed webhook."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    capabilities_url: str = Field(default="", alias="capabilitiesUrl")
    oauth_id: str = Field(alias="oauthId", min_length=1)
    oauth_secret: str = Field(alias="oauthSecret", min_length=1, repr=False)
    group_id: int = Field(alias="groupId", ge=0)
    room_id: Optional[int] = Field(default=None, alias="roomId", ge=0)

    def to_record(self) -> InstallRecord:
        return InstallRecord(
            capabilities_url=self.capabilities_url,
            oauth_id=self.oauth_id,
            oauth_secret=self.oauth_secret,
            group_id=self.group_id,
            room_id=self.room_id if self.room_id is not None else NO_ROOM,
        )


def decode_install_payload(raw_payload: bytes) -> InstallRecord:
    """
    Parse a raw webhook body into an InstallRecord.

    Raises:
        DecodeError: On malformed JSON or missing/mistyped fields
    """
    try:
        payload = InstallPayload.model_validate_json(raw_payload)
    except ValidationError as e:
        # Field locations only; input values may contain the secret
        fields = sorted(
            {".".join(str(p) for p in err["loc"]) for err in e.errors()} - {""}
        )
        raise DecodeError(
            f"There was an error deserializing the data: invalid fields {fields}"
            if fields else "There was an error deserializing the data."
        ) from e
    return payload.to_record()
