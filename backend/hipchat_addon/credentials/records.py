"""
Installation record and tenant key value types.

SECURITY:
- oauth_secret is excluded from repr() and from redacted() output
- InstallRecord is never mutated in place; re-install replaces it
"""

from dataclasses import dataclass, field
from typing import Any

from hipchat_addon.credentials.redaction import REDACTED_VALUE

# Returned by CredentialStore.get_group_id when a room has no installation.
# A zero group id is never a valid tenant.
NO_GROUP = 0

# Room id of a group-scoped installation
NO_ROOM = 0

UINT32_MAX = 2**32 - 1


@dataclass(frozen=True)
class TenantKey:
    """Composite (group, room) identifier scoping credentials and cached tokens."""
    group_id: int
    room_id: int = NO_ROOM

    def __str__(self) -> str:
        return f"{self.group_id}:{self.room_id}"

    @classmethod
    def parse(cls, value: str) -> "TenantKey":
        """Parse the "group:room" string form."""
        group, sep, room = value.partition(":")
        if not sep:
            raise ValueError(f"Tenant key must look like 'group:room', got {value!r}")
        group_id, room_id = int(group), int(room)
        if group_id < 0 or room_id < 0:
            raise ValueError(f"Tenant key components must be unsigned, got {value!r}")
        return cls(group_id=group_id, room_id=room_id)


@dataclass(frozen=True)
class InstallRecord:
    """One tenant installation, as sent to /installed."""
    capabilities_url: str
    oauth_id: str
    oauth_secret: str = field(repr=False)
    group_id: int
    room_id: int = NO_ROOM

    @property
    def tenant_key(self) -> TenantKey:
        return TenantKey(group_id=self.group_id, room_id=self.room_id)

    @property
    def is_room_scoped(self) -> bool:
        return self.room_id != NO_ROOM

    def redacted(self) -> dict[str, Any]:
        """Log-safe representation."""
        return {
            "capabilities_url": self.capabilities_url,
            "oauth_id": self.oauth_id,
            "oauth_secret": REDACTED_VALUE,
            "group_id": self.group_id,
            "room_id": self.room_id,
        }
