"""
Credentials module for HipChat installation credentials.

This module provides:
- InstallRecord / TenantKey value types
- The CredentialStore contract
- Redaction helpers so secrets never reach the logs

Implementations live in hipchat_addon.credentials.memory_store and
hipchat_addon.credentials.sql_store and are imported explicitly, since both
depend on hipchat_addon.platform.errors, which itself imports redaction.

SECURITY:
- oauth_secret NEVER appears in logs or API responses
- Allowed in logs: oauth_id, group_id, room_id, capabilities_url
"""

from hipchat_addon.credentials.records import (
    NO_GROUP,
    NO_ROOM,
    InstallRecord,
    TenantKey,
)
from hipchat_addon.credentials.redaction import REDACTED_VALUE, redact_secrets
from hipchat_addon.credentials.store import CredentialStore

__all__ = [
    # Records
    "NO_GROUP",
    "NO_ROOM",
    "InstallRecord",
    "TenantKey",
    # Store
    "CredentialStore",
    # Redaction
    "REDACTED_VALUE",
    "redact_secrets",
]
