"""
In-memory credential store.

Same semantics as SqlCredentialStore, including the unique (group, room)
constraint. Used for local development and tests; nothing survives a restart.
"""

import logging
import threading
from typing import Optional

from hipchat_addon.credentials.records import NO_GROUP, NO_ROOM, InstallRecord, TenantKey
from hipchat_addon.credentials.store import CredentialStore
from hipchat_addon.platform.errors import StoreWriteError

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(CredentialStore):
    """Lock-guarded dict keyed by oauth_id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, InstallRecord] = {}

    def save_credentials(self, record: InstallRecord) -> None:
        with self._lock:
            for existing in self._records.values():
                if existing.oauth_id == record.oauth_id:
                    continue
                if existing.tenant_key == record.tenant_key:
                    logger.warning(
                        "Tenant scope already installed by another client",
                        extra={
                            "oauth_id": record.oauth_id,
                            "tenant_key": str(record.tenant_key),
                        },
                    )
                    raise StoreWriteError(
                        f"Tenant {record.tenant_key} is already installed"
                    )
            self._records[record.oauth_id] = record

    def delete_credentials(self, oauth_id: str) -> None:
        with self._lock:
            self._records.pop(oauth_id, None)

    def get_credentials(self, tenant_key: TenantKey) -> Optional[InstallRecord]:
        with self._lock:
            for record in self._records.values():
                if record.tenant_key == tenant_key:
                    return record
        return None

    def get_group_id(self, room_id: int) -> int:
        if room_id == NO_ROOM:
            return NO_GROUP
        with self._lock:
            for record in self._records.values():
                if record.room_id == room_id:
                    return record.group_id
        return NO_GROUP

    def get_oauth_secret(self, oauth_id: str) -> Optional[str]:
        with self._lock:
            record = self._records.get(oauth_id)
        return record.oauth_secret if record else None

    def get_tenant_keys(self, oauth_id: str) -> list[TenantKey]:
        with self._lock:
            record = self._records.get(oauth_id)
        return [record.tenant_key] if record else []

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
