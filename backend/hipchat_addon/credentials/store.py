"""
Credential store contract consumed by the lifecycle controller and the
signed request validator.

The store exclusively owns InstallRecord durability. Every operation is
atomic in isolation; the core never wraps calls in cross-call transactions.

Keying:
- oauth_id is globally unique and is the delete key
- (group_id, room_id) is unique when room_id is non-zero
- get_credentials takes a TenantKey; a group-scoped install is TenantKey(group, 0)

Sharp edge:
- get_group_id returns NO_GROUP (0) with no error when the room is unknown.
  Callers MUST treat NO_GROUP as "not found", never as a tenant.
"""

from abc import ABC, abstractmethod
from typing import Optional

from hipchat_addon.credentials.records import InstallRecord, TenantKey


class CredentialStore(ABC):
    """Durable keyed storage for per-tenant OAuth credentials."""

    @abstractmethod
    def save_credentials(self, record: InstallRecord) -> None:
        """
        Insert or replace the record keyed by record.oauth_id.

        Re-installing the same oauth_id replaces the stored credentials.

        Raises:
            StoreWriteError: On constraint violation or connectivity failure
        """

    @abstractmethod
    def delete_credentials(self, oauth_id: str) -> None:
        """
        Remove the record for oauth_id. Succeeds when nothing matches.

        Raises:
            StoreWriteError: On connectivity failure
        """

    @abstractmethod
    def get_credentials(self, tenant_key: TenantKey) -> Optional[InstallRecord]:
        """
        Load the record installed for tenant_key.

        Returns:
            The record, or None when no installation matches

        Raises:
            StoreReadError: On connectivity failure
        """

    @abstractmethod
    def get_group_id(self, room_id: int) -> int:
        """
        Resolve the group owning a room-scoped installation.

        Returns:
            The group id, or NO_GROUP when the room is not installed.
            NO_ROOM (0) always yields NO_GROUP: group-scoped installs are
            not reachable through a room lookup.

        Raises:
            StoreReadError: On connectivity failure
        """

    @abstractmethod
    def get_oauth_secret(self, oauth_id: str) -> Optional[str]:
        """
        Return the shared secret for an OAuth client id.

        Used only for signed request verification. Callers must not cache
        the result so that secret rotation takes effect immediately.

        Returns:
            The secret, or None when oauth_id is not installed

        Raises:
            StoreReadError: On connectivity failure
        """

    @abstractmethod
    def get_tenant_keys(self, oauth_id: str) -> list[TenantKey]:
        """
        List the tenant keys installed by an OAuth client.

        Returns:
            Possibly empty list

        Raises:
            StoreReadError: On connectivity failure
        """
