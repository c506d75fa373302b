"""
Installation lifecycle controller.

Orchestrates the installed / updated / removed webhooks and serves access
tokens for tenants.

Per-tenant states:
    Uninstalled -> Installed -> TokenAcquired
    TokenAcquired falls back to Installed when the cached token is lost or
    a refetch fails; the installation itself stays valid.

Install flow:
1. Decode the webhook body (DecodeError)
2. Persist credentials (StoreWriteError)
3. Respond immediately; token acquisition runs in the background
4. On token success, each installation callback fires as its own task

Background failures are logged and swallowed: the credential record is
already durable and a later get_token_for_tenant() will refetch.

SECURITY:
- oauth_secret and access tokens are never logged
"""

import logging
from typing import Callable, Optional, Sequence

from hipchat_addon.credentials.install_payload import decode_install_payload
from hipchat_addon.credentials.records import NO_GROUP, NO_ROOM, InstallRecord, TenantKey
from hipchat_addon.credentials.store import CredentialStore
from hipchat_addon.integrations.hipchat.client import TokenExchanger
from hipchat_addon.platform.errors import (
    CredentialsNotFoundError,
    ExchangeError,
    StoreError,
)
from hipchat_addon.platform.tasks import BackgroundTaskRunner
from hipchat_addon.services.token_cache import TokenCache

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class LifecycleController:
    """
    Per-process owner of the token cache and the lifecycle callbacks.

    Callbacks are zero-argument callables. They run on background workers
    with no ordering among themselves and no completion guarantee before
    shutdown.
    """

    def __init__(
        self,
        store: CredentialStore,
        exchanger: TokenExchanger,
        task_runner: Optional[BackgroundTaskRunner] = None,
        scopes: Sequence[str] = (),
        token_cache: Optional[TokenCache] = None,
    ):
        self.store = store
        self.exchanger = exchanger
        self.scopes = list(scopes)
        self.tokens = token_cache if token_cache is not None else TokenCache()
        self._tasks = task_runner or BackgroundTaskRunner()
        self._installation_callbacks: list[Callback] = []
        self._updated_callbacks: list[Callback] = []
        self._removed_callbacks: list[Callback] = []

    # ------------------------------------------------------------------
    # Callback registration
    # ------------------------------------------------------------------

    def add_installation_callback(self, callback: Callback) -> None:
        """Called after an installation obtained its first token."""
        self._installation_callbacks.append(callback)

    def add_updated_callback(self, callback: Callback) -> None:
        """Called when an installation is updated."""
        self._updated_callbacks.append(callback)

    def add_removed_callback(self, callback: Callback) -> None:
        """Called when the add-on is uninstalled."""
        self._removed_callbacks.append(callback)

    def _fire(self, callbacks: list[Callback], event: str) -> None:
        for callback in list(callbacks):
            self._tasks.submit(callback, name=f"{event}_callback")

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def on_installed(self, raw_payload: bytes) -> InstallRecord:
        """
        Handle the installed webhook.

        Returns once the record is durable; token acquisition is scheduled
        in the background.

        Raises:
            DecodeError: Malformed body
            StoreWriteError: Credentials could not be saved
        """
        record = decode_install_payload(raw_payload)

        self.store.save_credentials(record)

        logger.info(
            "Installation received",
            extra={
                "oauth_id": record.oauth_id,
                "tenant_key": str(record.tenant_key),
            },
        )

        # Drop any token a previous client left cached for this scope
        self.tokens.invalidate(record.tenant_key)

        self._tasks.submit(self.complete_installation, record, name="complete_installation")
        return record

    def complete_installation(self, record: InstallRecord) -> bool:
        """
        Acquire the first token for a new installation and fire callbacks.

        Best-effort: failures are logged, not retried, and do not roll back
        the installation.

        Returns:
            True if a token was obtained
        """
        logger.info("Completing installation", extra={"oauth_id": record.oauth_id})

        try:
            self._fetch_token(record)
        except CredentialsNotFoundError:
            logger.info(
                "Installation removed before its token arrived",
                extra={"oauth_id": record.oauth_id, "tenant_key": str(record.tenant_key)},
            )
            return False
        except ExchangeError as e:
            logger.warning(
                "Error requesting token; installation kept",
                extra={
                    "oauth_id": record.oauth_id,
                    "tenant_key": str(record.tenant_key),
                    "error_code": e.code,
                    "reason": e.message,
                },
            )
            return False

        self._fire(self._installation_callbacks, "installation")
        return True

    def on_updated(self, payload: Optional[bytes] = None) -> None:
        """
        Handle the updated webhook.

        Acknowledge and fire callbacks only; credentials are not re-saved.
        """
        logger.info("Installation updated", extra={"has_payload": bool(payload)})
        self._fire(self._updated_callbacks, "updated")

    def on_removed(self, oauth_id: str) -> list[TenantKey]:
        """
        Handle the uninstall webhook for oauth_id.

        Returns:
            Tenant keys whose cached token was invalidated

        Raises:
            StoreWriteError: Credentials could not be deleted
        """
        # Collected before the delete; the row is gone afterwards
        try:
            known_keys = self.store.get_tenant_keys(oauth_id)
        except StoreError as e:
            logger.warning(
                "Could not list tenant keys before uninstall",
                extra={"oauth_id": oauth_id, "error_code": e.code},
            )
            known_keys = []

        self.store.delete_credentials(oauth_id)

        removed = self.tokens.invalidate_client(oauth_id, extra_keys=known_keys)

        logger.info(
            "Installation removed",
            extra={
                "oauth_id": oauth_id,
                "invalidated_tokens": len(removed),
            },
        )

        self._fire(self._removed_callbacks, "removed")
        return removed

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def get_token_for_tenant(self, room_id: int) -> str:
        """
        Return an access token for the installation owning room_id.

        Raises:
            CredentialsNotFoundError: No installation for the room
            StoreReadError: Store failure
            ExchangeError: Token exchange failed
        """
        # Room 0 marks group-scoped installs; it never identifies a room
        if room_id == NO_ROOM:
            raise CredentialsNotFoundError(f"room {room_id}")

        group_id = self.store.get_group_id(room_id)
        if group_id == NO_GROUP:
            raise CredentialsNotFoundError(f"room {room_id}")

        key = TenantKey(group_id=group_id, room_id=room_id)

        token, found = self.tokens.get(key)
        if found:
            return token

        # Concurrent cold lookups for one tenant share a single exchange
        with self.tokens.locked(key):
            token, found = self.tokens.get(key)
            if found:
                return token

            record = self.store.get_credentials(key)
            if record is None:
                raise CredentialsNotFoundError(str(key))
            return self._fetch_token(record)

    def _fetch_token(self, record: InstallRecord) -> str:
        """
        Exchange credentials and cache the token under the record's tenant key.

        The token is cached only if the record still owns the tenant once
        the exchange returns. The check and the put happen under the key
        lock, and on_removed() invalidates under the same lock after its
        delete, so a removed client never leaves a token behind.

        Raises:
            ExchangeError: Exchange failed or returned an empty token
            CredentialsNotFoundError: The installation was removed or
                replaced while the exchange was in flight
            StoreReadError: Store failure during the ownership check
        """
        token = self.exchanger.exchange(record.oauth_id, record.oauth_secret, list(self.scopes))
        if not token:
            raise ExchangeError("Token exchange returned an empty token")

        key = record.tenant_key
        with self.tokens.locked(key):
            current = self.store.get_credentials(key)
            if current is None or current.oauth_id != record.oauth_id:
                logger.warning(
                    "Discarding token for an installation that no longer owns its tenant",
                    extra={"oauth_id": record.oauth_id, "tenant_key": str(key)},
                )
                raise CredentialsNotFoundError(str(key))
            self.tokens.put(key, token, oauth_id=record.oauth_id)
        logger.info(
            "Token cached",
            extra={"oauth_id": record.oauth_id, "tenant_key": str(record.tenant_key)},
        )
        return token

    def shutdown(self, wait: bool = False) -> None:
        """Release background workers; pending callbacks are not awaited."""
        self._tasks.shutdown(wait=wait)
