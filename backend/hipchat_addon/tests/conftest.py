"""
Shared pytest fixtures for add-on tests.

These fixtures are automatically available to all tests under tests/.
"""

import base64
import json
import threading
from typing import Optional, Sequence

import jwt
import pytest

from hipchat_addon.credentials.memory_store import InMemoryCredentialStore
from hipchat_addon.credentials.records import InstallRecord
from hipchat_addon.platform.errors import ExchangeError
from hipchat_addon.platform.tasks import InlineTaskRunner
from hipchat_addon.services.lifecycle import LifecycleController


# Long enough that PyJWT never warns about short HMAC keys
SECRET = "s3cr3t-shared-secret-for-hmac-signing-0123456789"
OTHER_SECRET = "another-shared-secret-for-hmac-signing-9876543210"


# ============================================================================
# FAKES
# ============================================================================

class FakeExchanger:
    """Records exchange calls and returns a scripted token."""

    def __init__(self, token: str = "tok1", error: Optional[Exception] = None):
        self.token = token
        self.error = error
        self.calls: list[tuple[str, str, list[str]]] = []
        self._lock = threading.Lock()

    def exchange(self, oauth_id: str, oauth_secret: str, scopes: Sequence[str]) -> str:
        with self._lock:
            self.calls.append((oauth_id, oauth_secret, list(scopes)))
        if self.error is not None:
            raise self.error
        return self.token


def make_record(
    oauth_id: str = "abc",
    oauth_secret: str = SECRET,
    group_id: int = 1,
    room_id: int = 0,
    capabilities_url: str = "https://api.hipchat.com/v2/capabilities",
) -> InstallRecord:
    return InstallRecord(
        capabilities_url=capabilities_url,
        oauth_id=oauth_id,
        oauth_secret=oauth_secret,
        group_id=group_id,
        room_id=room_id,
    )


def make_signed_token(
    issuer="abc",
    secret: str = SECRET,
    context=None,
    algorithm: str = "HS256",
    **extra_claims,
) -> str:
    claims = {"iss": issuer, "context": context if context is not None else {"room_id": 42, "user_tz": "UTC"}}
    claims.update(extra_claims)
    return jwt.encode(claims, secret, algorithm=algorithm)


def forge_token(header: dict, claims: dict, signature: bytes = b"not-a-signature") -> str:
    """Assemble a compact JWT by hand, for algorithms PyJWT should refuse."""
    def b64(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")

    return ".".join([
        b64(json.dumps(header).encode()),
        b64(json.dumps(claims).encode()),
        b64(signature),
    ])


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def memory_store():
    return InMemoryCredentialStore()


@pytest.fixture
def exchanger():
    return FakeExchanger()


@pytest.fixture
def controller(memory_store, exchanger):
    controller = LifecycleController(
        store=memory_store,
        exchanger=exchanger,
        task_runner=InlineTaskRunner(),
    )
    yield controller
    controller.shutdown()
