"""
HipChat API client for OAuth client-credentials exchange.

Handles:
- Exchanging an installation's client id/secret for a bearer access token
- Fetching the capabilities document advertised at install time

SECURITY:
- Client secrets are sent via HTTP basic auth only, never logged
- Access tokens are never logged

No retry policy: exchange failures surface as ExchangeError.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import httpx

from hipchat_addon.platform.errors import ExchangeError

logger = logging.getLogger(__name__)

HIPCHAT_API_BASE = "https://api.hipchat.com/v2"
DEFAULT_TOKEN_URL = f"{HIPCHAT_API_BASE}/oauth/token"


@dataclass
class ClientCredentials:
    """OAuth client id/secret pair of one installation."""
    client_id: str
    client_secret: str = field(repr=False)


@dataclass
class OAuthToken:
    """Token endpoint response."""
    access_token: str = field(repr=False)
    expires_in: Optional[int] = None
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None


@dataclass
class OAuth2Provider:
    authorization_url: Optional[str] = None
    token_url: Optional[str] = None


@dataclass
class Capabilities:
    """Subset of the HipChat capabilities document used by the add-on."""
    oauth2_provider: OAuth2Provider


class TokenExchanger(Protocol):
    """Anything that can trade client credentials for an access token."""

    def exchange(self, oauth_id: str, oauth_secret: str, scopes: Sequence[str]) -> str:
        ...


class HipChatClient:
    """
    Client for the HipChat OAuth token endpoint.

    Synchronous and blocking; the lifecycle controller calls it from
    background workers or request threads.
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize client.

        Args:
            token_url: OAuth token endpoint
            timeout: Seconds before an outbound call is abandoned
            http_client: Pre-built httpx client (tests inject a MockTransport)
        """
        self.token_url = token_url
        self._http_client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client."""
        self._http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def generate_token(
        self,
        credentials: ClientCredentials,
        scopes: Sequence[str] = (),
    ) -> OAuthToken:
        """
        Perform a client-credentials exchange.

        Args:
            credentials: Installation client id and secret
            scopes: Requested scopes, possibly empty

        Returns:
            OAuthToken with the access token

        Raises:
            ExchangeError: On transport failure, non-2xx status or bad payload
        """
        data = {"grant_type": "client_credentials"}
        if scopes:
            data["scope"] = " ".join(scopes)

        try:
            response = self._http_client.post(
                self.token_url,
                data=data,
                auth=(credentials.client_id, credentials.client_secret),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "HipChat token exchange rejected",
                extra={
                    "oauth_id": credentials.client_id,
                    "status_code": e.response.status_code,
                },
            )
            raise ExchangeError(
                f"Token endpoint returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "HipChat token exchange failed",
                extra={"oauth_id": credentials.client_id, "error_type": type(e).__name__},
            )
            raise ExchangeError(f"Token endpoint unreachable: {type(e).__name__}") from e
        except ValueError as e:
            raise ExchangeError("Token endpoint returned invalid JSON") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise ExchangeError("No access_token in token response")

        logger.info(
            "Obtained HipChat access token",
            extra={
                "oauth_id": credentials.client_id,
                "expires_in": payload.get("expires_in"),
                "scope": payload.get("scope"),
            },
        )

        return OAuthToken(
            access_token=access_token,
            expires_in=payload.get("expires_in"),
            group_id=payload.get("group_id"),
            group_name=payload.get("group_name"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type"),
        )

    def exchange(self, oauth_id: str, oauth_secret: str, scopes: Sequence[str]) -> str:
        """TokenExchanger entry point: return only the access token string."""
        token = self.generate_token(ClientCredentials(oauth_id, oauth_secret), scopes)
        return token.access_token

    def get_capabilities(self, url: str) -> Capabilities:
        """
        Fetch the capabilities document advertised in the install payload.

        Raises:
            ExchangeError: On transport failure, non-2xx status or bad payload
        """
        try:
            response = self._http_client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ExchangeError(
                f"Capabilities endpoint returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExchangeError(f"Capabilities endpoint unreachable: {type(e).__name__}") from e
        except ValueError as e:
            raise ExchangeError("Capabilities endpoint returned invalid JSON") from e

        provider = payload.get("oauth2Provider") if isinstance(payload, dict) else None
        provider = provider if isinstance(provider, dict) else {}
        return Capabilities(
            oauth2_provider=OAuth2Provider(
                authorization_url=provider.get("authorizationUrl"),
                token_url=provider.get("tokenUrl"),
            )
        )
