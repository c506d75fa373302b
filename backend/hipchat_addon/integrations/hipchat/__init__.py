"""HipChat REST API integration."""

from hipchat_addon.integrations.hipchat.client import (
    Capabilities,
    ClientCredentials,
    HipChatClient,
    OAuthToken,
    TokenExchanger,
)

__all__ = [
    "Capabilities",
    "ClientCredentials",
    "HipChatClient",
    "OAuthToken",
    "TokenExchanger",
]
