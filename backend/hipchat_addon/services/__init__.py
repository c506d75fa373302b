"""Services: token cache, lifecycle controller, signed request validation."""

from hipchat_addon.services.lifecycle import LifecycleController
from hipchat_addon.services.signed_params import SignedParams, SignedParamValidator
from hipchat_addon.services.token_cache import TokenCache

__all__ = [
    "LifecycleController",
    "SignedParams",
    "SignedParamValidator",
    "TokenCache",
]
