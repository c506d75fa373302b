"""
FastAPI dependency that verifies HipChat signed requests.

Usage:
    @router.get("/glance")
    async def glance(params: SignedParams = Depends(require_signed_params)):
        ...

Verification failures raise SignedRequestError subclasses (401), rendered by
ErrorHandlerMiddleware.
"""

from fastapi import Depends, Request

from hipchat_addon.api.dependencies.addon import get_signed_param_validator
from hipchat_addon.services.signed_params import SignedParams, SignedParamValidator


async def require_signed_params(
    request: Request,
    validator: SignedParamValidator = Depends(get_signed_param_validator),
) -> SignedParams:
    """Verify the request's JWT and return its decoded context."""
    params = await validator.parse_request(request)
    request.state.signed_params = params
    return params
