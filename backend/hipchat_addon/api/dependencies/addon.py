"""Accessors for the add-on components attached to app.state."""

from fastapi import HTTPException, Request, status

from hipchat_addon.services.lifecycle import LifecycleController
from hipchat_addon.services.signed_params import SignedParamValidator


def get_lifecycle_controller(request: Request) -> LifecycleController:
    """Get the lifecycle controller from application state."""
    controller = getattr(request.app.state, "lifecycle", None)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Add-on lifecycle not configured",
        )
    return controller


def get_signed_param_validator(request: Request) -> SignedParamValidator:
    """Get the signed request validator from application state."""
    validator = getattr(request.app.state, "signed_params", None)
    if validator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Signed request validation not configured",
        )
    return validator
