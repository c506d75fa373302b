"""
HipChat add-on lifecycle webhooks.

Routes:
- POST   /installed            install (save credentials, token in background)
- DELETE /installed/{oauth_id} uninstall (idempotent)
- *      /updated              acknowledge + fire updated callbacks

All responses are plaintext. Decode and store failures answer 500 with a
human-readable body; other methods on /installed answer 405.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from hipchat_addon.api.dependencies.addon import get_lifecycle_controller
from hipchat_addon.platform.errors import DecodeError, StoreError
from hipchat_addon.services.lifecycle import LifecycleController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _method_not_allowed(request: Request) -> PlainTextResponse:
    return PlainTextResponse(
        f"Method {request.method} not supported at {request.url.path}",
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
    )


@router.post("/installed", response_class=PlainTextResponse)
async def handle_installed(
    request: Request,
    controller: LifecycleController = Depends(get_lifecycle_controller),
):
    """
    Handle the installed webhook.

    Responds as soon as credentials are durable; the token exchange and
    installation callbacks run afterwards in the background.
    """
    try:
        body = await request.body()
    except Exception:
        logger.exception("Error reading installation data")
        return PlainTextResponse(
            "An unknown error occurred.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    try:
        await run_in_threadpool(controller.on_installed, body)
    except DecodeError as e:
        logger.warning("Error deserializing installation data", extra={"reason": e.message})
        return PlainTextResponse(e.message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except StoreError as e:
        logger.error("Error saving credentials to store", extra={"error_code": e.code})
        return PlainTextResponse(
            "There was an error saving these credentials",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


@router.api_route(
    "/installed",
    methods=[m for m in ALL_METHODS if m != "POST"],
    include_in_schema=False,
)
async def installed_method_not_allowed(request: Request):
    return _method_not_allowed(request)


@router.delete("/installed/{oauth_id}", response_class=PlainTextResponse)
def handle_removed(
    oauth_id: str,
    controller: LifecycleController = Depends(get_lifecycle_controller),
):
    """Handle the uninstall webhook; deleting an unknown id still answers OK."""
    try:
        controller.on_removed(oauth_id)
    except StoreError as e:
        logger.error(
            "Error deleting credentials",
            extra={"oauth_id": oauth_id, "error_code": e.code},
        )
        return PlainTextResponse(
            "There was an error deleting these credentials",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


@router.api_route(
    "/installed/{oauth_id}",
    methods=[m for m in ALL_METHODS if m != "DELETE"],
    include_in_schema=False,
)
async def removed_method_not_allowed(request: Request):
    return _method_not_allowed(request)


@router.api_route("/updated", methods=ALL_METHODS, response_class=PlainTextResponse)
async def handle_updated(
    request: Request,
    controller: LifecycleController = Depends(get_lifecycle_controller),
):
    """Acknowledge the updated webhook; credentials are not re-saved."""
    body = await request.body()
    controller.on_updated(body)
    return PlainTextResponse(f"Received {request.url.path} callback")
