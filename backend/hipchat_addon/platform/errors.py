"""
Error taxonomy for the HipChat add-on.

All errors raised by the credential store, the lifecycle controller and the
signed request validator derive from AppError so that they carry a stable
code, a client-safe message and an HTTP status.

Webhook errors (decode, store write) are terminal for the request.
Background token acquisition errors are logged and swallowed by the caller.
Signed request errors are always surfaced; claims are never defaulted.

Stack traces are NEVER returned to clients.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from hipchat_addon.credentials.redaction import redact_secrets

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# ----------------------------------------------------------------------------
# Webhook / lifecycle errors
# ----------------------------------------------------------------------------

class DecodeError(AppError):
    """Malformed installation webhook body."""

    def __init__(self, message: str = "There was an error deserializing the data."):
        super().__init__(
            code="DECODE_ERROR",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class StoreError(AppError):
    """Base class for persistence layer failures."""

    def __init__(self, code: str, message: str):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class StoreWriteError(StoreError):
    """Constraint violation or connectivity failure while writing."""

    def __init__(self, message: str = "There was an error saving these credentials"):
        super().__init__(code="STORE_WRITE_ERROR", message=message)


class StoreReadError(StoreError):
    """Connectivity failure while reading."""

    def __init__(self, message: str = "There was an error reading credentials"):
        super().__init__(code="STORE_READ_ERROR", message=message)


class ExchangeError(AppError):
    """The OAuth client-credentials exchange failed."""

    def __init__(self, message: str = "Token exchange failed", status_code: Optional[int] = None):
        details = {}
        if status_code is not None:
            details["upstream_status_code"] = status_code
        super().__init__(
            code="EXCHANGE_ERROR",
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
        )


class CredentialsNotFoundError(AppError):
    """No installation record exists for a tenant."""

    def __init__(self, tenant: str):
        super().__init__(
            code="CREDENTIALS_NOT_FOUND",
            message=f"No installation found for tenant '{tenant}'",
            status_code=status.HTTP_404_NOT_FOUND,
        )


# ----------------------------------------------------------------------------
# Signed request errors
# ----------------------------------------------------------------------------

class SignedRequestError(AppError):
    """Base class for signed request verification failures (401)."""

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class NoSignedRequestError(SignedRequestError):
    """Neither a JWT Authorization header nor a signed_request parameter."""

    def __init__(self):
        super().__init__(
            code="NO_SIGNED_REQUEST",
            message="No signed request found in Authorization header or signed_request parameter",
        )


class MalformedTokenError(SignedRequestError):
    """Token cannot be decoded or carries no usable issuer."""

    def __init__(self, message: str = "Malformed signed request token"):
        super().__init__(code="MALFORMED_TOKEN", message=message)


class UnknownIssuerError(SignedRequestError):
    """The issuer is not a known OAuth client."""

    def __init__(self, issuer: str):
        # Issuer is an OAuth client id, not a secret
        super().__init__(
            code="UNKNOWN_ISSUER",
            message="Signed request issuer is not installed",
            details={"issuer": issuer},
        )


class InvalidSignatureError(SignedRequestError):
    """Signature check failed or the algorithm is not HMAC based."""

    def __init__(self, message: str = "Invalid signed request signature"):
        super().__init__(code="INVALID_SIGNATURE", message=message)


class ClaimExtractionError(SignedRequestError):
    """A required claim is missing or has the wrong type."""

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(
            code="CLAIM_EXTRACTION_ERROR",
            message=f"Error extracting {field}: {reason}",
            details={"field": field},
        )


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())


def get_correlation_id(request: Request) -> str:
    """
    Get correlation ID from request or generate new one.

    Checks X-Correlation-ID header first, then request state.
    """
    correlation_id = request.headers.get("X-Correlation-ID")
    if correlation_id:
        return correlation_id

    if hasattr(request.state, "correlation_id"):
        return request.state.correlation_id

    return generate_correlation_id()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches AppError and unhandled exceptions and returns
    consistent JSON error responses.

    The lifecycle webhook routes answer in plaintext themselves; this covers
    everything else (signed request dependencies, host application routes).
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = get_correlation_id(request)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except AppError as e:
            logger.warning(
                "Application error",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": e.code,
                    "status_code": e.status_code,
                    "details": redact_secrets(e.details),
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers={"X-Correlation-ID": correlation_id},
            )

        except Exception as e:
            logger.exception(
                "Unhandled exception",
                extra={
                    "correlation_id": correlation_id,
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": "An unexpected error occurred",
                        "details": {"correlation_id": correlation_id},
                    }
                },
                headers={"X-Correlation-ID": correlation_id},
            )
