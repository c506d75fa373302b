"""
Verification of HipChat signed requests.

HipChat signs requests to add-on endpoints with a JWT carried either in an
``Authorization: JWT <token>`` header or a ``signed_request`` parameter
(query string or form body). The header wins when both are present.

Verification:
1. Decode without verifying; ``iss`` must be a string (MalformedTokenError)
2. Pin the algorithm to HMAC (InvalidSignatureError otherwise)
3. Look up the secret for ``iss`` in the credential store on every call,
   so secret rotation applies immediately (UnknownIssuerError, StoreReadError)
4. Verify the signature (InvalidSignatureError)
5. Extract ``context.room_id`` and ``context.user_tz`` (ClaimExtractionError)

Claims are never defaulted or guessed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import jwt
from fastapi import Request

from hipchat_addon.credentials.records import UINT32_MAX
from hipchat_addon.credentials.store import CredentialStore
from hipchat_addon.platform.errors import (
    ClaimExtractionError,
    InvalidSignatureError,
    MalformedTokenError,
    NoSignedRequestError,
    UnknownIssuerError,
)

logger = logging.getLogger(__name__)

AUTHORIZATION_PREFIX = "JWT "
SIGNED_REQUEST_PARAM = "signed_request"
HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


@dataclass(frozen=True)
class SignedParams:
    """Verified request context. Only SignedParamValidator builds these."""
    room_id: int
    user_timezone: str

    def __str__(self) -> str:
        return f'SignedParams<RoomID: {self.room_id}, Timezone: "{self.user_timezone}">'


def extract_token(
    authorization: Optional[str],
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Pick the compact JWT out of a request.

    Args:
        authorization: Authorization header value, if any
        params: Query string and form parameters

    Raises:
        NoSignedRequestError: Neither source carries a token
    """
    if authorization and authorization[:len(AUTHORIZATION_PREFIX)].upper() == AUTHORIZATION_PREFIX:
        token = authorization[len(AUTHORIZATION_PREFIX):].strip()
        if token:
            return token

    if params:
        token = params.get(SIGNED_REQUEST_PARAM)
        if isinstance(token, str) and token:
            return token

    raise NoSignedRequestError()


def _extract_room_id(context: Mapping[str, Any]) -> int:
    value = context.get("room_id")
    if value is None:
        raise ClaimExtractionError("room_id", "missing signed parameter")
    # bool is an int subclass; a JSON true is not a room id
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ClaimExtractionError("room_id", f"expected number, got {type(value).__name__}")
    if value != value or value in (float("inf"), float("-inf")):
        raise ClaimExtractionError("room_id", "expected finite number")
    room_id = int(value)
    if room_id < 0 or room_id > UINT32_MAX:
        raise ClaimExtractionError("room_id", "out of range for unsigned 32-bit integer")
    return room_id


def _extract_user_tz(context: Mapping[str, Any]) -> str:
    value = context.get("user_tz")
    if value is None:
        raise ClaimExtractionError("user_tz", "missing signed parameter")
    if not isinstance(value, str):
        raise ClaimExtractionError("user_tz", f"expected string, got {type(value).__name__}")
    return value


def signed_params_from_claims(claims: Mapping[str, Any]) -> SignedParams:
    """Build SignedParams from already verified claims."""
    context = claims.get("context")
    if not isinstance(context, Mapping):
        raise ClaimExtractionError(
            "context",
            "missing signed parameter" if context is None
            else f"expected object, got {type(context).__name__}",
        )
    return SignedParams(
        room_id=_extract_room_id(context),
        user_timezone=_extract_user_tz(context),
    )


class SignedParamValidator:
    """Verifies signed requests against per-issuer secrets from the store."""

    def __init__(self, store: CredentialStore, leeway: float = 0):
        """
        Args:
            store: Source of per-issuer secrets; queried on every verification
            leeway: Clock skew tolerance in seconds for exp/nbf/iat
        """
        self.store = store
        self.leeway = leeway

    def parse_token(self, token: str) -> SignedParams:
        """
        Verify a compact JWT and decode its context.

        Raises:
            MalformedTokenError, UnknownIssuerError, StoreReadError,
            InvalidSignatureError, ClaimExtractionError
        """
        try:
            header = jwt.get_unverified_header(token)
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Malformed signed request token: {type(e).__name__}") from e

        issuer = unverified.get("iss")
        if not isinstance(issuer, str) or not issuer:
            raise MalformedTokenError("iss claim missing or not a string")

        algorithm = header.get("alg")
        if algorithm not in HMAC_ALGORITHMS:
            logger.warning(
                "Rejected signed request with non-HMAC algorithm",
                extra={"issuer": issuer, "alg": str(algorithm)},
            )
            raise InvalidSignatureError(f"Unexpected signing method: {algorithm}")

        secret = self.store.get_oauth_secret(issuer)
        if secret is None:
            logger.warning("Signed request from unknown issuer", extra={"issuer": issuer})
            raise UnknownIssuerError(issuer)

        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=HMAC_ALGORITHMS,
                # HipChat does not set aud; sub/jti shapes vary by product version
                options={"verify_aud": False, "verify_sub": False, "verify_jti": False},
                leeway=self.leeway,
            )
        except jwt.InvalidTokenError as e:
            logger.warning(
                "Signed request failed verification",
                extra={"issuer": issuer, "error_type": type(e).__name__},
            )
            raise InvalidSignatureError(f"Invalid signed request: {type(e).__name__}") from e

        params = signed_params_from_claims(claims)
        logger.debug(
            "Signed request verified",
            extra={"issuer": issuer, "room_id": params.room_id},
        )
        return params

    def parse_signed_params(
        self,
        authorization: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> SignedParams:
        """Extract and verify the token from header / parameters."""
        return self.parse_token(extract_token(authorization, params))

    async def parse_request(self, request: Request) -> SignedParams:
        """
        FastAPI adapter: header first, then query string, then form body.
        """
        authorization = request.headers.get("Authorization")
        params: dict[str, Any] = dict(request.query_params)

        if SIGNED_REQUEST_PARAM not in params and _has_form_body(request):
            form = await request.form()
            value = form.get(SIGNED_REQUEST_PARAM)
            if isinstance(value, str):
                params[SIGNED_REQUEST_PARAM] = value

        return self.parse_signed_params(authorization, params)


def _has_form_body(request: Request) -> bool:
    content_type = request.headers.get("content-type", "").lower()
    return (
        content_type.startswith("application/x-www-form-urlencoded")
        or content_type.startswith("multipart/form-data")
    )
