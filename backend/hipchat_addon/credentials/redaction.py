"""
Credential redaction utilities.

SECURITY REQUIREMENTS:
- OAuth secrets and access tokens NEVER appear in logs
- ALLOWED in logs: oauth_id, group_id, room_id, capabilities_url

Usage:
    from hipchat_addon.credentials.redaction import redact_secrets

    logger.info("Install payload received", extra={"payload": redact_secrets(payload)})
"""

import re
from typing import Any

REDACTED_VALUE = "[REDACTED]"

# Key names that carry secrets, matched case-insensitively as substrings
SECRET_KEY_PATTERNS = [
    "secret",
    "token",
    "password",
    "credential",
    "authorization",
    "signed_request",
]

# Values that look like bearer material regardless of key
SECRET_VALUE_PATTERNS = [
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"(?i)(jwt\s+)[A-Za-z0-9._~+/=-]+"),
]

MAX_REDACTION_DEPTH = 10


def is_secret_key(key: str) -> bool:
    """
    Check if a key name indicates a secret.

    Args:
        key: The key name to check

    Returns:
        True if the key likely contains a secret
    """
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SECRET_KEY_PATTERNS)


def redact_value(value: Any) -> Any:
    """Mask bearer-looking material inside a string value."""
    if not isinstance(value, str):
        return value
    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(lambda m: m.group(1) + REDACTED_VALUE, result)
    return result


def redact_secrets(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact secrets from a data structure.

    Args:
        data: dict, list or scalar to redact
        _depth: recursion guard

    Returns:
        A redacted copy; the input is not modified
    """
    if _depth > MAX_REDACTION_DEPTH:
        return REDACTED_VALUE

    if isinstance(data, dict):
        return {
            key: (
                REDACTED_VALUE
                if isinstance(key, str) and is_secret_key(key)
                else redact_secrets(value, _depth + 1)
            )
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_secrets(item, _depth + 1) for item in data]
    return redact_value(data)
