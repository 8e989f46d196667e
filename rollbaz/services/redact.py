"""
Redaction of secrets before anything reaches the terminal
"""

import re
from typing import Any

REDACTED = "[REDACTED]"

ACCESS_TOKEN_QUERY_PATTERN = re.compile(r"([?&]access_token=)[^&\s]+")

SENSITIVE_KEYWORDS = ("token", "authorization", "secret", "password", "api_key", "apikey")


def redact_string(value: str, token: str = "") -> str:
    if not value:
        return value

    redacted = ACCESS_TOKEN_QUERY_PATTERN.sub(rf"\g<1>{REDACTED}", value)
    if not token:
        return redacted

    return redacted.replace(token, REDACTED)


def redact_value(value: Any, token: str = "") -> Any:
    """Return a copy of a JSON-like value with secrets masked.

    Keys that look sensitive are replaced wholesale; every string is scrubbed
    of ``access_token=`` query values and of the literal token. Pydantic
    models are dumped to plain data first.
    """
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive_key(key) else redact_value(nested, token)
            for key, nested in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_value(nested, token) for nested in value]
    if isinstance(value, str):
        return redact_string(value, token)
    if hasattr(value, "model_dump"):
        return redact_value(value.model_dump(mode="json", exclude_none=True), token)
    return value


def is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(keyword in lowered for keyword in SENSITIVE_KEYWORDS)
