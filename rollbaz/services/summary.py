"""
Main-error extraction from occurrence payloads

Instance ``body`` and ``data`` blobs vary by SDK and schema version. The
candidate paths below are checked in order and the first non-empty string
wins, so the same message is picked whichever variant is present.
"""

import json
from typing import Any

UNKNOWN = "unknown"

PREFERRED_ERROR_PATHS: tuple[tuple[str, ...], ...] = (
    ("trace", "exception", "description"),
    ("trace", "exception", "message"),
    ("trace_chain", "0", "exception", "description"),
    ("trace_chain", "0", "exception", "message"),
    ("body", "trace_chain", "0", "exception", "description"),
    ("body", "trace_chain", "0", "exception", "message"),
    ("exception", "description"),
    ("exception", "message"),
    ("message", "body"),
    ("message",),
    ("body", "message"),
    ("body",),
)


def main_error(body: Any, data: Any) -> str:
    """Return the primary error message of an instance, or ``"unknown"``.

    ``data`` is searched before ``body``. Both are decoded JSON values;
    use ``main_error_from_json`` for undecoded bytes.
    """
    message = message_from_value(data)
    if message:
        return message

    message = message_from_value(body)
    if message:
        return message

    return UNKNOWN


def main_error_from_json(
    body: bytes | str | None, data: bytes | str | None
) -> str:
    """Same as ``main_error`` for raw JSON text; malformed blobs never match"""
    return main_error(_load(body), _load(data))


def message_from_value(value: Any) -> str:
    for path in PREFERRED_ERROR_PATHS:
        message = string_at_path(value, path)
        if message:
            return message

    if isinstance(value, str):
        return value

    return ""


def string_at_path(value: Any, path: tuple[str, ...]) -> str:
    current = value

    for segment in path:
        if isinstance(current, dict):
            if segment not in current:
                return ""
            current = current[segment]
        elif isinstance(current, list):
            index = _to_index(segment)
            if index < 0 or index >= len(current):
                return ""
            current = current[index]
        else:
            return ""

    if isinstance(current, str):
        return current
    return ""


def _to_index(segment: str) -> int:
    if not segment or not segment.isascii() or not segment.isdigit():
        return -1
    return int(segment)


def _load(raw: bytes | str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        # malformed blob, no match
        return None
