"""
Error taxonomy for rollbaz

Every failure surfaced to the user is one of these classes. Errors gain an
operation prefix as they propagate upward via ``with_context``.
"""


class RollbazError(Exception):
    """Base class for all rollbaz errors"""

    def with_context(self, operation: str) -> "RollbazError":
        return type(self)(f"{operation}: {self}")


class TransportError(RollbazError):
    """Network failure, timeout or non-2xx HTTP status"""


class ApiError(RollbazError):
    """Envelope reported ``err != 0``"""


class DecodeError(RollbazError, ValueError):
    """Malformed or unexpected JSON shape

    Subclasses ValueError so pydantic validators can raise it directly.
    """


class ValidationError(RollbazError):
    """Bad user input, rejected before any request"""


class ConfigError(RollbazError):
    """No usable token or unknown project"""
