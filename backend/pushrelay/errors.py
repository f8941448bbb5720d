"""Error types raised by the push relay core."""
from typing import Optional


class PushRelayError(Exception):
    """Base error for push relay operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(PushRelayError):
    """Push service is not configured (missing application or topic)."""


class NotFoundError(PushRelayError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class GatewayError(PushRelayError):
    """A call to the push gateway failed.

    ``code`` carries the gateway's error code when it reported one
    (e.g. ``EndpointDisabled``, ``InvalidParameter``).
    """

    def __init__(self, operation: str, message: str, code: Optional[str] = None):
        self.operation = operation
        self.code = code
        super().__init__(f"{operation} failed: {message}")
