"""
Exceptions raised by the teckboard SDK.

Every failure is surfaced to the caller; nothing here retries.
"""

from typing import Any

import httpx


class TeckboardError(Exception):
    """Base class for all SDK errors."""


class ConfigurationError(TeckboardError):
    """Raised when a client or model is built from unusable configuration."""


class TransportError(TeckboardError):
    """The request never produced a response (DNS, connect, timeout, ...)."""


class APIError(TeckboardError):
    """
    The server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the server
        body: Decoded JSON body, or the raw text if it was not JSON
    """

    def __init__(self, status_code: int, body: Any = None, message: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"API Error {status_code}: {_reason(body)}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "APIError":
        """Build the most specific error for a failed response."""
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        error_cls = NotFoundError if response.status_code == 404 else cls
        return error_cls(response.status_code, body)


class NotFoundError(APIError):
    """404 on fetch."""


class PersistenceError(APIError):
    """A save was rejected by the server. The model keeps its local changes."""


class ImmutableFieldError(TeckboardError, AttributeError):
    """Raised when assigning to a field that is fixed after construction."""


class UnboundModelError(TeckboardError):
    """The model was built without a client and cannot reach the server."""


def _reason(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body) if body else "Unknown API Error"
