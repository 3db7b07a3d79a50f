"""Common exception hierarchy for the client library."""

from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Base class for every error raised by the library."""


class ConfigurationError(AppError):
    """Raised when key material, key scheme or endpoint settings are unusable."""


class DataValidationError(AppError):
    """Raised when request parameters violate an endpoint precondition."""


class ExchangeError(AppError):
    """Raised while talking to the exchange."""


class TransportError(ExchangeError):
    """Network level failure: DNS, TCP, TLS, timeouts."""


class APIError(ExchangeError):
    """Non-2xx response carrying the exchange's ``{code, msg}`` envelope."""

    def __init__(
        self,
        code: int,
        message: str,
        *,
        status_code: Optional[int] = None,
        response: bytes = b"",
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(f"<APIError> code={code}, msg={message}")


class ProtocolError(ExchangeError):
    """Response body that does not match the expected shape."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class WebSocketError(ExchangeError):
    """Raised for WebSocket communication failures."""


class StreamDecodeError(WebSocketError):
    """A stream frame could not be decoded into its event type."""

    def __init__(self, message: str, *, frame: Any = None) -> None:
        self.frame = frame
        super().__init__(message)


def is_api_error(exc: BaseException) -> bool:
    """Return whether ``exc`` is an exchange error envelope."""
    return isinstance(exc, APIError)


__all__ = [
    "APIError",
    "AppError",
    "ConfigurationError",
    "DataValidationError",
    "ExchangeError",
    "ProtocolError",
    "StreamDecodeError",
    "TransportError",
    "WebSocketError",
    "is_api_error",
]
