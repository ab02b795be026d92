"""
errors.py – Exception hierarchy for the Crypto Facilities SDK.

Every failure a client operation can surface derives from CFError, so
callers can catch broadly or branch on the specific kind:

    CFTransportError  HTTP exchange could not complete (network/DNS/TLS/timeout)
    CFConfigError     Credentials are malformed (bad base64 secret)
    CFAPIError        Server answered with result != "success"
    CFDecodeError     Successful envelope, payload not in the expected shape

None of these are retried by the SDK.
"""

from __future__ import annotations

from typing import Optional


class CFError(Exception):
    """Base class for all Crypto Facilities SDK errors."""


class CFTransportError(CFError):
    """Raised when the HTTP request/response exchange itself fails."""

    def __init__(self, message: str, method: str = "", path: str = "") -> None:
        self.method = method.upper()
        self.path   = path
        location = f" {self.method} {self.path}" if path else ""
        super().__init__(f"Crypto Facilities transport error{location}: {message}")


class CFConfigError(CFError, ValueError):
    """Raised for unusable client configuration, e.g. a secret that is not base64."""


class CFAPIError(CFError):
    """
    Raised when the response envelope reports a failure.

    ``message`` is the server's ``error`` field, passed through unmodified.
    """

    def __init__(self, message: str, result: Optional[str] = None, path: str = "") -> None:
        self.message = message
        self.result  = result
        self.path    = path
        location = f" {path}" if path else ""
        super().__init__(f"Crypto Facilities API error [{result}]{location}: {message}")


class CFDecodeError(CFError):
    """Raised when a response body cannot be decoded into the expected payload."""

    def __init__(self, message: str, body: str = "") -> None:
        self.body = body
        super().__init__(message)
