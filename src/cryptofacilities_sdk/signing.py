"""
signing.py – Request body encoding and HMAC request signing.

Crypto Facilities authenticates private calls with three headers:

    APIKey   the public API key, verbatim
    Nonce    milliseconds since the Unix epoch
    Authent  base64( HMAC-SHA512( base64decode(secret),
                                  SHA256(body + nonce + path) ) )

How it works
------------
1. The ordered parameters are joined into ``k1=v1&k2=v2`` *without*
   percent-encoding.  The very same string is the POST body, the URL
   query string and the first part of the signature preimage, so it must
   be produced exactly once per request.
2. A fresh nonce is drawn from a NonceProvider.
3. ``body + str(nonce) + path`` is SHA-256 hashed, and the 32-byte digest
   is HMAC-SHA512'd with the decoded secret.

NonceProvider
-------------
The default provider is the wall clock in milliseconds.  Two calls in the
same millisecond can return the same value; the exchange only requires
the nonce to be non-decreasing.  Plug in your own callable if you need
something else::

    class SeqNonce:
        def __init__(self, start: int) -> None:
            self._n = start
        def __call__(self) -> int:
            self._n += 1
            return self._n

    auth = CFAuth(api_key, api_secret, nonce_provider=SeqNonce(int(time.time() * 1000)))
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from .errors import CFConfigError

if TYPE_CHECKING:
    from .auth import CFAuth

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

# Callable with no args that returns a millisecond nonce
NonceProvider = Callable[[], int]

# Ordered (name, value) pairs, or a mapping (dicts keep insertion order)
Params = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


# ---------------------------------------------------------------------------
# Parameter encoding
# ---------------------------------------------------------------------------

def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        # "{:f}" never switches to exponent notation (Decimal("1E+3") -> "1000")
        return format(value, "f")
    return str(value)


def encode_params(params: Optional[Params]) -> str:
    """
    Join ordered parameters into ``k1=v1&k2=v2``.

    Values are used verbatim: no percent-encoding is applied, because the
    server verifies the signature against this exact unescaped string.
    Duplicate keys are kept as given.  ``None`` or an empty set gives "".
    """
    if not params:
        return ""
    items = params.items() if isinstance(params, Mapping) else params
    return "&".join(f"{key}={_format_value(value)}" for key, value in items)


# ---------------------------------------------------------------------------
# Nonce
# ---------------------------------------------------------------------------

def default_nonce() -> int:
    """Milliseconds elapsed since 1970-01-01T00:00:00Z."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------

def decode_secret(secret: Union[str, bytes]) -> bytes:
    """
    Decode a base64 API secret into raw HMAC key bytes.

    Raises CFConfigError on malformed input.  The secret itself is never
    included in the error message.
    """
    if isinstance(secret, bytes):
        return secret
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CFConfigError("API secret is not valid base64") from exc


def sign_request(path: str, body: str, nonce: int, secret: Union[str, bytes]) -> str:
    """
    Compute the ``Authent`` header value.

    Parameters
    ----------
    path   : Endpoint path, e.g. "/api/placeOrder" (without the base URL)
    body   : The encoded parameter string, exactly as sent
    nonce  : The nonce sent in the ``Nonce`` header
    secret : Base64 API secret, or already-decoded key bytes

    Returns
    -------
    Base64-encoded HMAC-SHA512 signature.
    """
    preimage = body + str(nonce) + path
    digest   = hashlib.sha256(preimage.encode("utf-8")).digest()
    key      = decode_secret(secret)
    mac      = hmac.new(key, digest, hashlib.sha512).digest()
    return base64.b64encode(mac).decode("ascii")


@dataclass(frozen=True)
class SignedRequest:
    """A signed request's inputs and derived headers; valid for one exchange only."""

    path:      str
    body:      str
    nonce:     int
    api_key:   str
    signature: str

    @property
    def headers(self) -> dict[str, str]:
        return {
            "APIKey":  self.api_key,
            "Nonce":   str(self.nonce),
            "Authent": self.signature,
        }


def build_auth_headers(path: str, body: str, auth: "CFAuth") -> SignedRequest:
    """Draw a fresh nonce from ``auth`` and sign ``body`` for ``path``."""
    nonce = auth.next_nonce()
    return SignedRequest(
        path=path,
        body=body,
        nonce=nonce,
        api_key=auth.api_key,
        signature=sign_request(path, body, nonce, auth.secret_bytes),
    )
