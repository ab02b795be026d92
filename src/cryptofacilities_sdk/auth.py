"""
auth.py – Credentials and endpoint configuration for Crypto Facilities.

Crypto Facilities does not use sessions: every private request carries
the API key plus an HMAC signature over that request (see signing.py).
CFAuth therefore only holds the key material, the nonce source and the
base URL, all read-only after construction so a single instance can be
shared across threads and tasks without locking.

Usage
-----
    from cryptofacilities_sdk import CFAuth, CFEnv

    auth = CFAuth(api_key="...", api_secret="base64...", env=CFEnv.CONFORMANCE)
    auth.base_url                  # "https://conformance.cryptofacilities.com/derivatives"

The secret is base64-decoded once, here.  A malformed secret raises
CFConfigError immediately instead of failing on the first signed call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Optional, Union

from .signing import NonceProvider, decode_secret, default_nonce

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------

@unique
class CFEnv(str, Enum):
    """Crypto Facilities deployment environment (value is the REST base URL)."""
    PRODUCTION  = "https://www.cryptofacilities.com/derivatives"
    CONFORMANCE = "https://conformance.cryptofacilities.com/derivatives"

    @property
    def base_url(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return self.name.lower()


def _resolve_base_url(env: Union[CFEnv, str]) -> str:
    """Accept a CFEnv, its label ("production"), or an explicit URL."""
    if isinstance(env, CFEnv):
        return env.base_url
    try:
        return CFEnv[env.upper()].base_url
    except KeyError:
        return env.rstrip("/")


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass
class CFAuth:
    """
    API credentials for signed Crypto Facilities requests.

    Parameters
    ----------
    api_key        : Public API key, sent verbatim in the ``APIKey`` header
    api_secret     : Base64-encoded API secret
    env            : CFEnv.PRODUCTION / CFEnv.CONFORMANCE, the matching
                     label string, or an explicit base URL
    nonce_provider : Callable[[], int] returning millisecond nonces

    Public endpoints work with empty credentials; only signing needs them.
    """

    api_key:        str                     = ""
    api_secret:     str                     = field(default="", repr=False)
    env:            Union[CFEnv, str]       = CFEnv.PRODUCTION
    nonce_provider: Optional[NonceProvider] = field(default=None, repr=False)

    _secret: bytes = field(default=b"", init=False, repr=False)

    def __post_init__(self) -> None:
        self._secret = decode_secret(self.api_secret)
        if self.api_key and not self._secret:
            logger.warning("API key given without a secret; signed requests will be rejected")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return _resolve_base_url(self.env)

    @property
    def secret_bytes(self) -> bytes:
        """Raw HMAC key bytes decoded from ``api_secret``."""
        return self._secret

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self._secret)

    def next_nonce(self) -> int:
        """Return a fresh nonce for one signed request."""
        provider = self.nonce_provider or default_nonce
        return provider()
