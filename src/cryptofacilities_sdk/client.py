"""
client.py – Unified CFClient / AsyncCFClient façades.

Single entry point that owns the credentials and the rate limiter and
wires them into both the v1 and the v2 clients.  Every request of a
logical client, whichever API version it targets, goes through the same
limiter, so the account never exceeds one request per ``rate_limit_ms``.

Usage
-----
    from cryptofacilities_sdk import CFClient, CFEnv

    client = CFClient(api_key="...", api_secret="...", env=CFEnv.CONFORMANCE)
    contracts = client.v1.get_contracts()
    account   = client.v2.get_account()

    async with AsyncCFClient(api_key="...", api_secret="...") as client:
        quote = await client.v1.get_ticker("F-XBT:USD-Mar15", "USD")
"""

from __future__ import annotations

from typing import Optional, Union

from .auth import CFAuth, CFEnv
from .ratelimit import DEFAULT_MIN_INTERVAL_MS, AsyncRateLimiter, RateLimiter
from .rest import AsyncCFRestClient, CFRestClient
from .rest_v2 import AsyncCFRestClientV2, CFRestClientV2
from .signing import NonceProvider


class CFClient:
    """
    Synchronous façade for the Crypto Facilities SDK.

    Parameters
    ----------
    api_key        : API key (empty for public-only use)
    api_secret     : Base64 API secret
    env            : CFEnv.PRODUCTION / CFEnv.CONFORMANCE or a base URL
    rate_limit_ms  : Minimum spacing between any two requests
    timeout        : HTTP timeout in seconds
    nonce_provider : Optional custom nonce source
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        env: Union[CFEnv, str] = CFEnv.PRODUCTION,
        *,
        rate_limit_ms: float = DEFAULT_MIN_INTERVAL_MS,
        timeout: float = 10.0,
        nonce_provider: Optional[NonceProvider] = None,
    ) -> None:
        self._auth    = CFAuth(api_key, api_secret, env, nonce_provider)
        self._limiter = RateLimiter(rate_limit_ms)
        self.v1 = CFRestClient(self._auth, self._limiter, timeout)
        self.v2 = CFRestClientV2(self._auth, self._limiter, timeout)

    @property
    def auth(self) -> CFAuth:
        return self._auth

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def env(self) -> Union[CFEnv, str]:
        return self._auth.env


class AsyncCFClient:
    """Async twin of CFClient; close it or use ``async with``."""

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        env: Union[CFEnv, str] = CFEnv.PRODUCTION,
        *,
        rate_limit_ms: float = DEFAULT_MIN_INTERVAL_MS,
        timeout: float = 10.0,
        nonce_provider: Optional[NonceProvider] = None,
    ) -> None:
        self._auth    = CFAuth(api_key, api_secret, env, nonce_provider)
        self._limiter = AsyncRateLimiter(rate_limit_ms)
        self.v1 = AsyncCFRestClient(self._auth, self._limiter, timeout)
        self.v2 = AsyncCFRestClientV2(self._auth, self._limiter, timeout)

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "AsyncCFClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP sessions of both API clients."""
        await self.v1.close()
        await self.v2.close()

    @property
    def auth(self) -> CFAuth:
        return self._auth

    @property
    def limiter(self) -> AsyncRateLimiter:
        return self._limiter

    @property
    def env(self) -> Union[CFEnv, str]:
        return self._auth.env
