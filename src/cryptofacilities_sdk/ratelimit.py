"""
ratelimit.py – Minimum-spacing request gate shared by every call of a client.

Crypto Facilities throttles (and eventually bans) keys that fire requests
too quickly.  A limiter guarantees that no two dispatches from the same
client are closer together than ``min_interval_ms``, whatever mix of
public and private calls and however many threads or tasks issue them.

The whole "read last timestamp → compute wait → sleep → record new
timestamp" sequence runs under one lock.  A caller that has to wait
keeps holding the lock while it sleeps, so the next caller measures its
own wait from the moment the previous one was released.

Two flavours with the same contract:

    RateLimiter       threading.Lock + time.sleep   (sync clients)
    AsyncRateLimiter  asyncio.Lock   + asyncio.sleep (async clients)
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Default spacing used by the exchange's published limits
DEFAULT_MIN_INTERVAL_MS = 500

Clock      = Callable[[], float]
Sleeper    = Callable[[float], None]
AsyncSleep = Callable[[float], Awaitable[None]]


def _validate_interval(min_interval_ms: float) -> float:
    if min_interval_ms < 0:
        raise ValueError(f"min_interval_ms must be non-negative, got {min_interval_ms}")
    return float(min_interval_ms)


def _remaining_s(last: Optional[float], now: float, interval_s: float) -> float:
    """Seconds still to wait, clamped to zero; no prior dispatch means no wait."""
    if last is None:
        return 0.0
    return max(0.0, interval_s - (now - last))


class RateLimiter:
    """
    Thread-safe minimum-interval gate.

    Parameters
    ----------
    min_interval_ms : Minimum spacing between two dispatches
    clock           : Monotonic clock in seconds (default time.monotonic)
    sleep           : Blocking sleep in seconds (default time.sleep)
    """

    def __init__(
        self,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        *,
        clock: Clock   = time.monotonic,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._interval_s = _validate_interval(min_interval_ms) / 1000.0
        self._clock      = clock
        self._sleep      = sleep
        self._lock       = threading.Lock()
        self._last: Optional[float] = None

    @property
    def min_interval_ms(self) -> float:
        return self._interval_s * 1000.0

    @property
    def last_dispatch(self) -> Optional[float]:
        """Clock reading recorded by the most recent acquire(), or None."""
        return self._last

    def acquire(self) -> None:
        """Block until the interval since the previous dispatch has elapsed."""
        with self._lock:
            wait = _remaining_s(self._last, self._clock(), self._interval_s)
            if wait > 0:
                logger.debug("Rate limit: sleeping %.3f s", wait)
                self._sleep(wait)
            self._last = self._clock()


class AsyncRateLimiter:
    """
    asyncio flavour of RateLimiter for coroutines sharing one event loop.

    The asyncio.Lock is created lazily so the limiter can be constructed
    outside a running loop.
    """

    def __init__(
        self,
        min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS,
        *,
        clock: Clock      = time.monotonic,
        sleep: AsyncSleep = asyncio.sleep,
    ) -> None:
        self._interval_s = _validate_interval(min_interval_ms) / 1000.0
        self._clock      = clock
        self._sleep      = sleep
        self._lock: Optional[asyncio.Lock] = None
        self._last: Optional[float] = None

    @property
    def min_interval_ms(self) -> float:
        return self._interval_s * 1000.0

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last

    async def acquire(self) -> None:
        """Suspend until the interval since the previous dispatch has elapsed."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            wait = _remaining_s(self._last, self._clock(), self._interval_s)
            if wait > 0:
                logger.debug("Rate limit: sleeping %.3f s", wait)
                await self._sleep(wait)
            self._last = self._clock()
