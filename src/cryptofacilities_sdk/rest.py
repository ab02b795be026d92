"""
rest.py – Request pipeline and v1 REST clients (sync and async).

Every call goes through ``query``:

    1. wait on the client's rate limiter
    2. encode the ordered params once   (signing.encode_params)
    3. sign if the endpoint is private  (APIKey / Nonce / Authent headers)
    4. POST base_url + path, with the encoded params both appended to the
       URL as a query string and sent as the body
    5. return the raw response text, whatever the HTTP status

Endpoint methods then unwrap the response envelope (envelope.py), which
raises CFAPIError with the server's message on failure.  Transport
failures raise CFTransportError.  Nothing is retried.

Usage – sync
------------
    from cryptofacilities_sdk import CFAuth, CFRestClient, RateLimiter

    client = CFRestClient(CFAuth(api_key="...", api_secret="..."), RateLimiter(500))
    quote  = client.get_ticker("F-XBT:USD-Mar15", "USD")
    uid    = client.place_order("F-XBT:USD-Mar15", "USD", Direction.SELL, 1, Decimal("1000.00"))

Usage – async
-------------
    async with AsyncCFRestClient(auth) as client:
        orders = await client.get_open_orders()
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError

from .auth import CFAuth
from .envelope import decode_envelope, decode_json_field, project_balances
from .errors import CFConfigError, CFDecodeError, CFTransportError
from .ratelimit import AsyncRateLimiter, RateLimiter
from .signing import Params, build_auth_headers, encode_params
from .types import (
    Contract,
    CumulativeBidAsk,
    Direction,
    Order,
    OrderInfo,
    Quote,
    TradeInfo,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


# ---------------------------------------------------------------------------
# Request preparation (shared by sync and async clients)
# ---------------------------------------------------------------------------

def _prepare_request(
    auth: CFAuth,
    path: str,
    params: Optional[Params],
    signed: bool,
) -> tuple[str, str, dict[str, str]]:
    """
    Build ``(url, body, headers)`` for one request.

    The body string is encoded once and reused for the URL query string
    and the signature preimage so the three can never diverge.
    """
    body = encode_params(params)

    url = auth.base_url + path
    if body:
        url += "?" + body

    headers: dict[str, str] = {}
    if body:
        headers["Content-Type"] = _FORM_CONTENT_TYPE
    if signed:
        signed_request = build_auth_headers(path, body, auth)
        headers.update(signed_request.headers)
        logger.debug("POST %s  signed  nonce=%d  body=%s", path, signed_request.nonce, body)
    else:
        logger.debug("POST %s  body=%s", path, body)

    return url, body, headers


def _require_credentials(auth: CFAuth, path: str) -> None:
    if not auth.has_credentials:
        raise CFConfigError(f"API key and secret are required for {path}")


# ---------------------------------------------------------------------------
# Payload helpers (shared by sync and async clients)
# ---------------------------------------------------------------------------

def _validate(model: type[M], raw: Any, path: str) -> M:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise CFDecodeError(f"Unexpected {model.__name__} payload from {path}: {exc}") from exc


def _validate_list(model: type[M], raw: Any, path: str) -> list[M]:
    if not isinstance(raw, list):
        raise CFDecodeError(f"Expected a list of {model.__name__} from {path}, got {type(raw).__name__}")
    return [_validate(model, item, path) for item in raw]


def _decimal_field(payload: dict[str, Any], key: str, path: str) -> Decimal:
    if key not in payload:
        raise CFDecodeError(f"Response from {path} has no '{key}' field")
    try:
        return Decimal(str(payload[key]))
    except ArithmeticError as exc:
        raise CFDecodeError(f"Field '{key}' from {path} is not numeric: {payload[key]!r}") from exc


def _parse_contracts(payload: dict[str, Any]) -> list[Contract]:
    return _validate_list(Contract, payload.get("contracts"), "/api/contracts")


def _parse_quote(payload: dict[str, Any]) -> Quote:
    return _validate(Quote, payload, "/api/ticker")


def _parse_cumulative_bid_ask(payload: dict[str, Any]) -> CumulativeBidAsk:
    """
    Decode the doubly-encoded level arrays.

    Bids are re-sorted by descending price; asks are kept in the order the
    server sent them.
    """
    path = "/api/cumulativebidask"
    book = _validate(
        CumulativeBidAsk,
        {
            "bids": decode_json_field(payload, "cumulatedBids") or [],
            "asks": decode_json_field(payload, "cumulatedAsks") or [],
        },
        path,
    )
    book.bids = sorted(book.bids, key=lambda level: level[0], reverse=True)
    return book


def _parse_open_orders(payload: dict[str, Any]) -> list[OrderInfo]:
    """Missing, null or malformed ``orders`` is reported as no open orders."""
    raw = payload.get("orders")
    if not isinstance(raw, list):
        return []
    try:
        return [OrderInfo.model_validate(item) for item in raw]
    except ValidationError:
        logger.debug("Unparseable open orders fragment treated as empty: %r", raw)
        return []


def _parse_trades(payload: dict[str, Any]) -> list[TradeInfo]:
    raw = payload.get("trades")
    if raw is None:
        return []
    return _validate_list(TradeInfo, raw, "/api/trades")


def _place_order_params(
    tradeable: str,
    unit: str,
    dir: Union[Direction, str],
    qty: int,
    price: Decimal,
    type: str,
) -> list[tuple[str, Any]]:
    return [
        ("type",      type),
        ("tradeable", tradeable),
        ("unit",      unit),
        ("dir",       dir),
        ("qty",       int(qty)),
        ("price",     Decimal(str(price))),
    ]


def _parse_order_id(payload: dict[str, Any]) -> str:
    order_id = payload.get("orderId")
    if not order_id:
        raise CFDecodeError("Response from /api/placeOrder has no 'orderId'")
    return str(order_id)


# ---------------------------------------------------------------------------
# Synchronous pipeline
# ---------------------------------------------------------------------------

class CFQueryClient:
    """
    Synchronous request pipeline.

    Parameters
    ----------
    auth    : CFAuth with credentials and base URL (public-only if omitted)
    limiter : RateLimiter shared by every call of this client; pass the
              same instance to several clients to space them jointly
    timeout : HTTP timeout in seconds

    Safe to share across threads.  Each call performs one independent
    HTTP exchange.
    """

    def __init__(
        self,
        auth: Optional[CFAuth] = None,
        limiter: Optional[RateLimiter] = None,
        timeout: float = 10.0,
    ) -> None:
        self._auth    = auth if auth is not None else CFAuth()
        self._limiter = limiter if limiter is not None else RateLimiter()
        self._timeout = timeout

    @property
    def auth(self) -> CFAuth:
        return self._auth

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def query(self, path: str, params: Optional[Params] = None, auth: bool = False) -> str:
        """
        Send one POST request and return the raw response body.

        Parameters
        ----------
        path   : Endpoint path relative to the base URL, e.g. "/api/ticker"
        params : Ordered parameters (list of pairs or dict)
        auth   : Sign the request with the client's credentials
        """
        if auth:
            _require_credentials(self._auth, path)

        self._limiter.acquire()
        url, body, headers = _prepare_request(self._auth, path, params, auth)

        try:
            resp = requests.request(
                "POST",
                url,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise CFTransportError(str(exc), method="POST", path=path) from exc

        logger.debug("POST %s -> %d", path, resp.status_code)
        return resp.text

    def _call(self, path: str, params: Optional[Params] = None, auth: bool = False) -> dict[str, Any]:
        return decode_envelope(self.query(path, params, auth), path)


# ---------------------------------------------------------------------------
# Async pipeline
# ---------------------------------------------------------------------------

class AsyncCFQueryClient:
    """
    Async request pipeline (aiohttp-based).

    The aiohttp session is created on first use and closed by close() or
    by leaving ``async with``.
    """

    def __init__(
        self,
        auth: Optional[CFAuth] = None,
        limiter: Optional[AsyncRateLimiter] = None,
        timeout: float = 10.0,
    ) -> None:
        self._auth    = auth if auth is not None else CFAuth()
        self._limiter = limiter if limiter is not None else AsyncRateLimiter()
        self._timeout = timeout
        self._session: Any = None   # aiohttp.ClientSession, created on first use

    async def __aenter__(self) -> "AsyncCFQueryClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def auth(self) -> CFAuth:
        return self._auth

    @property
    def limiter(self) -> AsyncRateLimiter:
        return self._limiter

    async def query(self, path: str, params: Optional[Params] = None, auth: bool = False) -> str:
        """Async version of CFQueryClient.query()."""
        import aiohttp  # lazy import – only needed for async usage

        if auth:
            _require_credentials(self._auth, path)

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        await self._limiter.acquire()
        url, body, headers = _prepare_request(self._auth, path, params, auth)

        try:
            async with self._session.request(
                "POST",
                url,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                text = await resp.text()
                logger.debug("POST %s -> %d", path, resp.status)
                return text
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise CFTransportError(str(exc) or type(exc).__name__, method="POST", path=path) from exc

    async def _call(self, path: str, params: Optional[Params] = None, auth: bool = False) -> dict[str, Any]:
        return decode_envelope(await self.query(path, params, auth), path)


# ---------------------------------------------------------------------------
# v1 endpoints – sync
# ---------------------------------------------------------------------------

class CFRestClient(CFQueryClient):
    """Synchronous client for the v1 API (``/api/...``)."""

    # ------------------------------------------------------------------
    # Market data (public)
    # ------------------------------------------------------------------

    def get_contracts(self) -> list[Contract]:
        """All listed contracts with their specifications."""
        return _parse_contracts(self._call("/api/contracts"))

    def get_ticker(self, tradeable: str, unit: str) -> Quote:
        """Best bid and ask (level 1) for a contract."""
        payload = self._call("/api/ticker", [("tradeable", tradeable), ("unit", unit)])
        return _parse_quote(payload)

    def get_cumulative_bid_ask(self, tradeable: str, unit: str) -> CumulativeBidAsk:
        """Level 2 depth with cumulative volumes."""
        payload = self._call("/api/cumulativebidask", [("tradeable", tradeable), ("unit", unit)])
        return _parse_cumulative_bid_ask(payload)

    def get_cfbpi(self) -> Decimal:
        """Current CF Bitcoin-USD price index."""
        return _decimal_field(self._call("/api/cfbpi"), "cf-bpi", "/api/cfbpi")

    def get_volatility(self) -> Decimal:
        """
        Annualised volatility of the CF-BPI.

        Standard deviation of log returns over the last 60 minutely prices,
        scaled by sqrt(60 * 24 * 365); refreshed every 60 seconds.
        """
        return _decimal_field(self._call("/api/volatility"), "volatility", "/api/volatility")

    # ------------------------------------------------------------------
    # Account (private)
    # ------------------------------------------------------------------

    def get_balance(self) -> dict[str, Decimal]:
        """Bitcoin balance plus the balance of every contract position."""
        return project_balances(self._call("/api/balance", auth=True))

    def place_order(
        self,
        tradeable: str,
        unit: str,
        dir: Union[Direction, str],
        qty: int,
        price: Decimal,
        type: str = "LMT",
    ) -> str:
        """
        Place an order and return the exchange's order id.

        ``type`` defaults to "LMT" and is sent to the server as given; the v1
        API only documents limit orders, so other values may be rejected.
        """
        params  = _place_order_params(tradeable, unit, dir, qty, price, type)
        payload = self._call("/api/placeOrder", params, auth=True)
        return _parse_order_id(payload)

    def place(self, order: Order) -> str:
        """Place ``order`` and store the returned id in ``order.uid``."""
        order.uid = self.place_order(
            order.tradeable, order.unit, order.dir, order.qty, order.price, order.type,
        )
        return order.uid

    def cancel_order(self, uid: str, tradeable: str, unit: str) -> bool:
        """Cancel an unmatched order.  Raises CFAPIError if the server refuses."""
        if not uid:
            raise ValueError("uid must be set to cancel an order")
        params = [("uid", uid), ("tradeable", tradeable), ("unit", unit)]
        self._call("/api/cancelOrder", params, auth=True)
        return True

    def get_open_orders(self) -> list[OrderInfo]:
        """All open orders; an empty or unreadable list yields []."""
        return _parse_open_orders(self._call("/api/openOrders", auth=True))

    def get_trades(self, number: int = 100) -> list[TradeInfo]:
        """The last ``number`` matched orders (the server caps this at 100)."""
        payload = self._call("/api/trades", [("number", int(number))], auth=True)
        return _parse_trades(payload)


# ---------------------------------------------------------------------------
# v1 endpoints – async
# ---------------------------------------------------------------------------

class AsyncCFRestClient(AsyncCFQueryClient):
    """
    Async client for the v1 API.

    Usage
    -----
        async with AsyncCFRestClient(auth) as client:
            book = await client.get_cumulative_bid_ask("F-XBT:USD-Mar15", "USD")
    """

    async def get_contracts(self) -> list[Contract]:
        return _parse_contracts(await self._call("/api/contracts"))

    async def get_ticker(self, tradeable: str, unit: str) -> Quote:
        payload = await self._call("/api/ticker", [("tradeable", tradeable), ("unit", unit)])
        return _parse_quote(payload)

    async def get_cumulative_bid_ask(self, tradeable: str, unit: str) -> CumulativeBidAsk:
        payload = await self._call("/api/cumulativebidask", [("tradeable", tradeable), ("unit", unit)])
        return _parse_cumulative_bid_ask(payload)

    async def get_cfbpi(self) -> Decimal:
        return _decimal_field(await self._call("/api/cfbpi"), "cf-bpi", "/api/cfbpi")

    async def get_volatility(self) -> Decimal:
        return _decimal_field(await self._call("/api/volatility"), "volatility", "/api/volatility")

    async def get_balance(self) -> dict[str, Decimal]:
        return project_balances(await self._call("/api/balance", auth=True))

    async def place_order(
        self,
        tradeable: str,
        unit: str,
        dir: Union[Direction, str],
        qty: int,
        price: Decimal,
        type: str = "LMT",
    ) -> str:
        params  = _place_order_params(tradeable, unit, dir, qty, price, type)
        payload = await self._call("/api/placeOrder", params, auth=True)
        return _parse_order_id(payload)

    async def place(self, order: Order) -> str:
        order.uid = await self.place_order(
            order.tradeable, order.unit, order.dir, order.qty, order.price, order.type,
        )
        return order.uid

    async def cancel_order(self, uid: str, tradeable: str, unit: str) -> bool:
        if not uid:
            raise ValueError("uid must be set to cancel an order")
        params = [("uid", uid), ("tradeable", tradeable), ("unit", unit)]
        await self._call("/api/cancelOrder", params, auth=True)
        return True

    async def get_open_orders(self) -> list[OrderInfo]:
        return _parse_open_orders(await self._call("/api/openOrders", auth=True))

    async def get_trades(self, number: int = 100) -> list[TradeInfo]:
        payload = await self._call("/api/trades", [("number", int(number))], auth=True)
        return _parse_trades(payload)
