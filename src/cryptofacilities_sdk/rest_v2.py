"""
rest_v2.py – Clients for the v2 API (``/api/v2/...``), sync and async.

Same request pipeline, signing and envelope as v1 (see rest.py); v2
responses also carry ``serverTime`` and wrap each payload in a single
named key (``instruments``, ``sendStatus``, ``openOrders`` ...).

Timestamps passed as filters are sent as UTC ISO-8601 with millisecond
precision, e.g. ``2016-02-01T00:00:00.000Z``.  Naive datetimes are taken
to be UTC already.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .envelope import project_balances
from .errors import CFDecodeError
from .rest import AsyncCFQueryClient, CFQueryClient, _validate, _validate_list
from .signing import Params
from .types import (
    AccountInfo,
    CancelStatus,
    Fill,
    History,
    Instrument,
    OpenOrder,
    OrderBook,
    OrderType,
    Position,
    SendStatus,
    Side,
    Ticker,
    Transfer,
    Withdrawal,
)

_DATETIME = TypeAdapter(datetime)


# ---------------------------------------------------------------------------
# Helpers (shared by sync and async clients)
# ---------------------------------------------------------------------------

def format_timestamp(value: datetime) -> str:
    """Render ``value`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _since(name: str, value: Optional[datetime]) -> list[tuple[str, Any]]:
    return [(name, format_timestamp(value))] if value is not None else []


def _payload(raw: dict[str, Any], key: str, path: str) -> Any:
    if key not in raw:
        raise CFDecodeError(f"Response from {path} has no '{key}' field")
    return raw[key]


def _parse_server_time(raw: dict[str, Any]) -> datetime:
    value = _payload(raw, "serverTime", "/api/v2/instruments")
    try:
        return _DATETIME.validate_python(value)
    except ValidationError as exc:
        raise CFDecodeError(f"serverTime is not a timestamp: {value!r}") from exc


def _parse_account(raw: dict[str, Any]) -> AccountInfo:
    path    = "/api/v2/account"
    account = _payload(raw, "account", path)
    if not isinstance(account, dict):
        raise CFDecodeError(f"Response from {path} has a non-object 'account'")
    balances = project_balances(account.get("balances") or {})
    return _validate(AccountInfo, {**account, "balances": balances}, path)


def _send_order_params(
    order_type: Union[OrderType, str],
    symbol: str,
    side: Union[Side, str],
    size: int,
    limit_price: Decimal,
    stop_price: Optional[Decimal],
) -> Params:
    params: list[tuple[str, Any]] = [
        ("orderType",  order_type),
        ("symbol",     symbol),
        ("side",       side),
        ("size",       int(size)),
        ("limitPrice", Decimal(str(limit_price))),
    ]
    if stop_price is not None:
        params.append(("stopPrice", Decimal(str(stop_price))))
    return params


def _withdraw_params(target_address: str, amount: Decimal, currency: str) -> Params:
    if not target_address:
        raise ValueError("target_address must be non-empty")
    return [
        ("targetAddress", target_address),
        ("currency",      currency),
        ("amount",        Decimal(str(amount))),
    ]


# ---------------------------------------------------------------------------
# Synchronous client
# ---------------------------------------------------------------------------

class CFRestClientV2(CFQueryClient):
    """Synchronous client for the v2 API."""

    # ------------------------------------------------------------------
    # Market data (public)
    # ------------------------------------------------------------------

    def get_server_time(self) -> datetime:
        return _parse_server_time(self._call("/api/v2/instruments"))

    def get_instruments(self) -> list[Instrument]:
        path = "/api/v2/instruments"
        return _validate_list(Instrument, _payload(self._call(path), "instruments", path), path)

    def get_tickers(self) -> list[Ticker]:
        path = "/api/v2/tickers"
        return _validate_list(Ticker, _payload(self._call(path), "tickers", path), path)

    def get_orderbook(self, symbol: str) -> OrderBook:
        path = "/api/v2/orderbook"
        raw  = self._call(path, [("symbol", symbol)])
        return _validate(OrderBook, _payload(raw, "orderBook", path), path)

    def get_history(self, symbol: str, last_time: Optional[datetime] = None) -> list[History]:
        """Public trades for ``symbol``, optionally only those before ``last_time``."""
        path = "/api/v2/history"
        raw  = self._call(path, [("symbol", symbol)] + _since("lastTime", last_time))
        return _validate_list(History, _payload(raw, "history", path), path)

    # ------------------------------------------------------------------
    # Account & trading (private)
    # ------------------------------------------------------------------

    def get_account(self) -> AccountInfo:
        return _parse_account(self._call("/api/v2/account", auth=True))

    def send_order(
        self,
        order_type: Union[OrderType, str],
        symbol: str,
        side: Union[Side, str],
        size: int,
        limit_price: Decimal,
        stop_price: Optional[Decimal] = None,
    ) -> SendStatus:
        path   = "/api/v2/sendorder"
        params = _send_order_params(order_type, symbol, side, size, limit_price, stop_price)
        raw    = self._call(path, params, auth=True)
        return _validate(SendStatus, _payload(raw, "sendStatus", path), path)

    def cancel_order(self, order_id: str) -> CancelStatus:
        if not order_id:
            raise ValueError("order_id must be non-empty")
        path = "/api/v2/cancelorder"
        raw  = self._call(path, [("order_id", order_id)], auth=True)
        return _validate(CancelStatus, _payload(raw, "cancelStatus", path), path)

    def get_open_orders(self) -> list[OpenOrder]:
        """Open orders across all futures contracts."""
        path = "/api/v2/openorders"
        raw  = self._call(path, auth=True)
        return _validate_list(OpenOrder, _payload(raw, "openOrders", path), path)

    def get_fills(self, last_fill_time: Optional[datetime] = None) -> list[Fill]:
        path = "/api/v2/fills"
        raw  = self._call(path, _since("lastFillTime", last_fill_time), auth=True)
        return _validate_list(Fill, _payload(raw, "fills", path), path)

    def get_open_positions(self) -> list[Position]:
        path = "/api/v2/openpositions"
        raw  = self._call(path, auth=True)
        return _validate_list(Position, _payload(raw, "openPositions", path), path)

    def withdraw(self, target_address: str, amount: Decimal, currency: str = "xbt") -> Withdrawal:
        """Withdraw ``amount`` of ``currency`` to an external address."""
        path = "/api/v2/withdrawal"
        raw  = self._call(path, _withdraw_params(target_address, amount, currency), auth=True)
        return _validate(Withdrawal, _payload(raw, "withdrawal", path), path)

    def get_transfers(self, last_transfer_time: Optional[datetime] = None) -> list[Transfer]:
        path = "/api/v2/transfers"
        raw  = self._call(path, _since("lastTransferTime", last_transfer_time), auth=True)
        return _validate_list(Transfer, _payload(raw, "transfers", path), path)


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

class AsyncCFRestClientV2(AsyncCFQueryClient):
    """Async client for the v2 API."""

    async def get_server_time(self) -> datetime:
        return _parse_server_time(await self._call("/api/v2/instruments"))

    async def get_instruments(self) -> list[Instrument]:
        path = "/api/v2/instruments"
        return _validate_list(Instrument, _payload(await self._call(path), "instruments", path), path)

    async def get_tickers(self) -> list[Ticker]:
        path = "/api/v2/tickers"
        return _validate_list(Ticker, _payload(await self._call(path), "tickers", path), path)

    async def get_orderbook(self, symbol: str) -> OrderBook:
        path = "/api/v2/orderbook"
        raw  = await self._call(path, [("symbol", symbol)])
        return _validate(OrderBook, _payload(raw, "orderBook", path), path)

    async def get_history(self, symbol: str, last_time: Optional[datetime] = None) -> list[History]:
        path = "/api/v2/history"
        raw  = await self._call(path, [("symbol", symbol)] + _since("lastTime", last_time))
        return _validate_list(History, _payload(raw, "history", path), path)

    async def get_account(self) -> AccountInfo:
        return _parse_account(await self._call("/api/v2/account", auth=True))

    async def send_order(
        self,
        order_type: Union[OrderType, str],
        symbol: str,
        side: Union[Side, str],
        size: int,
        limit_price: Decimal,
        stop_price: Optional[Decimal] = None,
    ) -> SendStatus:
        path   = "/api/v2/sendorder"
        params = _send_order_params(order_type, symbol, side, size, limit_price, stop_price)
        raw    = await self._call(path, params, auth=True)
        return _validate(SendStatus, _payload(raw, "sendStatus", path), path)

    async def cancel_order(self, order_id: str) -> CancelStatus:
        if not order_id:
            raise ValueError("order_id must be non-empty")
        path = "/api/v2/cancelorder"
        raw  = await self._call(path, [("order_id", order_id)], auth=True)
        return _validate(CancelStatus, _payload(raw, "cancelStatus", path), path)

    async def get_open_orders(self) -> list[OpenOrder]:
        path = "/api/v2/openorders"
        raw  = await self._call(path, auth=True)
        return _validate_list(OpenOrder, _payload(raw, "openOrders", path), path)

    async def get_fills(self, last_fill_time: Optional[datetime] = None) -> list[Fill]:
        path = "/api/v2/fills"
        raw  = await self._call(path, _since("lastFillTime", last_fill_time), auth=True)
        return _validate_list(Fill, _payload(raw, "fills", path), path)

    async def get_open_positions(self) -> list[Position]:
        path = "/api/v2/openpositions"
        raw  = await self._call(path, auth=True)
        return _validate_list(Position, _payload(raw, "openPositions", path), path)

    async def withdraw(self, target_address: str, amount: Decimal, currency: str = "xbt") -> Withdrawal:
        path = "/api/v2/withdrawal"
        raw  = await self._call(path, _withdraw_params(target_address, amount, currency), auth=True)
        return _validate(Withdrawal, _payload(raw, "withdrawal", path), path)

    async def get_transfers(self, last_transfer_time: Optional[datetime] = None) -> list[Transfer]:
        path = "/api/v2/transfers"
        raw  = await self._call(path, _since("lastTransferTime", last_transfer_time), auth=True)
        return _validate_list(Transfer, _payload(raw, "transfers", path), path)
