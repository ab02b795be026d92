"""
tests/test_rest_v2.py – Unit tests for the synchronous v2 client.

All tests run offline: requests.request is monkeypatched with a recorder.
They verify:
  1. Each endpoint unwraps its named payload key into typed models.
  2. Account balances are projected to Decimal; aliases (af, pv, im ...) map.
  3. Request parameters (sendorder, withdrawal, fills filters) are sent
     in the documented order with UTC millisecond timestamps.
  4. A missing payload key raises CFDecodeError; error envelopes CFAPIError.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

import pytest
import requests

from cryptofacilities_sdk.auth import CFAuth, CFEnv
from cryptofacilities_sdk.errors import CFAPIError, CFDecodeError
from cryptofacilities_sdk.ratelimit import RateLimiter
from cryptofacilities_sdk.rest_v2 import CFRestClientV2, format_timestamp
from cryptofacilities_sdk.types import OrderType, Side

TEST_SECRET = "Y3J5cHRvZmFjaWxpdGllcy10ZXN0LXNlY3JldC1rZXk="
TEST_NONCE  = 1_456_000_000_000
BASE        = CFEnv.CONFORMANCE.base_url
SERVER_TIME = "2016-02-25T09:45:53.818Z"


class FakeResponse:
    def __init__(self, text: str) -> None:
        self.text        = text
        self.status_code = 200


class Recorder:
    def __init__(self) -> None:
        self.bodies: list[str] = []
        self.calls:  list[dict[str, Any]] = []

    def __call__(
        self,
        method: str,
        url: str,
        data: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FakeResponse:
        self.calls.append({"url": url, "data": data, "headers": headers or {}})
        return FakeResponse(self.bodies.pop(0))

    def respond(self, **fields: Any) -> None:
        self.bodies.append(json.dumps({"result": "success", "serverTime": SERVER_TIME, **fields}))


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    rec = Recorder()
    monkeypatch.setattr(requests, "request", rec)
    return rec


@pytest.fixture
def client() -> CFRestClientV2:
    auth = CFAuth("my-key", TEST_SECRET, CFEnv.CONFORMANCE, nonce_provider=lambda: TEST_NONCE)
    return CFRestClientV2(auth, RateLimiter(0))


# ---------------------------------------------------------------------------
# format_timestamp
# ---------------------------------------------------------------------------

class TestFormatTimestamp:
    def test_millisecond_precision(self) -> None:
        value = datetime(2016, 2, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2016-02-01T12:30:05.123Z"

    def test_naive_taken_as_utc(self) -> None:
        assert format_timestamp(datetime(2016, 2, 1)) == "2016-02-01T00:00:00.000Z"

    def test_converted_to_utc(self) -> None:
        cet = timezone(timedelta(hours=1))
        assert format_timestamp(datetime(2016, 2, 1, 1, 0, tzinfo=cet)) == "2016-02-01T00:00:00.000Z"


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------

class TestMarketData:
    def test_server_time(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(instruments=[])
        assert client.get_server_time() == datetime(2016, 2, 25, 9, 45, 53, 818000, tzinfo=timezone.utc)

    def test_instruments(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(instruments=[
            {
                "symbol": "FI_XBTUSD_180615",
                "type": "futures_inverse",
                "tradeable": True,
                "underlying": "rr_xbtusd",
                "lastTradingTime": "2018-06-15T16:00:00.000Z",
                "tickSize": 0.5,
                "contractSize": 1,
            },
            {"symbol": "in_xbtusd", "type": "spot index"},
        ])
        instruments = client.get_instruments()

        assert recorder.calls[0]["url"] == BASE + "/api/v2/instruments"
        assert [i.symbol for i in instruments] == ["FI_XBTUSD_180615", "in_xbtusd"]
        assert instruments[0].tick_size == Decimal("0.5")
        assert instruments[0].tradeable is True
        assert instruments[1].tradeable is False

    def test_tickers(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(tickers=[
            {
                "symbol": "fi_xbtusd_180615",
                "suspended": False,
                "last": 4200.5,
                "lastTime": "2018-06-01T10:00:00.000Z",
                "lastSize": 5,
                "open24h": 4100,
                "bid": 4200,
                "bidSize": 10,
                "ask": 4201,
                "askSize": 3,
                "markPrice": 4200.25,
            },
            {"symbol": "in_xbtusd", "last": 4199.9, "lastTime": "2018-06-01T10:00:00.000Z"},
        ])
        tickers = client.get_tickers()

        assert tickers[0].last == Decimal("4200.5")
        assert tickers[0].mark_price == Decimal("4200.25")
        assert tickers[0].open24h == Decimal("4100")
        assert tickers[1].bid is None

    def test_orderbook(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(orderBook={"bids": [[4200, 10]], "asks": [[4201, 3], [4202, 1]]})
        book = client.get_orderbook("fi_xbtusd_180615")

        assert recorder.calls[0]["url"] == BASE + "/api/v2/orderbook?symbol=fi_xbtusd_180615"
        assert "APIKey" not in recorder.calls[0]["headers"]
        assert book.bids == [[Decimal(4200), Decimal(10)]]
        assert len(book.asks) == 2

    def test_history_with_last_time(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(history=[
            {"time": "2018-06-01T10:00:00.000Z", "trade_id": 7, "price": 4200.5, "size": 2},
        ])
        history = client.get_history("fi_xbtusd_180615", last_time=datetime(2018, 6, 1))

        assert recorder.calls[0]["data"] == (
            b"symbol=fi_xbtusd_180615&lastTime=2018-06-01T00:00:00.000Z"
        )
        assert history[0].trade_id == 7
        assert history[0].price == Decimal("4200.5")

    def test_missing_payload_key(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond()
        with pytest.raises(CFDecodeError, match="tickers"):
            client.get_tickers()


# ---------------------------------------------------------------------------
# Account & trading
# ---------------------------------------------------------------------------

class TestAccount:
    def test_account(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(account={
            "balances": {"xbt": 1.25, "fi_xbtusd_180615": -100},
            "auxiliary": {"af": 1.1, "pnl": -0.05, "pv": 1.2},
            "marginRequirements": {"im": 0.1, "mm": 0.05, "lt": 0.04, "tt": 0.03},
            "triggerEstimates": {"im": 3000, "mm": 2900, "lt": 2800, "tt": 2700},
        })
        account = client.get_account()

        assert "APIKey" in recorder.calls[0]["headers"]
        assert account.balances == {"xbt": Decimal("1.25"), "fi_xbtusd_180615": Decimal("-100")}
        assert account.auxiliary is not None
        assert account.auxiliary.available_funds == Decimal("1.1")
        assert account.auxiliary.portfolio_value == Decimal("1.2")
        assert account.auxiliary.usd == 0
        assert account.margin_requirements is not None
        assert account.margin_requirements.initial_margin == Decimal("0.1")
        assert account.trigger_estimates is not None
        assert account.trigger_estimates.termination_threshold == Decimal("2700")

    def test_non_object_balances_raise_decode_error(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(account={"balances": [1, 2]})
        with pytest.raises(CFDecodeError, match="JSON object"):
            client.get_account()

    def test_empty_orderbook_level_raises_decode_error(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(orderBook={"bids": [[]], "asks": []})
        with pytest.raises(CFDecodeError):
            client.get_orderbook("fi_xbtusd_180615")

    def test_send_order_params(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(sendStatus={
            "receivedTime": "2018-06-01T10:00:00.000Z",
            "status": "placed",
            "order_id": "c18f0c17-9971-40e6-8e5b-10df05d422f0",
        })
        status = client.send_order(OrderType.LIMIT, "fi_xbtusd_180615", Side.BUY, 1, Decimal("4000.5"))

        assert recorder.calls[0]["data"] == (
            b"orderType=lmt&symbol=fi_xbtusd_180615&side=buy&size=1&limitPrice=4000.5"
        )
        assert status.status == "placed"
        assert status.order_id == "c18f0c17-9971-40e6-8e5b-10df05d422f0"

    def test_send_stop_order_adds_stop_price(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(sendStatus={"status": "placed"})
        client.send_order("stp", "fi_xbtusd_180615", "sell", 2, Decimal("3900"), Decimal("3950"))
        assert recorder.calls[0]["data"].endswith(b"&limitPrice=3900&stopPrice=3950")

    def test_cancel_order(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(cancelStatus={"status": "cancelled"})
        assert client.cancel_order("abc").status == "cancelled"
        assert recorder.calls[0]["data"] == b"order_id=abc"

    def test_cancel_requires_order_id(self, client: CFRestClientV2, recorder: Recorder) -> None:
        with pytest.raises(ValueError):
            client.cancel_order("")
        assert recorder.calls == []

    def test_open_orders(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(openOrders=[{
            "receivedTime": "2018-06-01T10:00:00.000Z",
            "status": "untouched",
            "order_id": "abc",
            "orderType": "lmt",
            "symbol": "fi_xbtusd_180615",
            "side": "buy",
            "unfilledSize": 3,
            "filledSize": 1,
            "limitPrice": 4000,
        }])
        orders = client.get_open_orders()
        assert orders[0].order_id == "abc"
        assert orders[0].unfilled_size == 3
        assert orders[0].stop_price is None

    def test_fills_without_filter_sends_no_body(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(fills=[{
            "fillTime": "2018-06-01T10:00:00.000Z",
            "order_id": "abc",
            "fill_id": "def",
            "symbol": "fi_xbtusd_180615",
            "side": "buy",
            "size": 1,
            "price": 4000,
        }])
        fills = client.get_fills()
        assert recorder.calls[0]["data"] is None
        assert fills[0].fill_id == "def"

    def test_fills_filter(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(fills=[])
        client.get_fills(last_fill_time=datetime(2018, 6, 1, 10, tzinfo=timezone.utc))
        assert recorder.calls[0]["data"] == b"lastFillTime=2018-06-01T10:00:00.000Z"

    def test_open_positions(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(openPositions=[{
            "fillTime": "2018-06-01T10:00:00.000Z",
            "symbol": "fi_xbtusd_180615",
            "side": "long",
            "size": 5,
            "price": 4000,
        }])
        assert client.get_open_positions()[0].side == "long"

    def test_withdraw_params(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(withdrawal={"status": "accepted", "transfer_id": "t-1"})
        result = client.withdraw("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2", Decimal("0.5"))

        assert recorder.calls[0]["url"].startswith(BASE + "/api/v2/withdrawal?")
        assert recorder.calls[0]["data"] == (
            b"targetAddress=1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2&currency=xbt&amount=0.5"
        )
        assert result.transfer_id == "t-1"

    def test_withdraw_requires_address(self, client: CFRestClientV2, recorder: Recorder) -> None:
        with pytest.raises(ValueError):
            client.withdraw("", Decimal("1"))
        assert recorder.calls == []

    def test_transfers(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.respond(transfers=[{
            "receivedTime": "2018-06-01T10:00:00.000Z",
            "status": "processed",
            "transfer_id": "t-1",
            "targetAddress": "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2",
            "transferType": "withdrawal",
            "amount": 0.5,
        }])
        transfers = client.get_transfers()

        assert recorder.calls[0]["url"] == BASE + "/api/v2/transfers"
        assert transfers[0].amount == Decimal("0.5")
        assert transfers[0].completed_time is None

    def test_error_envelope(self, client: CFRestClientV2, recorder: Recorder) -> None:
        recorder.bodies.append('{"result":"error","serverTime":"' + SERVER_TIME + '","error":"apiLimitExceeded"}')
        with pytest.raises(CFAPIError) as excinfo:
            client.get_account()
        assert excinfo.value.message == "apiLimitExceeded"
