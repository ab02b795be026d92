"""
tests/test_integration.py – Integration smoke tests against the conformance environment.

These tests make real network calls.  They are skipped unless
CF_INTEGRATION=1 is set; the private-endpoint tests additionally need
conformance credentials.

HOW TO RUN
----------
    export CF_INTEGRATION=1
    export CF_API_KEY="your_api_key"
    export CF_API_SECRET="base64 secret"

    pytest tests/test_integration.py -v -m integration

WHAT THESE TESTS VERIFY
-----------------------
  1. Contracts    – Public v1 endpoint lists at least one contract
  2. Ticker       – Level 1 quote for the first contract decodes
  3. Order book   – Cumulative bids are sorted by descending price
  4. v2           – Instruments and server time decode
  5. Balance      – Signed request is accepted
  6. Open orders  – Signed request returns a list (possibly empty)

Each test is independent: failures in earlier tests don't cascade.
"""

from __future__ import annotations

import os

import pytest

from cryptofacilities_sdk import CFClient, CFEnv

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.environ.get("CF_INTEGRATION") != "1",
        reason="set CF_INTEGRATION=1 to run against the conformance environment",
    ),
]

API_KEY    = os.environ.get("CF_API_KEY", "")
API_SECRET = os.environ.get("CF_API_SECRET", "")

requires_credentials = pytest.mark.skipif(
    not (API_KEY and API_SECRET),
    reason="CF_API_KEY / CF_API_SECRET not set",
)


@pytest.fixture(scope="module")
def client() -> CFClient:
    return CFClient(API_KEY, API_SECRET, CFEnv.CONFORMANCE)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------

def test_contracts(client: CFClient) -> None:
    contracts = client.v1.get_contracts()
    assert contracts, "expected at least one listed contract"


def test_ticker(client: CFClient) -> None:
    contract = client.v1.get_contracts()[0]
    quote = client.v1.get_ticker(contract.tradeable, contract.unit)
    assert quote.ask >= 0
    assert quote.bid >= 0


def test_cumulative_bid_ask_sorted(client: CFClient) -> None:
    contract = client.v1.get_contracts()[0]
    book = client.v1.get_cumulative_bid_ask(contract.tradeable, contract.unit)
    prices = [level[0] for level in book.bids]
    assert prices == sorted(prices, reverse=True)


def test_v2_instruments(client: CFClient) -> None:
    assert client.v2.get_instruments()
    assert client.v2.get_server_time().tzinfo is not None


# ---------------------------------------------------------------------------
# Private endpoints
# ---------------------------------------------------------------------------

@requires_credentials
def test_balance(client: CFClient) -> None:
    balances = client.v1.get_balance()
    assert isinstance(balances, dict)


@requires_credentials
def test_open_orders(client: CFClient) -> None:
    assert isinstance(client.v1.get_open_orders(), list)
