"""
examples/quickstart.py – End-to-end demo of the Crypto Facilities SDK.

Walks through:
  1. Public market data (contracts, ticker, cumulative order book, CF-BPI)
  2. Signed account calls (balance, open orders)
  3. Placing and cancelling a far-from-market limit order
  4. The same market data through the async client and the v2 API

HOW TO RUN
----------
    export CF_API_KEY="your_api_key"
    export CF_API_SECRET="base64 secret"
    python examples/quickstart.py

    Everything targets the CONFORMANCE environment by default.
    Set CF_ENV=production to go live.  Without credentials only the
    public part runs.
"""

from __future__ import annotations

import asyncio
import logging
import os
from decimal import Decimal

from cryptofacilities_sdk import (
    AsyncCFClient,
    CFAPIError,
    CFClient,
    Direction,
    Order,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s – %(message)s",
)
logger = logging.getLogger("quickstart")

# ---------------------------------------------------------------------------
# Config – read from environment variables
# ---------------------------------------------------------------------------

API_KEY    = os.environ.get("CF_API_KEY",    "")
API_SECRET = os.environ.get("CF_API_SECRET", "")
ENV        = os.environ.get("CF_ENV",        "conformance")   # or "production"


# ---------------------------------------------------------------------------
# Part 1 – sync client: market data + order management
# ---------------------------------------------------------------------------

def sync_demo() -> None:
    logger.info("=== sync demo ===")
    client = CFClient(API_KEY, API_SECRET, ENV)

    contracts = client.v1.get_contracts()
    logger.info("%d contracts listed", len(contracts))
    if not contracts:
        return
    contract = contracts[0]

    quote = client.v1.get_ticker(contract.tradeable, contract.unit)
    logger.info("%s  bid=%s  ask=%s", contract.tradeable, quote.bid, quote.ask)

    book = client.v1.get_cumulative_bid_ask(contract.tradeable, contract.unit)
    logger.info("Top 3 bids: %s", book.bids[:3])
    logger.info("CF-BPI: %s  volatility: %s", client.v1.get_cfbpi(), client.v1.get_volatility())

    if not client.auth.has_credentials:
        logger.info("No credentials – skipping private endpoints")
        return

    logger.info("Balances: %s", client.v1.get_balance())

    # Far below the market so it rests on the book
    price = (quote.bid / 2).quantize(contract.tick_size)
    order = Order(tradeable=contract.tradeable, unit=contract.unit, dir=Direction.BUY, qty=1, price=price)
    try:
        uid = client.v1.place(order)
        logger.info("Placed order %s at %s", uid, price)
        logger.info("Open orders: %d", len(client.v1.get_open_orders()))
        client.v1.cancel_order(uid, contract.tradeable, contract.unit)
        logger.info("Cancelled %s", uid)
    except CFAPIError as exc:
        logger.error("Order rejected by the exchange: %s", exc.message)


# ---------------------------------------------------------------------------
# Part 2 – async client: v1 and v2 through one rate limiter
# ---------------------------------------------------------------------------

async def async_demo() -> None:
    logger.info("=== async demo ===")
    async with AsyncCFClient(API_KEY, API_SECRET, ENV) as client:
        contracts, instruments, tickers = await asyncio.gather(
            client.v1.get_contracts(),
            client.v2.get_instruments(),
            client.v2.get_tickers(),
        )
        logger.info(
            "%d v1 contracts, %d v2 instruments, %d tickers",
            len(contracts), len(instruments), len(tickers),
        )
        marked = [t for t in tickers if t.mark_price is not None]
        total  = sum((t.mark_price for t in marked), Decimal(0))
        if marked:
            logger.info("Average mark price across %d contracts: %s", len(marked), total / len(marked))


if __name__ == "__main__":
    sync_demo()
    asyncio.run(async_demo())
