"""
types.py – Pydantic v2 models for Crypto Facilities API payloads.

The wire format uses camelCase keys (``lastTradingDayAndTime``,
``unfilledSize``) with a handful of snake_case or abbreviated exceptions
(``order_id``, ``af``, ``pv``).  Every model accepts both the wire alias
and the Python field name, so tests and callers can build instances
either way.

Prices, sizes and amounts are Decimal.  Response bodies are parsed with
``json.loads(..., parse_float=Decimal)`` (see envelope.py) so no value
ever passes through a binary float.

Deserialisation
---------------
    contracts = [Contract.model_validate(c) for c in payload["contracts"]]
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum, unique
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# One book level: [price, quantity]
Level = Annotated[list[Decimal], Field(min_length=2)]


class _WireModel(BaseModel):
    """Base for models whose JSON keys are camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

@unique
class Direction(str, Enum):
    """v1 order direction."""
    BUY  = "Buy"
    SELL = "Sell"


@unique
class Side(str, Enum):
    """v2 order side."""
    BUY  = "buy"
    SELL = "sell"


@unique
class OrderType(str, Enum):
    """v2 order types accepted by sendorder."""
    LIMIT = "lmt"
    STOP  = "stp"


# ---------------------------------------------------------------------------
# v1 – market data
# ---------------------------------------------------------------------------

class Contract(_WireModel):
    """
    A listed futures contract.

    unit                      : currency of denomination (always "USD")
    tradeable                 : contract name, e.g. "F-XBT:USD-Mar15"
    last_trading_day_and_time : UTC last trading time, e.g. "2015-03-20 16:00:00"
    contract_size             : minimum trade size
    tick_size                 : price increment
    suspended                 : True while trading is suspended
    """
    unit:                      str
    tradeable:                 str
    last_trading_day_and_time: str
    contract_size:             int
    tick_size:                 Decimal
    suspended:                 bool = False


class Quote(BaseModel):
    """Level 1: best bid and ask."""
    ask: Decimal
    bid: Decimal


class CumulativeBidAsk(BaseModel):
    """
    Level 2 with cumulative volume; each level is ``[price, cumulative_qty]``.

    bids are sorted by descending price; asks keep the server's order.
    """
    bids: list[Level] = []
    asks: list[Level] = []


# ---------------------------------------------------------------------------
# v1 – orders & trades
# ---------------------------------------------------------------------------

class Order(BaseModel):
    """
    A v1 order ready to be placed with CFRestClient.place().

    ``uid`` is filled in once the exchange has accepted the order.
    """
    tradeable: str
    unit:      str
    dir:       Direction
    qty:       int
    price:     Decimal
    type:      str           = "LMT"
    uid:       Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)


class OrderInfo(_WireModel):
    """An open v1 order."""
    uid:       str
    timestamp: str
    unit:      str
    tradeable: str
    dir:       str
    qty:       int
    filled:    int = 0
    type:      str = "LMT"
    lmt:       Decimal


class TradeInfo(_WireModel):
    """A matched v1 order."""
    uid:       str
    timestamp: str
    unit:      str
    tradeable: str
    dir:       str
    qty:       int
    price:     Decimal


# ---------------------------------------------------------------------------
# v2 – market data
# ---------------------------------------------------------------------------

class Instrument(_WireModel):
    """A futures contract or index listed by the v2 API."""
    symbol:            str
    type:              str
    tradeable:         bool               = False
    underlying:        Optional[str]      = None
    last_trading_time: Optional[datetime] = None
    tick_size:         Optional[Decimal]  = None
    contract_size:     Optional[int]      = None


class Ticker(_WireModel):
    """v2 ticker; index tickers only carry symbol/last/last_time."""
    symbol:     str
    suspended:  bool               = False
    last:       Optional[Decimal]  = None
    last_time:  Optional[datetime] = None
    last_size:  Optional[int]      = None
    open24h:    Optional[Decimal]  = None
    high24h:    Optional[Decimal]  = None
    low24h:     Optional[Decimal]  = None
    vol24h:     Optional[Decimal]  = None
    bid:        Optional[Decimal]  = None
    bid_size:   Optional[int]      = None
    ask:        Optional[Decimal]  = None
    ask_size:   Optional[int]      = None
    mark_price: Optional[Decimal]  = None


class OrderBook(_WireModel):
    """v2 order book; each level is ``[price, size]``."""
    bids: list[Level] = []
    asks: list[Level] = []


class History(_WireModel):
    """A public v2 trade."""
    time:     datetime
    trade_id: int = Field(alias="trade_id")
    price:    Decimal
    size:     int


# ---------------------------------------------------------------------------
# v2 – account
# ---------------------------------------------------------------------------

class Auxiliary(_WireModel):
    available_funds: Decimal = Field(alias="af")
    pnl:             Decimal = Field(alias="pnl")
    portfolio_value: Decimal = Field(alias="pv")
    usd:             Decimal = Field(default=Decimal(0), alias="usd")


class MarginRequirements(_WireModel):
    initial_margin:        Decimal = Field(alias="im")
    maintenance_margin:    Decimal = Field(alias="mm")
    liquidation_threshold: Decimal = Field(alias="lt")
    termination_threshold: Decimal = Field(alias="tt")


class TriggerEstimates(MarginRequirements):
    """Price levels at which each margin threshold would be hit."""


class AccountInfo(_WireModel):
    balances:            dict[str, Decimal] = {}
    auxiliary:           Optional[Auxiliary]          = None
    margin_requirements: Optional[MarginRequirements] = None
    trigger_estimates:   Optional[TriggerEstimates]   = None


# ---------------------------------------------------------------------------
# v2 – orders, fills, positions, transfers
# ---------------------------------------------------------------------------

class SendStatus(_WireModel):
    received_time: Optional[datetime] = None
    status:        str
    order_id:      Optional[str] = Field(default=None, alias="order_id")


class CancelStatus(_WireModel):
    received_time: Optional[datetime] = None
    status:        str


class OpenOrder(_WireModel):
    received_time: datetime
    status:        str
    order_id:      str = Field(alias="order_id")
    order_type:    str
    symbol:        str
    side:          str
    unfilled_size: int
    filled_size:   int
    limit_price:   Decimal
    stop_price:    Optional[Decimal] = None


class Fill(_WireModel):
    fill_time: datetime
    order_id:  str = Field(alias="order_id")
    fill_id:   str = Field(alias="fill_id")
    symbol:    str
    side:      str
    size:      int
    price:     Decimal


class Position(_WireModel):
    fill_time: datetime
    symbol:    str
    side:      str
    size:      int
    price:     Decimal


class Withdrawal(_WireModel):
    received_time: Optional[datetime] = None
    status:        str
    transfer_id:   Optional[str] = Field(default=None, alias="transfer_id")


class Transfer(_WireModel):
    received_time:  datetime
    completed_time: Optional[datetime] = None
    status:         str
    transfer_id:    str           = Field(alias="transfer_id")
    transaction_id: Optional[str] = Field(default=None, alias="transaction_id")
    target_address: str
    transfer_type:  str
    amount:         Decimal
