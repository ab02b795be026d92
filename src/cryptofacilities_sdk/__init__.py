"""
Crypto Facilities SDK – Python client for the Crypto Facilities derivatives REST API.

Provides:
  - Unified façades                    (client.py    → CFClient, AsyncCFClient)
  - Param encoding + HMAC signing      (signing.py   → encode_params, sign_request)
  - Credentials / environments         (auth.py      → CFAuth, CFEnv)
  - Cross-call rate limiting           (ratelimit.py → RateLimiter, AsyncRateLimiter)
  - Response envelope decoding         (envelope.py  → decode_envelope)
  - Typed Pydantic v2 models           (types.py)
  - v1 REST clients                    (rest.py      → CFRestClient, AsyncCFRestClient)
  - v2 REST clients                    (rest_v2.py   → CFRestClientV2, AsyncCFRestClientV2)
  - Error hierarchy                    (errors.py    → CFError and subclasses)

Quickstart
----------
    from cryptofacilities_sdk import CFClient, CFEnv

    client = CFClient(api_key="...", api_secret="...", env=CFEnv.CONFORMANCE)
    for contract in client.v1.get_contracts():
        print(contract.tradeable, client.v1.get_ticker(contract.tradeable, contract.unit))
"""

from .types import (
    # Enums
    Direction,
    Side,
    OrderType,
    # v1
    Contract,
    Quote,
    CumulativeBidAsk,
    Order,
    OrderInfo,
    TradeInfo,
    # v2 market data
    Instrument,
    Ticker,
    OrderBook,
    History,
    # v2 account
    Auxiliary,
    MarginRequirements,
    TriggerEstimates,
    AccountInfo,
    # v2 trading
    SendStatus,
    CancelStatus,
    OpenOrder,
    Fill,
    Position,
    Withdrawal,
    Transfer,
)
from .errors import CFError, CFTransportError, CFConfigError, CFAPIError, CFDecodeError
from .signing import (
    NonceProvider,
    SignedRequest,
    encode_params,
    default_nonce,
    decode_secret,
    sign_request,
    build_auth_headers,
)
from .auth import CFAuth, CFEnv
from .ratelimit import RateLimiter, AsyncRateLimiter
from .envelope import Envelope, decode_envelope, decode_json_field, project_balances
from .rest import CFQueryClient, AsyncCFQueryClient, CFRestClient, AsyncCFRestClient
from .rest_v2 import CFRestClientV2, AsyncCFRestClientV2
from .client import CFClient, AsyncCFClient

__all__ = [
    # Enums
    "Direction",
    "Side",
    "OrderType",
    # v1 models
    "Contract",
    "Quote",
    "CumulativeBidAsk",
    "Order",
    "OrderInfo",
    "TradeInfo",
    # v2 models
    "Instrument",
    "Ticker",
    "OrderBook",
    "History",
    "Auxiliary",
    "MarginRequirements",
    "TriggerEstimates",
    "AccountInfo",
    "SendStatus",
    "CancelStatus",
    "OpenOrder",
    "Fill",
    "Position",
    "Withdrawal",
    "Transfer",
    # Errors
    "CFError",
    "CFTransportError",
    "CFConfigError",
    "CFAPIError",
    "CFDecodeError",
    # Signing
    "NonceProvider",
    "SignedRequest",
    "encode_params",
    "default_nonce",
    "decode_secret",
    "sign_request",
    "build_auth_headers",
    # Auth
    "CFAuth",
    "CFEnv",
    # Rate limiting
    "RateLimiter",
    "AsyncRateLimiter",
    # Envelope
    "Envelope",
    "decode_envelope",
    "decode_json_field",
    "project_balances",
    # REST
    "CFQueryClient",
    "AsyncCFQueryClient",
    "CFRestClient",
    "AsyncCFRestClient",
    "CFRestClientV2",
    "AsyncCFRestClientV2",
    # Unified façades
    "CFClient",
    "AsyncCFClient",
]

__version__ = "0.1.0"
