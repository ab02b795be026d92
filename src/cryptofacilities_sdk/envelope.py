"""
envelope.py – The response envelope shared by every Crypto Facilities endpoint.

Every response is a JSON object of the form

    {"result": "success", <endpoint payload fields...>}
    {"result": "error",   "error": "<server message>"}

decode_envelope() is the single place that interprets ``result``:
anything other than "success" raises CFAPIError carrying the server's
``error`` text unmodified.  Payload fields are only handed back on
success, so endpoint code never reads them from a failed response.

Numbers are parsed as Decimal (``parse_float=Decimal``) so prices and
balances keep the exact digits the server sent.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CFAPIError, CFDecodeError

SUCCESS = "success"

# Keys that belong to the envelope rather than to the payload
ENVELOPE_KEYS = frozenset({"result", "error", "serverTime"})


class Envelope(BaseModel):
    """The generic outer shape; endpoint payload lands in the extra fields."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    result:      Optional[str] = None
    error:       Any           = None
    server_time: Optional[str] = Field(default=None, alias="serverTime")

    @property
    def ok(self) -> bool:
        return self.result == SUCCESS


def _loads(text: str) -> Any:
    return json.loads(text, parse_float=Decimal)


def decode_envelope(text: str, path: str = "") -> dict[str, Any]:
    """
    Parse a raw response body and unwrap the envelope.

    Returns the full decoded object on success.  Raises CFAPIError when
    ``result`` is not "success", CFDecodeError when the body is not a
    JSON object.
    """
    try:
        raw = _loads(text)
    except json.JSONDecodeError as exc:
        raise CFDecodeError(f"Response from {path or 'server'} is not JSON: {exc}", body=text) from exc

    if not isinstance(raw, dict):
        raise CFDecodeError(f"Response from {path or 'server'} is not a JSON object", body=text)

    # Read raw: a failure is CFAPIError whatever JSON types the fields hold
    result = raw.get("result")
    if result != SUCCESS:
        raise CFAPIError(
            _error_text(raw.get("error")),
            result=None if result is None else str(result),
            path=path,
        )

    try:
        Envelope.model_validate(raw)
    except ValidationError as exc:
        raise CFDecodeError(f"Malformed response envelope from {path or 'server'}", body=text) from exc
    return raw


def _error_text(error: Any) -> str:
    if error is None:
        return ""
    return error if isinstance(error, str) else str(error)


def decode_json_field(payload: Mapping[str, Any], name: str) -> Any:
    """
    Decode a field whose value is itself a JSON document in a string.

    The v1 cumulative bid/ask endpoint sends its level arrays this way:
    ``{"cumulatedBids": "[[10,5],[12,3]]"}``.  A value that is already
    decoded (not a str) is returned unchanged.
    """
    if name not in payload:
        raise CFDecodeError(f"Response has no '{name}' field")
    value = payload[name]
    if not isinstance(value, str):
        return value
    try:
        return _loads(value)
    except json.JSONDecodeError as exc:
        raise CFDecodeError(f"Field '{name}' does not contain valid JSON", body=value) from exc


def project_balances(payload: Mapping[str, Any]) -> dict[str, Decimal]:
    """
    Treat every non-envelope key of ``payload`` as a balance.

    ``{"result": "success", "xbt": 1.5, "F-XBT:USD-Mar15": -3}`` becomes
    ``{"xbt": Decimal("1.5"), "F-XBT:USD-Mar15": Decimal("-3")}``.
    """
    if not isinstance(payload, Mapping):
        raise CFDecodeError(f"Balances must be a JSON object, got {type(payload).__name__}")
    balances: dict[str, Decimal] = {}
    for key, value in payload.items():
        if key in ENVELOPE_KEYS:
            continue
        try:
            balances[key] = Decimal(str(value))
        except InvalidOperation as exc:
            raise CFDecodeError(f"Balance '{key}' is not numeric: {value!r}") from exc
    return balances
