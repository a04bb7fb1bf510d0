"""Domain models for pm_oracle — pure dataclasses and feed parsing, no I/O."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from src.pm_common.errors import OracleMalformedError, OraclePriceInvalidError
from src.pm_common.micro_units import to_micro_units


@dataclass(frozen=True)
class PriceQuote:
    price: Decimal        # exact mantissa * 10^expo
    micro_units: int      # floor(price * 10^6)
    publish_time: int | None = None


def _parse_mantissa(raw: Any) -> Decimal:
    # bool is an int subclass; "true" is never a price
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise OracleMalformedError(f"price mantissa is not numeric: {raw!r}")
    try:
        mantissa = Decimal(raw)
    except InvalidOperation:
        raise OracleMalformedError(f"price mantissa is not numeric: {raw!r}") from None
    if not mantissa.is_finite():
        raise OracleMalformedError(f"price mantissa is not finite: {raw!r}")
    return mantissa


def _parse_exponent(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise OracleMalformedError(f"price exponent is not an integer: {raw!r}")
    return raw


def parse_latest_price_feeds(payload: Any) -> PriceQuote:
    """Turn a ``latest_price_feeds`` response body into a PriceQuote.

    Expected shape (first element wins)::

        [{"id": "...", "price": {"price": "812345600", "expo": -8, "publish_time": 1700000000}}]

    Raises:
        OracleMalformedError: empty / non-list payload or missing fields.
        OraclePriceInvalidError: price below one micro-unit (floors to <= 0).
    """
    if not isinstance(payload, list) or len(payload) == 0:
        raise OracleMalformedError("no price feeds in response")

    feed = payload[0]
    if not isinstance(feed, dict) or not isinstance(feed.get("price"), dict):
        raise OracleMalformedError("first price feed has no price object")

    price_obj = feed["price"]
    if "price" not in price_obj or "expo" not in price_obj:
        raise OracleMalformedError("price object lacks price or expo")

    mantissa = _parse_mantissa(price_obj["price"])
    expo = _parse_exponent(price_obj["expo"])
    price = mantissa.scaleb(expo)
    micro_units = to_micro_units(price)
    if micro_units <= 0:
        raise OraclePriceInvalidError(price)

    publish_time = price_obj.get("publish_time")
    return PriceQuote(
        price=price,
        micro_units=micro_units,
        publish_time=publish_time if isinstance(publish_time, int) else None,
    )
