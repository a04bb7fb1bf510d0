"""Fixed-point integer units shared with the on-chain contract.

Prices are quoted in micro-units (6 decimals): 8.123456 USD -> 8123456.
Stakes and payouts are in octas (8 decimals): 1 APT -> 100000000.
Conversions go through Decimal and truncate toward -inf, never float.
"""

from decimal import ROUND_FLOOR, Decimal

PRICE_DECIMALS = 6
AMOUNT_DECIMALS = 8

_PRICE_SCALE = Decimal(10) ** PRICE_DECIMALS
_AMOUNT_SCALE = 10**AMOUNT_DECIMALS


def to_micro_units(price: Decimal | int | str) -> int:
    """floor(price * 10^6): Decimal("1.0000005") -> 1000000."""
    value = price if isinstance(price, Decimal) else Decimal(price)
    return int((value * _PRICE_SCALE).to_integral_value(rounding=ROUND_FLOOR))


def micro_units_to_display(micro: int) -> str:
    """8123456 -> '$8.123456', -1500000 -> '-$1.500000'."""
    sign = "-" if micro < 0 else ""
    abs_micro = abs(micro)
    return f"{sign}${abs_micro // 10**PRICE_DECIMALS:,}.{abs_micro % 10**PRICE_DECIMALS:06d}"


def octas_to_display(octas: int) -> str:
    """200000000 -> '2.00000000 APT'."""
    sign = "-" if octas < 0 else ""
    abs_octas = abs(octas)
    return f"{sign}{abs_octas // _AMOUNT_SCALE:,}.{abs_octas % _AMOUNT_SCALE:08d} APT"
