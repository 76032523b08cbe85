"""Human-readable token amounts to integer base units."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from concierge.models.agent import Balance

DEFAULT_DECIMALS = 18


def to_base_units(amount: str, decimals: int) -> str:
    """
    Convert a decimal string to base units.

    The fraction is truncated or right-padded to exactly *decimals* digits
    and the result is rendered without leading zeros. Input that is not a
    plain unsigned decimal number is returned unchanged.

    >>> to_base_units("3.5", 6)
    '3500000'
    >>> to_base_units("abc", 6)
    'abc'
    """
    whole, _, frac = amount.partition(".")
    frac = frac[:decimals].ljust(decimals, "0")
    digits = whole + frac
    if not digits.isascii() or not digits.isdigit():
        return amount
    return str(int(digits))


def _decimals_for(config: dict[str, Any], balances: Sequence[Balance]) -> int:
    source = config.get("from")
    if not isinstance(source, dict):
        return DEFAULT_DECIMALS
    token = source.get("token")
    if not isinstance(token, str) or not token:
        return DEFAULT_DECIMALS
    for balance in balances:
        if balance.asset.lower() == token.lower():
            return balance.decimals
    return DEFAULT_DECIMALS


def convert_amount_to_base_units(config: dict[str, Any], balances: Sequence[Balance]) -> None:
    """
    Rewrite ``config["fromAmount"]`` in place as base units.

    Decimals come from the balance whose ``asset`` matches ``config["from"]["token"]``
    (case-insensitive). Native assets and unmatched tokens use 18.
    """
    if "fromAmount" not in config:
        return
    value = config["fromAmount"]
    amount = value if isinstance(value, str) else _format_number(value)
    config["fromAmount"] = to_base_units(amount, _decimals_for(config, balances))


def _format_number(value: Any) -> str:
    # Shortest round-trip digits, expanded out of exponent form (1e-07).
    if isinstance(value, float):
        text = format(Decimal(repr(value)), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text or "0"
    return str(value)
