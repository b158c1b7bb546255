"""
Money — display formatting and parsing of platform price strings.

The platform formats prices server-side (often as HTML). Display estimates
made client-side must match that format byte-for-byte, so both directions
go through the same PriceFormat.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum

_TAG = re.compile(r"<[^>]+>")


class CurrencyPosition(Enum):
    LEFT = "left"
    RIGHT = "right"
    LEFT_SPACE = "left_space"
    RIGHT_SPACE = "right_space"


@dataclass(frozen=True, slots=True)
class PriceFormat:
    """
    Currency display settings, mirroring the platform's store settings.

    Example:
        fmt = PriceFormat(symbol="€", position=CurrencyPosition.RIGHT_SPACE,
                          thousand_separator=".", decimal_separator=",")
        format_price(Decimal("1234.5"), fmt)  # "1.234,50 €"
    """

    symbol: str = "$"
    position: CurrencyPosition = CurrencyPosition.LEFT
    decimals: int = 2
    thousand_separator: str = ","
    decimal_separator: str = "."


DEFAULT_FORMAT = PriceFormat()


def format_price(amount: Decimal, fmt: PriceFormat = DEFAULT_FORMAT) -> str:
    """Format an amount the way the platform does (sign before symbol)."""
    exponent = Decimal(1).scaleb(-fmt.decimals)
    quantized = amount.quantize(exponent, rounding=ROUND_HALF_UP)
    negative = quantized < 0
    digits = f"{abs(quantized):.{fmt.decimals}f}"

    whole, _, fraction = digits.partition(".")
    groups: list[str] = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    number = fmt.thousand_separator.join(groups)
    if fmt.decimals > 0:
        number = f"{number}{fmt.decimal_separator}{fraction}"

    match fmt.position:
        case CurrencyPosition.LEFT:
            text = f"{fmt.symbol}{number}"
        case CurrencyPosition.RIGHT:
            text = f"{number}{fmt.symbol}"
        case CurrencyPosition.LEFT_SPACE:
            text = f"{fmt.symbol} {number}"
        case CurrencyPosition.RIGHT_SPACE:
            text = f"{number} {fmt.symbol}"

    return f"-{text}" if negative else text


def plain_price(display: str) -> str:
    """Strip markup and entities from a platform price string."""
    text = html.unescape(_TAG.sub("", display))
    return text.replace("\xa0", " ").strip()


def parse_price(display: str, fmt: PriceFormat = DEFAULT_FORMAT) -> Decimal:
    """
    Read the amount back out of a display string.

    Raises ValueError when the string holds no number.
    """
    text = plain_price(display).replace(fmt.symbol, "")
    if fmt.thousand_separator:
        text = text.replace(fmt.thousand_separator, "")
    text = text.replace(fmt.decimal_separator, ".").replace(" ", "")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Not a price: {display!r}") from e


__all__ = (
    "CurrencyPosition",
    "PriceFormat",
    "DEFAULT_FORMAT",
    "format_price",
    "plain_price",
    "parse_price",
)
