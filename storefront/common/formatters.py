import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union
from storefront.common import logger

Number = Union[int, float, str, Decimal]

RUPEE = "₹"
_PRICE_NOISE = re.compile(r"[₹$,\s]")
_TWO_PLACES = Decimal("0.01")


def parse_price(value: Optional[Number], item_ref: Optional[str] = None) -> Decimal:
    """Turn a catalog price (number or text such as "₹1,299") into a Decimal.

    Unparseable or non-finite prices count as zero.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        value = int(value)
    try:
        if isinstance(value, str):
            amount = Decimal(_PRICE_NOISE.sub("", value))
        elif isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, ValueError):
        logger.warning("price.unparseable", extra={"item_ref": item_ref, "raw_price": str(value)})
        return Decimal(0)
    if not amount.is_finite():
        logger.warning("price.not_finite", extra={"item_ref": item_ref, "raw_price": str(value)})
        return Decimal(0)
    return amount


def _group_indian(digits: str) -> str:
    # en-IN grouping: last three digits, then pairs (1,00,00,000)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_inr(value: Optional[Number]) -> str:
    """INR for display: en-IN grouping, no forced decimals, at most two."""
    amount = parse_price(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):f}".partition(".")
    fraction = fraction.rstrip("0")
    text = _group_indian(whole)
    if fraction:
        text = f"{text}.{fraction}"
    return f"{sign}{RUPEE}{text}"


def format_delivery_price(value: Optional[Number]) -> str:
    if parse_price(value) == 0:
        return "Free"
    return format_inr(value)


def format_order_date(value: Union[str, datetime, None]) -> str:
    """en-IN short date with time, e.g. "17 Oct 2026, 07:33 pm"."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("date.unparseable", extra={"raw_date": value})
            return value
    meridiem = "am" if value.hour < 12 else "pm"
    return f"{value.day} {value.strftime('%b')} {value.year}, {value.strftime('%I:%M')} {meridiem}"
