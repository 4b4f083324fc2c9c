from datetime import datetime
from decimal import Decimal
import pytest
from storefront.common.formatters import format_delivery_price, format_inr, format_order_date, parse_price


@pytest.mark.parametrize("raw, expected", [
    ("₹1,299", Decimal("1299")),
    ("$ 45.50", Decimal("45.50")),
    (850, Decimal(850)),
    (12.5, Decimal("12.5")),
    (None, Decimal(0)),
    ("call us", Decimal(0)),
    (float("nan"), Decimal(0)),
    (float("inf"), Decimal(0)),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


@pytest.mark.parametrize("amount, expected", [
    (100000, "₹1,00,000"),
    (10000000, "₹1,00,00,000"),
    (999, "₹999"),
    (1299.5, "₹1,299.5"),
    (12.345, "₹12.35"),
    (0, "₹0"),
    (-50, "-₹50"),
    ("₹2,500.00", "₹2,500"),
])
def test_format_inr(amount, expected):
    assert format_inr(amount) == expected


def test_zero_delivery_price_is_free():
    assert format_delivery_price(0) == "Free"
    assert format_delivery_price("0.00") == "Free"
    assert format_delivery_price(99) == "₹99"


def test_format_order_date():
    assert format_order_date("2026-10-17T19:33:00Z") == "17 Oct 2026, 07:33 pm"
    assert format_order_date(datetime(2026, 1, 5, 9, 5)) == "5 Jan 2026, 09:05 am"
    assert format_order_date(None) == ""
    assert format_order_date("someday") == "someday"
