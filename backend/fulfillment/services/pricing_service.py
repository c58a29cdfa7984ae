# Overview: Pure pricing rules: loyalty tier, discounts, shipping cost, delivery date, order totals.

"""
Pricing rules.

Everything here except quote_line_discount is a pure function of its
arguments: no DB access, no clock. Money is Decimal throughout; floats and
strings are converted through str() so 0.1 stays 0.1.

ROUNDING:
- discount_amount and tax: 4 decimal places (ROUND_HALF_UP), matching the
  Numeric(12, 4) money columns
- shipping_cost: 2 decimal places
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from flask import current_app


TIER_BRONZE = "Bronze"
TIER_SILVER = "Silver"
TIER_GOLD = "Gold"
TIER_PLATINUM = "Platinum"

TIERS = (TIER_BRONZE, TIER_SILVER, TIER_GOLD, TIER_PLATINUM)

TIER_BASE_DISCOUNT = {
    TIER_PLATINUM: Decimal("0.15"),
    TIER_GOLD: Decimal("0.10"),
    TIER_SILVER: Decimal("0.05"),
    TIER_BRONZE: Decimal("0"),
}

MAX_DISCOUNT = Decimal("0.25")
BULK_DISCOUNT_LARGE = Decimal("0.05")   # quantity >= 10
BULK_DISCOUNT_SMALL = Decimal("0.02")   # quantity >= 5
PROMO_DISCOUNT = Decimal("0.03")

METHOD_ECONOMY = "Economy"
METHOD_STANDARD = "Standard"
METHOD_EXPRESS = "Express"
METHOD_OVERNIGHT = "Overnight"

# method -> (base rate, per-pound rate past the first pound)
SHIPPING_RATES = {
    METHOD_ECONOMY: (Decimal("3.99"), Decimal("0.89")),
    METHOD_STANDARD: (Decimal("5.99"), Decimal("1.25")),
    METHOD_EXPRESS: (Decimal("12.99"), Decimal("2.50")),
    METHOD_OVERNIGHT: (Decimal("24.99"), Decimal("4.99")),
}

ZONE_LOCAL = "LOCAL"
ZONE_REGIONAL = "REGIONAL"
ZONE_NATIONAL = "NATIONAL"
ZONE_INTERNATIONAL = "INTERNATIONAL"

ZONE_MULTIPLIERS = {
    ZONE_LOCAL: Decimal("0.8"),
    ZONE_REGIONAL: Decimal("1.0"),
    ZONE_NATIONAL: Decimal("1.3"),
    ZONE_INTERNATIONAL: Decimal("2.5"),
}

MIN_SHIPPING = Decimal("1.99")
MAX_DOMESTIC_SHIPPING = Decimal("99.99")

METHOD_TRANSIT_DAYS = {
    METHOD_OVERNIGHT: 1,
    METHOD_EXPRESS: 2,
    METHOD_STANDARD: 5,
    METHOD_ECONOMY: 7,
}

ZONE_EXTRA_DAYS = {
    ZONE_LOCAL: 0,
    ZONE_REGIONAL: 1,
    ZONE_NATIONAL: 2,
    ZONE_INTERNATIONAL: 5,
}

FOUR_PLACES = Decimal("0.0001")
TWO_PLACES = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def customer_tier(total_spent, order_count: int) -> str:
    """Loyalty tier from lifetime spend and order count."""
    spent = to_decimal(total_spent)
    if spent >= 10000 or (spent >= 5000 and order_count >= 50):
        return TIER_PLATINUM
    if spent >= 2500 or (spent >= 1000 and order_count >= 20):
        return TIER_GOLD
    if spent >= 500 or (spent >= 250 and order_count >= 5):
        return TIER_SILVER
    return TIER_BRONZE


def discount_percent(tier: str, quantity: int, is_promo_category: bool, *, extra=0) -> Decimal:
    """
    Discount rate for one line, as a fraction in [0, 0.25].

    tier base + bulk bump (5% at 10+, 2% at 5+) + 3% promotional + `extra`
    (a caller-defined rule amount), capped at 25%.
    """
    if tier not in TIER_BASE_DISCOUNT:
        raise ValueError(f"unknown tier: {tier}")

    percent = TIER_BASE_DISCOUNT[tier]
    if quantity >= 10:
        percent += BULK_DISCOUNT_LARGE
    elif quantity >= 5:
        percent += BULK_DISCOUNT_SMALL
    if is_promo_category:
        percent += PROMO_DISCOUNT
    percent += to_decimal(extra)

    if percent > MAX_DISCOUNT:
        return MAX_DISCOUNT
    if percent < 0:
        return Decimal("0")
    return percent


def discount_amount(unit_price, quantity: int, percent) -> Decimal:
    return quantize_money(to_decimal(unit_price) * quantity * to_decimal(percent))


def _zone_multiplier(zone: str) -> Decimal:
    try:
        return ZONE_MULTIPLIERS[zone]
    except KeyError:
        raise ValueError(f"unknown shipping zone: {zone}") from None


def shipping_cost(weight_lb, zone: str, method: str) -> Decimal:
    """
    Shipping charge for a parcel.

    base(method) * zone + max(0, weight - 1) * per_lb(method) * zone, at least
    1.99 and, for domestic zones, at most 99.99.
    """
    try:
        base_rate, weight_rate = SHIPPING_RATES[method]
    except KeyError:
        raise ValueError(f"unknown shipping method: {method}") from None
    multiplier = _zone_multiplier(zone)

    weight = to_decimal(weight_lb)
    if weight < 0:
        raise ValueError("weight must not be negative")

    cost = base_rate * multiplier
    if weight > 1:
        cost += (weight - 1) * weight_rate * multiplier

    if cost < MIN_SHIPPING:
        cost = MIN_SHIPPING
    if zone != ZONE_INTERNATIONAL and cost > MAX_DOMESTIC_SHIPPING:
        cost = MAX_DOMESTIC_SHIPPING

    return cost.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def delivery_estimate(order_date, method: str, zone: str) -> date:
    """Order date plus transit business days (Mon-Fri), stepping one calendar day at a time."""
    try:
        remaining = METHOD_TRANSIT_DAYS[method]
    except KeyError:
        raise ValueError(f"unknown shipping method: {method}") from None
    if zone not in ZONE_EXTRA_DAYS:
        raise ValueError(f"unknown shipping zone: {zone}")
    remaining += ZONE_EXTRA_DAYS[zone]

    current = order_date.date() if isinstance(order_date, datetime) else order_date
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def order_totals(lines: Iterable, tax_rate, shipping_amount, discount_amount) -> OrderTotals:
    """
    Header totals from line totals.

    `lines` is an iterable of line totals (Decimal-like) or objects with a
    `line_total` attribute.
    """
    subtotal = Decimal("0")
    for line in lines:
        subtotal += to_decimal(getattr(line, "line_total", line))
    subtotal = quantize_money(subtotal)

    tax = quantize_money(subtotal * to_decimal(tax_rate))
    shipping = quantize_money(to_decimal(shipping_amount))
    discount = quantize_money(to_decimal(discount_amount))

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax,
        shipping_amount=shipping,
        discount_amount=discount,
        total_amount=subtotal + tax + shipping - discount,
    )


def quote_line_discount(
    customer_id: int,
    product_id: int,
    quantity: int,
    unit_price,
    *,
    customers=None,
    catalog=None,
) -> dict:
    """
    Tier, rate and amount of the discount a customer would get on one line.

    Reads purchase history and the product's category through the directory
    interfaces; the arithmetic is the pure functions above.
    """
    from .directory_service import SqlCatalog, SqlCustomerDirectory
    from .errors import ProductInvalidError

    customers = customers or SqlCustomerDirectory()
    catalog = catalog or SqlCatalog()

    product = catalog.product_info(product_id)
    if product is None:
        raise ProductInvalidError(f"Product {product_id} not found", details={"product_id": product_id})

    history = customers.tier_history(customer_id)
    tier = customer_tier(history.total_spent, history.order_count)
    promo_ids = current_app.config.get("PROMOTIONAL_CATEGORY_IDS", [])
    is_promo = product.category_id in promo_ids

    percent = discount_percent(tier, quantity, is_promo)
    return {
        "customer_id": customer_id,
        "product_id": product_id,
        "tier": tier,
        "is_promotional": is_promo,
        "discount_percent": percent,
        "discount_amount": discount_amount(unit_price, quantity, percent),
    }
