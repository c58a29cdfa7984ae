# Overview: Service-layer recalculation of order header totals from their lines.

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Order
from . import audit_service
from .errors import NotFoundError
from .pricing_service import quantize_money, to_decimal
"""
Totals Invariants (authoritative)

- line_total = quantity * unit_price - discount_amount (line_total() below is
  the one place that formula lives).
- order.subtotal = SUM(line_total) over the order's lines.
- order.total_amount = subtotal + tax_amount + shipping_amount - discount_amount.

Recalculation is explicit: callers invoke recalculate_order_totals after
changing lines. There are no ORM event hooks.

tax_amount is an input here, never an output. It was fixed when the order was
priced; a stored zero stays zero.
"""

logger = logging.getLogger(__name__)


def line_total(quantity: int, unit_price, discount=0) -> Decimal:
    return quantize_money(to_decimal(unit_price) * quantity - to_decimal(discount or 0))


def compute_totals(order: Order) -> tuple[Decimal, Decimal]:
    """(subtotal, total) the order should carry given its lines."""
    subtotal = quantize_money(sum((to_decimal(line.line_total) for line in order.lines), Decimal("0")))
    total = (
        subtotal
        + to_decimal(order.tax_amount or 0)
        + to_decimal(order.shipping_amount or 0)
        - to_decimal(order.discount_amount or 0)
    )
    return subtotal, quantize_money(total)


def recalculate_order_totals(order_or_id, *, actor: str | None = None, audit: bool = False) -> Order:
    """
    Rewrite subtotal and total_amount from the order's lines.

    Runs in the caller's unit of work (flush only). With audit=True and a
    change in value, appends a FIX audit entry carrying old and new totals.
    """
    if isinstance(order_or_id, Order):
        order = order_or_id
    else:
        order = db.session.get(Order, order_or_id)
        if order is None:
            raise NotFoundError(f"Order {order_or_id} not found", details={"order_id": order_or_id})

    old_subtotal = order.subtotal
    old_total = order.total_amount
    subtotal, total = compute_totals(order)

    order.subtotal = subtotal
    order.total_amount = total
    db.session.flush()

    changed = to_decimal(old_subtotal or 0) != subtotal or to_decimal(old_total or 0) != total
    if audit and changed:
        audit_service.record(
            "Order",
            "FIX",
            order.id,
            old_values={"subtotal": old_subtotal, "total": old_total},
            new_values={"subtotal": subtotal, "total": total},
            actor=actor,
        )
        logger.info("Recalculated totals for order %s: %s -> %s", order.id, old_total, total)

    return order
