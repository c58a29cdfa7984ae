# Overview: Service-layer operations for product returns; validation, restock and order status.

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderLine, ProductReturn
from ..models.inventory import TX_RETURN
from ..models.orders import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_RETURNED,
    ORDER_STATUS_SHIPPED,
    RETURN_STATUS_APPROVED,
    RETURN_STATUS_PROCESSED,
)
from fulfillment.time_utils import utcnow
from . import audit_service, inventory_service
from .concurrency import atomic, lock_for_update
from .errors import (
    FulfillmentError,
    InvalidAmountError,
    InvalidQuantityError,
    NotFoundError,
    ReturnNotAllowedError,
)
from .pricing_service import quantize_money, to_decimal
"""
Return Processing Invariants (authoritative)

- A return references one order line. Only orders that are Shipped or
  Delivered accept returns.
- SUM(return_quantity) of Processed returns against a line never exceeds the
  line's quantity. The order row is locked first, so two returns against the
  same order are checked one after the other.
- Returned units go back on hand through inventory_service.restock with type
  Return; the return and its restock commit or roll back together.
- When every line of the order is fully returned the order becomes Returned.

Lifecycle inside process_return (one transaction):
    Approved (inserted) -> restock -> Processed
Rejected exists for callers that decline a return; process_return never
writes it.
"""

logger = logging.getLogger(__name__)

RETURNABLE_ORDER_STATUSES = (ORDER_STATUS_DELIVERED, ORDER_STATUS_SHIPPED)


def returned_quantity(order_line_id: int) -> int:
    """Units already returned (Processed) against one order line."""
    total = (
        db.session.query(func.coalesce(func.sum(ProductReturn.return_quantity), 0))
        .filter(
            ProductReturn.order_line_id == order_line_id,
            ProductReturn.status == RETURN_STATUS_PROCESSED,
        )
        .scalar()
    )
    return int(total or 0)


def _order_date_matches(order: Order, order_date) -> bool:
    stored = order.order_date
    if isinstance(order_date, datetime):
        return stored.replace(tzinfo=None) == order_date.replace(tzinfo=None)
    if isinstance(order_date, date):
        return stored.date() == order_date
    raise ValueError("order_date must be a date or datetime")


def _find_line(order: Order, product_id: int) -> OrderLine | None:
    lines = [line for line in order.lines if line.product_id == product_id]
    if not lines:
        return None
    # Duplicate items on one order produce several lines; use the first with units left
    for line in lines:
        if returned_quantity(line.id) < line.quantity:
            return line
    return lines[0]


def _is_fully_returned(order: Order) -> bool:
    return all(returned_quantity(line.id) >= line.quantity for line in order.lines)


def process_return(
    order_id: int,
    product_id: int,
    return_quantity: int,
    reason: str | None = None,
    *,
    order_date=None,
    refund_amount=None,
    restock: bool = True,
    actor: str | None = None,
) -> ProductReturn:
    """
    Accept a return against an order line in one unit of work.

    Raises NotFoundError, ReturnNotAllowedError, InvalidQuantityError or
    InvalidAmountError with nothing written.
    """
    try:
        with atomic():
            order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
            if order is None or (order_date is not None and not _order_date_matches(order, order_date)):
                raise NotFoundError(
                    f"Order {order_id} not found", details={"order_id": order_id}
                )

            line = _find_line(order, product_id)
            if line is None:
                raise NotFoundError(
                    f"Product {product_id} is not on order {order_id}",
                    details={"order_id": order_id, "product_id": product_id},
                )

            if order.status not in RETURNABLE_ORDER_STATUSES:
                raise ReturnNotAllowedError(
                    f"Order {order_id} is {order.status}; only Shipped or Delivered orders accept returns",
                    details={"order_id": order_id, "status": order.status},
                )

            already = returned_quantity(line.id)
            remaining = line.quantity - already
            if (
                isinstance(return_quantity, bool)
                or not isinstance(return_quantity, int)
                or return_quantity <= 0
                or return_quantity > remaining
            ):
                raise InvalidQuantityError(
                    f"Return quantity must be between 1 and {remaining}",
                    details={
                        "order_line_id": line.id,
                        "requested": return_quantity,
                        "ordered": line.quantity,
                        "already_returned": already,
                    },
                )

            if refund_amount is None:
                refund = quantize_money(to_decimal(line.unit_price) * return_quantity)
            else:
                try:
                    refund = to_decimal(refund_amount)
                except (InvalidOperation, TypeError, ValueError):
                    raise InvalidAmountError(
                        "refund_amount must be a number", details={"refund_amount": refund_amount}
                    ) from None
                if not refund.is_finite() or refund < 0:
                    raise InvalidAmountError(
                        "refund_amount must not be negative", details={"refund_amount": str(refund_amount)}
                    )

            product_return = ProductReturn(
                order_id=order.id,
                order_date=order.order_date,
                order_line_id=line.id,
                product_id=product_id,
                customer_id=order.customer_id,
                return_quantity=return_quantity,
                refund_amount=refund,
                reason=reason,
                status=RETURN_STATUS_APPROVED,
                restock=restock,
                created_at=utcnow(),
                created_by=actor,
            )
            db.session.add(product_return)
            db.session.flush()

            if restock:
                tx = inventory_service.restock(
                    product_id,
                    return_quantity,
                    reference_id=product_return.id,
                    reference_type="Return",
                    transaction_type=TX_RETURN,
                    note=reason or f"Return against order {order.id}",
                    actor=actor,
                )
                product_return.inventory_transaction_id = tx.id

            product_return.status = RETURN_STATUS_PROCESSED
            product_return.processed_at = utcnow()
            db.session.flush()

            if _is_fully_returned(order):
                old_status = order.status
                order.status = ORDER_STATUS_RETURNED
                db.session.flush()
                audit_service.record(
                    "Order",
                    "UPDATE",
                    order.id,
                    old_values={"status": old_status, "total": order.total_amount},
                    new_values={"status": ORDER_STATUS_RETURNED, "total": order.total_amount},
                    actor=actor,
                )

            audit_service.record(
                "ProductReturn",
                "INSERT",
                product_return.id,
                new_values={
                    "order_id": order.id,
                    "product_id": product_id,
                    "quantity": return_quantity,
                    "refund": refund,
                    "status": product_return.status,
                },
                actor=actor,
            )
    except FulfillmentError as exc:
        logger.warning("Return on order %s rejected: %s (%s)", order_id, exc, exc.code)
        raise

    logger.info(
        "Return %s processed: %s x product %s on order %s",
        product_return.id, return_quantity, product_id, order_id,
    )
    return product_return


def get_return(return_id: int) -> ProductReturn:
    product_return = db.session.get(ProductReturn, return_id)
    if product_return is None:
        raise NotFoundError(f"Return {return_id} not found", details={"return_id": return_id})
    return product_return


def get_order_returns(order_id: int) -> list[ProductReturn]:
    return (
        db.session.query(ProductReturn)
        .filter_by(order_id=order_id)
        .order_by(ProductReturn.id)
        .all()
    )


def refund_total(order_id: int) -> Decimal:
    """Sum of refunds on Processed returns for an order."""
    total = (
        db.session.query(func.coalesce(func.sum(ProductReturn.refund_amount), 0))
        .filter(ProductReturn.order_id == order_id, ProductReturn.status == RETURN_STATUS_PROCESSED)
        .scalar()
    )
    return to_decimal(total or 0)
