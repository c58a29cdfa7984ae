# Overview: Service-layer operations for orders; atomic order placement and status transitions.

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import Order, OrderLine
from ..models.inventory import TX_RETURN
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
)
from fulfillment.time_utils import utcnow
from . import audit_service, inventory_service, pricing_service, return_service, totals_service
from .concurrency import atomic, lock_for_update
from .directory_service import (
    ADDRESS_BILLING,
    ADDRESS_SHIPPING,
    SqlAddressDirectory,
    SqlCatalog,
    SqlCustomerDirectory,
)
from .errors import (
    CustomerInvalidError,
    FulfillmentError,
    IdempotencyConflictError,
    InsufficientStockError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    NotFoundError,
    ProductInvalidError,
)
"""
Order Processing Invariants (authoritative)

Placement (process_order) is one unit of work:
- Everything is validated before anything is written: customer, items,
  products, stock, addresses, amounts, in that order.
- Product rows are locked in ascending id order before stock is checked and
  stay locked until commit, so the stock that was checked is the stock that
  gets reserved.
- Stock is checked per product with quantities summed across duplicate items.
  If any product is short the whole order is refused and every short product
  is listed; there is no partial reservation.
- Lines are written, each line reserves its stock through inventory_service,
  then order totals are recalculated explicitly and the order is audited.

Status flow:
    Pending -> Processing -> Shipped -> Delivered
    Pending | Processing -> Cancelled   (reserved stock goes back on hand)
    Shipped | Delivered  -> Returned    (return_service only)
"""

logger = logging.getLogger(__name__)


ALLOWED_STATUS_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_PROCESSING, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_PROCESSING: {ORDER_STATUS_SHIPPED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_SHIPPED: {ORDER_STATUS_DELIVERED},
}


@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class OrderResult:
    order_id: int
    total: Decimal
    order: Order
    created: bool = True


def _coerce_item(raw: Any, index: int) -> OrderItem:
    if isinstance(raw, OrderItem):
        product_id, quantity, unit_price = raw.product_id, raw.quantity, raw.unit_price
    elif isinstance(raw, dict):
        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        unit_price = raw.get("unit_price")
    else:
        try:
            product_id, quantity, unit_price = raw
        except (TypeError, ValueError):
            raise InvalidQuantityError(
                f"items[{index}] must be (product_id, quantity, unit_price)", details={"index": index}
            ) from None

    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise ProductInvalidError(f"items[{index}].product_id must be an integer", details={"index": index})
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(
            f"items[{index}].quantity must be a positive integer",
            details={"index": index, "quantity": quantity},
        )
    try:
        price = pricing_service.to_decimal(unit_price)
    except (InvalidOperation, TypeError, ValueError):
        price = None
    if price is None or not price.is_finite() or price <= 0:
        raise InvalidQuantityError(
            f"items[{index}].unit_price must be a positive amount",
            details={"index": index, "unit_price": str(unit_price)},
        )
    return OrderItem(product_id=product_id, quantity=quantity, unit_price=price)


def _non_negative_amount(value, label: str) -> Decimal:
    try:
        amount = pricing_service.to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"{label} must be a number", details={label: value}) from None
    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(f"{label} must not be negative", details={label: str(value)})
    return amount


def _check_address(addresses, address_id, customer_id: int, kind: str) -> None:
    if address_id is None:
        return
    info = addresses.resolve(address_id, customer_id, kind)
    if info is None or not info.is_active:
        raise InvalidAddressError(
            f"Invalid or inactive {kind} address {address_id} for customer {customer_id}",
            details={"address_id": address_id, "kind": kind},
        )


def _find_by_idempotency_key(key: str, customer_id: int) -> Order | None:
    existing = db.session.query(Order).filter_by(idempotency_key=key).first()
    if existing is None:
        return None
    if existing.customer_id != customer_id:
        raise IdempotencyConflictError(
            "Idempotency key already used by a different customer",
            details={"idempotency_key": key},
        )
    return existing


def process_order(
    customer_id: int,
    items: Iterable,
    *,
    shipping_address_id: int | None = None,
    billing_address_id: int | None = None,
    shipping_method: str = pricing_service.METHOD_STANDARD,
    destination_zone: str | None = None,
    tax_rate=None,
    shipping_amount=0,
    discount_amount=0,
    idempotency_key: str | None = None,
    actor: str | None = None,
    customers=None,
    addresses=None,
    catalog=None,
) -> OrderResult:
    """
    Validate, price and persist an order, reserving its stock, in one unit of work.

    Raises a FulfillmentError subclass with nothing written when any check
    fails. With an idempotency_key that this customer already used, returns
    the existing order unchanged.
    """
    customers = customers or SqlCustomerDirectory()
    addresses = addresses or SqlAddressDirectory()
    catalog = catalog or SqlCatalog()

    try:
        with atomic():
            if idempotency_key is not None:
                existing = _find_by_idempotency_key(idempotency_key, customer_id)
                if existing is not None:
                    logger.info(
                        "Order %s returned for repeated idempotency key %s", existing.id, idempotency_key
                    )
                    return OrderResult(
                        order_id=existing.id, total=existing.total_amount, order=existing, created=False
                    )

            # 1. Customer
            if not customers.is_active(customer_id):
                raise CustomerInvalidError(
                    f"Customer {customer_id} not found or inactive", details={"customer_id": customer_id}
                )

            # 2. Items and products
            order_items = [_coerce_item(raw, i) for i, raw in enumerate(items or [])]
            if not order_items:
                raise InvalidQuantityError("Order must contain at least one item")

            requested: dict[int, int] = {}
            for item in order_items:
                requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

            locked = inventory_service.lock_products(requested.keys())
            for product_id in sorted(requested):
                info = catalog.product_info(product_id)
                if product_id not in locked or info is None or not info.is_active:
                    raise ProductInvalidError(
                        f"Product {product_id} not found or inactive", details={"product_id": product_id}
                    )

            # 3. Stock, aggregated per product
            short = [
                {
                    "product_id": product_id,
                    "requested": requested[product_id],
                    "available": locked[product_id].stock_quantity,
                }
                for product_id in sorted(requested)
                if requested[product_id] > locked[product_id].stock_quantity
            ]
            if short:
                raise InsufficientStockError(
                    "Insufficient stock for product(s) "
                    + ", ".join(str(row["product_id"]) for row in short),
                    details={"products": short},
                )

            # 4. Addresses
            _check_address(addresses, shipping_address_id, customer_id, ADDRESS_SHIPPING)
            _check_address(addresses, billing_address_id, customer_id, ADDRESS_BILLING)

            # 5. Shipping selection and amounts
            if shipping_method not in pricing_service.SHIPPING_RATES:
                raise ValueError(f"unknown shipping method: {shipping_method}")
            if destination_zone is not None and destination_zone not in pricing_service.ZONE_MULTIPLIERS:
                raise ValueError(f"unknown shipping zone: {destination_zone}")

            rate =current_app.config["DEFAULT_TAX_RATE"] if tax_rate is None else tax_rate
            rate = _non_negative_amount(rate, "tax_rate")
            shipping = _non_negative_amount(shipping_amount, "shipping_amount")
            discount = _non_negative_amount(discount_amount, "discount_amount")

            line_totals = [totals_service.line_total(item.quantity, item.unit_price, 0) for item in order_items]
            totals = pricing_service.order_totals(line_totals, rate, shipping, discount)
            if totals.total_amount < 0:
                raise InvalidAmountError(
                    "Discount exceeds order value",
                    details={"discount_amount": str(discount), "total_before_discount": str(totals.total_amount + discount)},
                )

            order_date = utcnow()
            expected_delivery = None
            if destination_zone is not None:
                expected_delivery = pricing_service.delivery_estimate(order_date, shipping_method, destination_zone)

            # 6. Persist header and lines
            order = Order(
                customer_id=customer_id,
                order_date=order_date,
                status=ORDER_STATUS_PENDING,
                payment_status="Pending",
                shipping_address_id=shipping_address_id,
                billing_address_id=billing_address_id,
                shipping_method=shipping_method,
                destination_zone=destination_zone,
                expected_delivery_date=expected_delivery,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                shipping_amount=totals.shipping_amount,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                idempotency_key=idempotency_key,
            )
            db.session.add(order)
            db.session.flush()

            lines = []
            for item, total in zip(order_items, line_totals):
                line = OrderLine(
                    order_id=order.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount_amount=Decimal("0"),
                    line_total=total,
                )
                db.session.add(line)
                lines.append(line)
            db.session.flush()

            # 7. Reserve stock
            for line in lines:
                tx = inventory_service.reserve_stock(
                    line.product_id,
                    line.quantity,
                    reference_id=order.id,
                    reference_type="Order",
                    actor=actor,
                )
                line.inventory_transaction_id = tx.id

            # 8. Totals and audit
            db.session.refresh(order, ["lines"])
            totals_service.recalculate_order_totals(order)
            audit_service.record(
                "Order",
                "INSERT",
                order.id,
                new_values={
                    "customer_id": customer_id,
                    "status": order.status,
                    "total": order.total_amount,
                },
                actor=actor,
            )
            result = OrderResult(order_id=order.id, total=order.total_amount, order=order)
    except FulfillmentError as exc:
        logger.warning("Order for customer %s rejected: %s (%s)", customer_id, exc, exc.code)
        raise

    logger.info("Order %s placed for customer %s, total %s", result.order_id, customer_id, result.total)
    return result


def _load_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def update_order_status(order_id: int, new_status: str, *, actor: str | None = None) -> Order:
    """
    Move an order forward one step, or cancel it.

    Cancelling puts every line's reserved quantity back on hand.
    """
    if new_status not in ORDER_STATUSES:
        raise InvalidStatusTransitionError(f"Unknown order status: {new_status}", details={"status": new_status})

    with atomic():
        order = _load_order_locked(order_id)
        old_status = order.status
        if new_status not in ALLOWED_STATUS_TRANSITIONS.get(old_status, set()):
            raise InvalidStatusTransitionError(
                f"Cannot move order {order_id} from {old_status} to {new_status}",
                details={"order_id": order_id, "from": old_status, "to": new_status},
            )

        if new_status == ORDER_STATUS_CANCELLED:
            for line in sorted(order.lines, key=lambda l: l.product_id):
                inventory_service.restock(
                    line.product_id,
                    line.quantity,
                    reference_id=order.id,
                    reference_type="Cancellation",
                    transaction_type=TX_RETURN,
                    note=f"Order {order.id} cancelled",
                    actor=actor,
                )

        order.status = new_status
        db.session.flush()
        audit_service.record(
            "Order",
            "UPDATE",
            order.id,
            old_values={"status": old_status, "total": order.total_amount},
            new_values={"status": new_status, "total": order.total_amount},
            actor=actor,
        )

    logger.info("Order %s moved from %s to %s", order_id, old_status, new_status)
    return order


def update_payment_status(order_id: int, new_status: str, *, actor: str | None = None) -> Order:
    if new_status not in PAYMENT_STATUSES:
        raise InvalidStatusTransitionError(
            f"Unknown payment status: {new_status}", details={"payment_status": new_status}
        )

    with atomic():
        order = _load_order_locked(order_id)
        old_status = order.payment_status
        order.payment_status = new_status
        db.session.flush()
        audit_service.record(
            "Order",
            "UPDATE",
            order.id,
            old_values={"payment_status": old_status},
            new_values={"payment_status": new_status},
            actor=actor,
        )

    logger.info("Order %s payment status %s -> %s", order_id, old_status, new_status)
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order_summary(order_id: int) -> dict:
    """Order header with its lines and returns, ready for JSON."""
    order = get_order(order_id)
    summary = order.to_dict()
    summary["lines"] = [line.to_dict() for line in order.lines]
    summary["returns"] = [r.to_dict() for r in sorted(order.returns, key=lambda r: r.id)]
    summary["refunded_amount"] = str(return_service.refund_total(order.id))
    return summary
