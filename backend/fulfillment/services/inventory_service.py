# Overview: Service-layer operations for the inventory ledger; the only writer of product stock.

# backend/fulfillment/services/inventory_service.py

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..models.inventory import (
    TX_ADJUSTMENT,
    TX_DAMAGE,
    TX_RESTOCK,
    TX_RETURN,
    TX_SALE,
    TX_TRANSFER,
)
from fulfillment.time_utils import utcnow
from . import audit_service
from .concurrency import atomic, lock_for_update, lock_rows
from .errors import InsufficientStockError, InvalidQuantityError, ProductInvalidError
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Product.stock_quantity is the current on-hand figure.
- It changes only through this module. Each change appends exactly one
  InventoryTransaction in the same DB transaction, with
  previous_stock + quantity_delta == new_stock == stock_quantity afterwards.

Business invariants:
- Stock may never go negative. A mutation that would make it negative is
  refused before anything is written.
- Sale (reservation) requires an active product. Restock does not, so
  returns of discontinued products can still go back on the shelf.
- Adjustment/Damage/Transfer corrections require an active product.

Locking:
- Every mutation reads the product row under SELECT ... FOR UPDATE, then
  validates, then writes stock, then writes the ledger row. Concurrent
  callers on the same product serialize on that lock; there is no
  optimistic retry.

Unit of work:
- reserve_stock / restock / adjust flush but never commit; they run inside
  the caller's transaction. adjust_inventory / restock_inventory are the
  self-committing entry points for callers that have no transaction of their
  own.

Alerts:
- A mutation that takes stock from above reorder_level to at-or-below it
  appends a STOCK_ALERT audit entry in the same transaction.
"""

logger = logging.getLogger(__name__)

RESTOCK_TYPES = (TX_RETURN, TX_RESTOCK, TX_ADJUSTMENT)
ADJUST_TYPES = (TX_ADJUSTMENT, TX_RESTOCK, TX_DAMAGE, TX_TRANSFER)

STOCK_STATUS_OUT = "Out of Stock"
STOCK_STATUS_LOW = "Low Stock"
STOCK_STATUS_IN = "In Stock"


def _load_product_locked(product_id: int) -> Product | None:
    query = db.session.query(Product).filter_by(id=product_id)
    return lock_for_update(query).first()


def lock_products(product_ids) -> dict[int, Product]:
    """Lock product rows in ascending id order; returns {id: Product} for those found."""
    return lock_rows(Product, product_ids)


def _require_positive_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantityError(f"{label} must be a positive integer", details={label: value})
    return value


def _append_ledger_row(
    product: Product,
    *,
    quantity_delta: int,
    transaction_type: str,
    reference_id=None,
    reference_type: str | None = None,
    note: str | None = None,
    actor: str | None = None,
) -> InventoryTransaction:
    """Write stock and its ledger row. Caller holds the product lock."""
    previous_stock = product.stock_quantity
    new_stock = previous_stock + quantity_delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock for product {product.id}: current stock {previous_stock}, change {quantity_delta}",
            details={
                "product_id": product.id,
                "available": previous_stock,
                "requested_change": quantity_delta,
            },
        )

    product.stock_quantity = new_stock

    tx = InventoryTransaction(
        product_id=product.id,
        type=transaction_type,
        quantity_delta=quantity_delta,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_type=reference_type,
        note=note,
        actor=actor,
        occurred_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()

    if previous_stock > product.reorder_level >= new_stock:
        audit_service.record(
            "Product",
            "STOCK_ALERT",
            product.id,
            old_values={"stock": previous_stock},
            new_values={"stock": new_stock, "reorder_level": product.reorder_level},
            actor=actor,
        )
        logger.info(
            "Product %s fell to %s, at or below reorder level %s",
            product.id, new_stock, product.reorder_level,
        )

    return tx


def reserve_stock(
    product_id: int,
    quantity: int,
    *,
    reference_id=None,
    reference_type: str = "Order",
    actor: str | None = None,
) -> InventoryTransaction:
    """
    Reserve stock for a sale: lock, validate, decrement, append a Sale row.

    Returns the ledger row (the reservation's commit token). Raises
    ProductInvalidError, InvalidQuantityError or InsufficientStockError with
    nothing written.
    """
    _require_positive_int(quantity, "quantity")

    product = _load_product_locked(product_id)
    if product is None:
        raise ProductInvalidError(f"Product {product_id} not found", details={"product_id": product_id})
    if not product.is_active:
        raise ProductInvalidError(f"Product {product_id} is inactive", details={"product_id": product_id})
    if quantity > product.stock_quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {product_id}: requested {quantity}, available {product.stock_quantity}",
            details={"product_id": product_id, "requested": quantity, "available": product.stock_quantity},
        )

    return _append_ledger_row(
        product,
        quantity_delta=-quantity,
        transaction_type=TX_SALE,
        reference_id=reference_id,
        reference_type=reference_type,
        note=f"Order processing - {reference_type} {reference_id}" if reference_id is not None else None,
        actor=actor,
    )


def restock(
    product_id: int,
    quantity: int,
    *,
    reference_id=None,
    reference_type: str | None = None,
    transaction_type: str = TX_RESTOCK,
    note: str | None = None,
    actor: str | None = None,
) -> InventoryTransaction:
    """Put `quantity` units back on hand (return, restock or upward adjustment)."""
    if transaction_type not in RESTOCK_TYPES:
        raise ValueError(f"invalid restock transaction type: {transaction_type}")
    _require_positive_int(quantity, "quantity")

    product = _load_product_locked(product_id)
    if product is None:
        raise ProductInvalidError(f"Product {product_id} not found", details={"product_id": product_id})

    return _append_ledger_row(
        product,
        quantity_delta=quantity,
        transaction_type=transaction_type,
        reference_id=reference_id,
        reference_type=reference_type,
        note=note,
        actor=actor,
    )


def adjust(
    product_id: int,
    delta: int,
    reason: str | None = None,
    *,
    transaction_type: str = TX_ADJUSTMENT,
    reference_id=None,
    actor: str | None = None,
) -> InventoryTransaction:
    """
    Apply a signed manual correction (counts, damage, transfers).

    Raises InsufficientStockError if the result would be negative.
    """
    if transaction_type not in ADJUST_TYPES:
        raise ValueError(f"invalid adjustment transaction type: {transaction_type}")
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise InvalidQuantityError("delta must be a non-zero integer", details={"delta": delta})

    product = _load_product_locked(product_id)
    if product is None or not product.is_active:
        raise ProductInvalidError(
            f"Product {product_id} not found or inactive", details={"product_id": product_id}
        )

    return _append_ledger_row(
        product,
        quantity_delta=delta,
        transaction_type=transaction_type,
        reference_id=reference_id,
        reference_type="Manual",
        note=reason or "Manual inventory adjustment",
        actor=actor,
    )


def adjust_inventory(
    *,
    product_id: int,
    delta: int,
    reason: str | None = None,
    transaction_type: str = TX_ADJUSTMENT,
    reference_id=None,
    actor: str | None = None,
) -> InventoryTransaction:
    """Self-committing adjust()."""
    with atomic():
        tx = adjust(
            product_id,
            delta,
            reason,
            transaction_type=transaction_type,
            reference_id=reference_id,
            actor=actor,
        )
    logger.info("Adjusted product %s by %s (%s)", product_id, delta, transaction_type)
    return tx


def restock_inventory(
    *,
    product_id: int,
    quantity: int,
    reference_id=None,
    reference_type: str | None = None,
    note: str | None = None,
    actor: str | None = None,
) -> InventoryTransaction:
    """Self-committing restock() of type Restock."""
    with atomic():
        tx = restock(
            product_id,
            quantity,
            reference_id=reference_id,
            reference_type=reference_type,
            transaction_type=TX_RESTOCK,
            note=note,
            actor=actor,
        )
    logger.info("Restocked product %s with %s units", product_id, quantity)
    return tx


def get_stock(product_id: int) -> int:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductInvalidError(f"Product {product_id} not found", details={"product_id": product_id})
    return product.stock_quantity


def list_inventory_transactions(product_id: int, *, limit: int = 200) -> list[InventoryTransaction]:
    return (
        db.session.query(InventoryTransaction)
        .filter_by(product_id=product_id)
        .order_by(InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )


def stock_status(product: Product) -> str:
    if product.stock_quantity <= 0:
        return STOCK_STATUS_OUT
    if product.stock_quantity <= product.reorder_level:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_IN


def list_low_stock_products(
    *,
    category_id: int | None = None,
    include_out_of_stock: bool = True,
) -> list[dict]:
    """
    Active products at or below their reorder level.

    Out-of-stock products come first, then ascending stock.
    """
    q = db.session.query(Product).filter(
        Product.is_active.is_(True),
        Product.stock_quantity <= Product.reorder_level,
    )
    if not include_out_of_stock:
        q = q.filter(Product.stock_quantity > 0)
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    products = q.order_by(Product.stock_quantity, Product.id).all()
    products.sort(key=lambda p: 0 if p.stock_quantity <= 0 else 1)

    return [
        {
            "product_id": p.id,
            "sku": p.sku,
            "name": p.name,
            "category_id": p.category_id,
            "stock_quantity": p.stock_quantity,
            "reorder_level": p.reorder_level,
            "stock_status": stock_status(p),
            "suggested_order_quantity": p.reorder_level - p.stock_quantity,
        }
        for p in products
    ]
