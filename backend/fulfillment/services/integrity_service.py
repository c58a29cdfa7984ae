# Overview: Batch detection and repair of data-integrity violations across orders, stock and ledger.

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Callable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Category,
    Customer,
    InventoryTransaction,
    Order,
    OrderLine,
    Product,
    ShippingAddress,
)
from ..models.inventory import TX_ADJUSTMENT
from ..models.orders import ORDER_STATUS_CANCELLED
from fulfillment.time_utils import utcnow, to_utc_z
from . import audit_service, inventory_service, totals_service
from .concurrency import atomic, lock_for_update
from .pricing_service import to_decimal

logger = logging.getLogger(__name__)

SEVERITY_CRITICAL = "Critical"
SEVERITY_WARNING = "Warning"
SEVERITY_INFO = "Info"
SEVERITY_ERROR = "Error"

_SEVERITY_RANK = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 1, SEVERITY_INFO: 2, SEVERITY_ERROR: 3}

DEFAULT_ACTOR = "INTEGRITY_CHECK"


@dataclass
class IntegrityIssue:
    severity: str
    entity: str
    description: str
    count: int
    fix_applied: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IntegrityReport:
    checked_at: datetime
    issues: list[IntegrityIssue] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.issues

    @property
    def critical_remaining(self) -> list[IntegrityIssue]:
        return [i for i in self.issues if i.severity == SEVERITY_CRITICAL and not i.fix_applied]

    def to_dict(self) -> dict:
        return {
            "checked_at": to_utc_z(self.checked_at),
            "issue_count": len(self.issues),
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass(frozen=True)
class _Check:
    severity: str
    entity: str
    description: str
    find: Callable[[], list]
    repair: Callable[[list, str], bool] | None = None


# -- detection -----------------------------------------------------------------
# Each finder returns the ids of the offending rows.

def _orphaned_order_lines() -> list[int]:
    rows = (
        db.session.query(OrderLine.id)
        .outerjoin(Order, Order.id == OrderLine.order_id)
        .filter(Order.id.is_(None))
        .order_by(OrderLine.id)
        .all()
    )
    return [r.id for r in rows]


def _orders_without_lines() -> list[int]:
    rows = (
        db.session.query(Order.id)
        .outerjoin(OrderLine, OrderLine.order_id == Order.id)
        .filter(OrderLine.id.is_(None), Order.status != ORDER_STATUS_CANCELLED)
        .order_by(Order.id)
        .all()
    )
    return [r.id for r in rows]


def _products_with_negative_stock() -> list[int]:
    rows = db.session.query(Product.id).filter(Product.stock_quantity < 0).order_by(Product.id).all()
    return [r.id for r in rows]


def _products_with_missing_category() -> list[int]:
    rows = (
        db.session.query(Product.id)
        .outerjoin(Category, Category.id == Product.category_id)
        .filter(Category.id.is_(None))
        .order_by(Product.id)
        .all()
    )
    return [r.id for r in rows]


def _orders_with_subtotal_mismatch() -> list[int]:
    epsilon = to_decimal(current_app.config.get("INTEGRITY_EPSILON", Decimal("0.01")))
    rows = (
        db.session.query(
            Order.id,
            Order.subtotal,
            func.coalesce(func.sum(OrderLine.line_total), 0).label("line_sum"),
        )
        .outerjoin(OrderLine, OrderLine.order_id == Order.id)
        .group_by(Order.id, Order.subtotal)
        .order_by(Order.id)
        .all()
    )
    return [
        r.id for r in rows
        if abs(to_decimal(r.subtotal or 0) - to_decimal(r.line_sum or 0)) > epsilon
    ]


def _ledger_rows_not_reconciling() -> list[int]:
    rows = (
        db.session.query(InventoryTransaction.id)
        .filter(
            InventoryTransaction.previous_stock + InventoryTransaction.quantity_delta
            != InventoryTransaction.new_stock
        )
        .order_by(InventoryTransaction.id)
        .all()
    )
    return [r.id for r in rows]


def _customers_without_shipping_address() -> list[int]:
    has_address = (
        db.session.query(ShippingAddress.id)
        .filter(ShippingAddress.customer_id == Customer.id, ShippingAddress.is_active.is_(True))
        .exists()
    )
    rows = (
        db.session.query(Customer.id)
        .filter(Customer.is_active.is_(True), ~has_address)
        .order_by(Customer.id)
        .all()
    )
    return [r.id for r in rows]


# -- repair --------------------------------------------------------------------
# Each repair runs one unit of work per row so one bad row cannot block the rest.

def _repair_subtotals(order_ids: list, actor: str) -> bool:
    ok = True
    for order_id in order_ids:
        try:
            with atomic():
                order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
                if order is not None:
                    totals_service.recalculate_order_totals(order, actor=actor, audit=True)
        except Exception:
            logger.exception("Could not recalculate totals for order %s", order_id)
            ok = False
    return ok


def _repair_negative_stock(product_ids: list, actor: str) -> bool:
    ok = True
    for product_id in product_ids:
        try:
            with atomic():
                product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
                if product is None or product.stock_quantity >= 0:
                    continue
                previous = product.stock_quantity
                # restock() accepts inactive products; adjust() does not
                inventory_service.restock(
                    product_id,
                    -previous,
                    reference_type="IntegrityFix",
                    transaction_type=TX_ADJUSTMENT,
                    note="Negative stock clamped to zero",
                    actor=actor,
                )
                audit_service.record(
                    "Product",
                    "FIX",
                    product_id,
                    old_values={"stock": previous},
                    new_values={"stock": 0},
                    actor=actor,
                )
            logger.info("Clamped negative stock of product %s (%s) to 0", product_id, previous)
        except Exception:
            logger.exception("Could not clamp negative stock for product %s", product_id)
            ok = False
    return ok


CHECKS = (
    _Check(SEVERITY_CRITICAL, "OrderLine", "Orphaned order lines (no matching order)", _orphaned_order_lines),
    _Check(SEVERITY_WARNING, "Order", "Orders without any order lines", _orders_without_lines),
    _Check(
        SEVERITY_CRITICAL, "Product", "Products with negative stock",
        _products_with_negative_stock, _repair_negative_stock,
    ),
    _Check(SEVERITY_CRITICAL, "Product", "Products referencing a missing category", _products_with_missing_category),
    _Check(
        SEVERITY_WARNING, "Order", "Orders whose subtotal does not match their lines",
        _orders_with_subtotal_mismatch, _repair_subtotals,
    ),
    _Check(
        SEVERITY_WARNING, "InventoryTransaction", "Ledger rows where previous + delta != new",
        _ledger_rows_not_reconciling,
    ),
    _Check(
        SEVERITY_INFO, "Customer", "Active customers without an active shipping address",
        _customers_without_shipping_address,
    ),
)


def check_integrity(*, fix: bool = False, actor: str = DEFAULT_ACTOR) -> IntegrityReport:
    """
    Run every check and, with fix=True, repair what can be repaired.

    Findings are reported, never raised. A check that itself fails is
    reported as an Error issue and the remaining checks still run.
    """
    report = IntegrityReport(checked_at=utcnow())

    for check in CHECKS:
        try:
            ids = check.find()
        except Exception as exc:
            db.session.rollback()
            logger.exception("Integrity check failed: %s", check.description)
            report.issues.append(
                IntegrityIssue(SEVERITY_ERROR, check.entity, f"{check.description}: check failed ({exc})", 0)
            )
            continue

        if not ids:
            continue

        issue = IntegrityIssue(check.severity, check.entity, check.description, len(ids))
        if fix and check.repair is not None:
            try:
                issue.fix_applied = check.repair(ids, actor)
            except Exception:
                db.session.rollback()
                logger.exception("Integrity repair failed: %s", check.description)
                issue.fix_applied = False
        report.issues.append(issue)

    # Release the read transaction the finders opened
    db.session.rollback()

    report.issues.sort(key=lambda i: (_SEVERITY_RANK.get(i.severity, 99), i.entity, i.description))
    logger.info(
        "Integrity check finished: %s issue(s), %s critical unresolved",
        len(report.issues), len(report.critical_remaining),
    )
    return report
