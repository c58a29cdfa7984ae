from __future__ import annotations

from ..extensions import db
from fulfillment.time_utils import to_utc_z, to_iso_date


ORDER_STATUS_PENDING = "Pending"
ORDER_STATUS_PROCESSING = "Processing"
ORDER_STATUS_SHIPPED = "Shipped"
ORDER_STATUS_DELIVERED = "Delivered"
ORDER_STATUS_CANCELLED = "Cancelled"
ORDER_STATUS_RETURNED = "Returned"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_RETURNED,
)

PAYMENT_STATUSES = ("Pending", "Authorized", "Captured", "Failed", "Refunded")

RETURN_STATUS_PENDING = "Pending"
RETURN_STATUS_APPROVED = "Approved"
RETURN_STATUS_REJECTED = "Rejected"
RETURN_STATUS_PROCESSED = "Processed"


def _money(value) -> str | None:
    return str(value) if value is not None else None


class Order(db.Model):
    """
    Customer order header.

    TOTALS INVARIANT:
        subtotal     = SUM(order_lines.line_total)
        total_amount = subtotal + tax_amount + shipping_amount - discount_amount

    Totals are written by order_service at creation time and by
    totals_service.recalculate_order_totals when asked. Nothing recalculates
    them implicitly on flush.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        db.Index("ix_orders_status_date", "status", "order_date"),
        db.UniqueConstraint("idempotency_key", name="uq_orders_idempotency_key"),
        db.CheckConstraint(
            "subtotal >= 0 AND tax_amount >= 0 AND shipping_amount >= 0 "
            "AND discount_amount >= 0 AND total_amount >= 0",
            name="ck_orders_amounts",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="Pending")

    shipping_address_id = db.Column(db.Integer, db.ForeignKey("shipping_addresses.id"), nullable=True)
    billing_address_id = db.Column(db.Integer, db.ForeignKey("billing_addresses.id"), nullable=True)
    shipping_method = db.Column(db.String(50), nullable=True)
    destination_zone = db.Column(db.String(20), nullable=True)
    expected_delivery_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    shipping_amount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    # Caller-supplied retry token; NULL for callers that do not send one
    idempotency_key = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    lines = db.relationship("OrderLine", backref="order", lazy=True, order_by="OrderLine.id")

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} total={self.total_amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_date": to_utc_z(self.order_date),
            "status": self.status,
            "payment_status": self.payment_status,
            "shipping_address_id": self.shipping_address_id,
            "billing_address_id": self.billing_address_id,
            "shipping_method": self.shipping_method,
            "destination_zone": self.destination_zone,
            "expected_delivery_date": to_iso_date(self.expected_delivery_date),
            "subtotal": _money(self.subtotal),
            "tax_amount": _money(self.tax_amount),
            "shipping_amount": _money(self.shipping_amount),
            "discount_amount": _money(self.discount_amount),
            "total_amount": _money(self.total_amount),
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    """Immutable order line. line_total = quantity * unit_price - discount_amount."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.Index("ix_order_lines_order_product", "order_id", "product_id"),
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity"),
        db.CheckConstraint("unit_price > 0", name="ck_order_lines_unit_price"),
        db.CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= quantity * unit_price",
            name="ck_order_lines_discount",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 4), nullable=False)

    # Ledger row written when this line reserved its stock
    inventory_transaction_id = db.Column(
        db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "discount_amount": _money(self.discount_amount),
            "line_total": _money(self.line_total),
            "inventory_transaction_id": self.inventory_transaction_id,
            "created_at": to_utc_z(self.created_at),
        }


class ProductReturn(db.Model):
    """
    Return of some quantity of one order line.

    LIFECYCLE (single transaction in return_service.process_return):
        Pending -> Approved -> Processed
        Pending -> Rejected
    Only Processed returns count toward the per-line returned quantity.
    """
    __tablename__ = "product_returns"
    __table_args__ = (
        db.Index("ix_product_returns_order", "order_id", "status"),
        db.Index("ix_product_returns_customer", "customer_id", "created_at"),
        db.CheckConstraint("return_quantity > 0", name="ck_product_returns_quantity"),
        db.CheckConstraint("refund_amount >= 0", name="ck_product_returns_refund"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    order_line_id = db.Column(db.Integer, db.ForeignKey("order_lines.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    return_quantity = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Numeric(12, 4), nullable=False)
    reason = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=RETURN_STATUS_PENDING)
    restock = db.Column(db.Boolean, nullable=False, default=True)

    # Ledger row written when the returned units went back on the shelf
    inventory_transaction_id = db.Column(
        db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=True
    )

    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(50), nullable=True)

    order = db.relationship("Order", backref=db.backref("returns", lazy=True))
    order_line = db.relationship("OrderLine")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_date": to_utc_z(self.order_date),
            "order_line_id": self.order_line_id,
            "product_id": self.product_id,
            "customer_id": self.customer_id,
            "return_quantity": self.return_quantity,
            "refund_amount": _money(self.refund_amount),
            "reason": self.reason,
            "status": self.status,
            "restock": self.restock,
            "inventory_transaction_id": self.inventory_transaction_id,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
