from __future__ import annotations

from ..extensions import db
from fulfillment.time_utils import to_utc_z


TX_SALE = "Sale"
TX_RETURN = "Return"
TX_ADJUSTMENT = "Adjustment"
TX_RESTOCK = "Restock"
TX_DAMAGE = "Damage"
TX_TRANSFER = "Transfer"

TRANSACTION_TYPES = (TX_SALE, TX_RETURN, TX_ADJUSTMENT, TX_RESTOCK, TX_DAMAGE, TX_TRANSFER)


class InventoryTransaction(db.Model):
    """
    Append-only stock ledger row.

    Every change to Product.stock_quantity has exactly one row here, written
    in the same DB transaction:
        previous_stock + quantity_delta == new_stock
        new_stock == products.stock_quantity right after the row commits
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_invtx_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(20), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    # What caused the movement (order id, return id, ...)
    reference_id = db.Column(db.String(64), nullable=True)
    reference_type = db.Column(db.String(50), nullable=True)

    note = db.Column(db.String(500), nullable=True)
    actor = db.Column(db.String(50), nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "note": self.note,
            "actor": self.actor,
            "occurred_at": to_utc_z(self.occurred_at),
        }
