from __future__ import annotations

from ..extensions import db
from fulfillment.time_utils import to_utc_z


class Category(db.Model):
    """
    Product category.

    Owned by the catalog collaborator; the fulfillment core only reads it
    (promotional discounts, integrity checks).
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    parent_category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_category_id": self.parent_category_id,
            "is_active": self.is_active,
        }


class Product(db.Model):
    """
    Product master data.

    STOCK OWNERSHIP:
    price, name, category and is_active belong to the catalog collaborator.
    stock_quantity is the one column the fulfillment core writes, and only
    through services/inventory_service.py, which appends an
    InventoryTransaction for every change.

    There is deliberately no CHECK on stock_quantity: the ledger refuses
    negative results, and the integrity checker must still be able to see
    drift introduced by anything else touching the table.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        db.CheckConstraint("price > 0", name="ck_products_price_positive"),
        db.CheckConstraint("reorder_level >= 0", name="ck_products_reorder_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    price = db.Column(db.Numeric(12, 4), nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.reorder_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category_id": self.category_id,
            "price": str(self.price),
            "stock_quantity": self.stock_quantity,
            "reorder_level": self.reorder_level,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
