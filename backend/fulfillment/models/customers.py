from __future__ import annotations

from ..extensions import db


class Customer(db.Model):
    """
    Customer record as exposed by the customer directory.

    Registration, profile edits and PII (encrypted at rest elsewhere) are not
    handled here; the fulfillment core reads is_active only. Purchase history
    for tiering is derived from orders.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}


class ShippingAddress(db.Model):
    __tablename__ = "shipping_addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    city = db.Column(db.String(50), nullable=True)
    country = db.Column(db.String(50), nullable=False, default="USA")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    customer = db.relationship("Customer", backref=db.backref("shipping_addresses", lazy=True))


class BillingAddress(db.Model):
    __tablename__ = "billing_addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    city = db.Column(db.String(50), nullable=True)
    country = db.Column(db.String(50), nullable=False, default="USA")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    customer = db.relationship("Customer", backref=db.backref("billing_addresses", lazy=True))
