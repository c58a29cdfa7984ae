# Overview: Read-only interfaces to the customer, address and catalog collaborators.

"""
The fulfillment core does not own customers, addresses or the catalog. It
reads them through the small protocols below so callers (and tests) can
inject their own directory; the Sql* classes are the defaults, reading the
collaborator tables in the same database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import func

from ..extensions import db
from ..models import (
    BillingAddress,
    Customer,
    Order,
    Product,
    ShippingAddress,
)
from ..models.orders import ORDER_STATUS_CANCELLED


ADDRESS_SHIPPING = "shipping"
ADDRESS_BILLING = "billing"


@dataclass(frozen=True)
class TierHistory:
    total_spent: Decimal
    order_count: int


@dataclass(frozen=True)
class AddressInfo:
    address_id: int
    customer_id: int
    is_active: bool


@dataclass(frozen=True)
class ProductInfo:
    product_id: int
    price: Decimal
    is_active: bool
    category_id: Optional[int]


class CustomerDirectory(Protocol):
    def is_active(self, customer_id: int) -> bool: ...

    def tier_history(self, customer_id: int) -> TierHistory: ...


class AddressDirectory(Protocol):
    def resolve(self, address_id: int, customer_id: int, kind: str) -> Optional[AddressInfo]: ...


class Catalog(Protocol):
    def product_info(self, product_id: int) -> Optional[ProductInfo]: ...


class SqlCustomerDirectory:
    def is_active(self, customer_id: int) -> bool:
        customer = db.session.get(Customer, customer_id)
        return bool(customer and customer.is_active)

    def tier_history(self, customer_id: int) -> TierHistory:
        """Spend and order count over the customer's non-cancelled orders."""
        row = db.session.query(
            func.coalesce(func.sum(Order.total_amount), 0).label("spent"),
            func.count(Order.id).label("orders"),
        ).filter(
            Order.customer_id == customer_id,
            Order.status != ORDER_STATUS_CANCELLED,
        ).one()
        return TierHistory(total_spent=Decimal(str(row.spent or 0)), order_count=int(row.orders or 0))


class SqlAddressDirectory:
    def resolve(self, address_id: int, customer_id: int, kind: str) -> Optional[AddressInfo]:
        if kind == ADDRESS_SHIPPING:
            model = ShippingAddress
        elif kind == ADDRESS_BILLING:
            model = BillingAddress
        else:
            raise ValueError(f"unknown address kind: {kind}")

        address = db.session.get(model, address_id)
        if address is None or address.customer_id != customer_id:
            return None
        return AddressInfo(address_id=address.id, customer_id=address.customer_id, is_active=address.is_active)


class SqlCatalog:
    def product_info(self, product_id: int) -> Optional[ProductInfo]:
        product = db.session.get(Product, product_id)
        if product is None:
            return None
        return ProductInfo(
            product_id=product.id,
            price=product.price,
            is_active=product.is_active,
            category_id=product.category_id,
        )
