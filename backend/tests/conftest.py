"""
Pytest fixtures for fulfillment backend tests.

Provides an in-memory application, a per-test table wipe, seed factories and
the test client.
"""

from decimal import Decimal

import pytest

from fulfillment import create_app
from fulfillment.extensions import db
from fulfillment.models import Category, Customer, Product, ShippingAddress, BillingAddress
from fulfillment.services import inventory_service, order_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TAX_RATE': Decimal('0.0875'),
        'AUDIT_DEFAULT_ACTOR': 'test-suite',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Electronics", is_active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Factory: committed Product with the given stock."""
    counter = {"n": 0}

    def _make(stock=10, price="10.00", reorder_level=2, is_active=True, category_id=None, sku=None):
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']:04d}",
            name=f"Product {counter['n']}",
            category_id=category_id if category_id is not None else category.id,
            price=Decimal(price),
            stock_quantity=stock,
            reorder_level=reorder_level,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: committed Customer, with active shipping and billing addresses by default."""

    def _make(name="Ada Lovelace", is_active=True, with_addresses=True):
        customer = Customer(name=name, is_active=is_active)
        db_session.add(customer)
        db_session.flush()
        if with_addresses:
            db_session.add(ShippingAddress(customer_id=customer.id, city="Boston", is_default=True))
            db_session.add(BillingAddress(customer_id=customer.id, city="Boston", is_default=True))
        db_session.commit()
        return customer

    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    return make_customer()


@pytest.fixture(scope='function')
def delivered_order(db_session, customer, make_product):
    """Order for 2 x product (stock 10 -> 8) moved all the way to Delivered."""
    product = make_product(stock=10, price="10.00")
    result = order_service.process_order(
        customer.id,
        [{"product_id": product.id, "quantity": 2, "unit_price": Decimal("10.00")}],
        tax_rate=Decimal("0"),
    )
    for status in ("Processing", "Shipped", "Delivered"):
        order_service.update_order_status(result.order_id, status)
    return {"order_id": result.order_id, "product_id": product.id}


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current stock, bypassing the identity map."""

    def _stock(product_id: int) -> int:
        db_session.expire_all()
        return inventory_service.get_stock(product_id)

    return _stock
