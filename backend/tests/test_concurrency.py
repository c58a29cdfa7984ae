"""
Concurrency tests against a file-backed SQLite database.

An in-memory database shares one connection across threads, so these tests
build their own app on a temporary file where every thread gets its own
connection and writers really contend for the lock.
"""

import os
import tempfile
import threading
from decimal import Decimal

import pytest

from fulfillment import create_app
from fulfillment.extensions import db
from fulfillment.models import Category, Customer, InventoryTransaction, Order, Product
from fulfillment.services import inventory_service, order_service
from fulfillment.services.errors import InsufficientStockError


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()


def _seed(app, stock):
    with app.app_context():
        category = Category(name="Concurrency")
        db.session.add(category)
        db.session.flush()
        product = Product(sku="CONCUR-1", name="Concurrent Product", category_id=category.id,
                          price=Decimal("10.00"), stock_quantity=stock, reorder_level=0)
        customer = Customer(name="Concurrent Customer")
        db.session.add_all([product, customer])
        db.session.commit()
        return product.id, customer.id


def _run(workers):
    threads = [threading.Thread(target=w) for w in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_two_orders_racing_for_last_units(file_app):
    product_id, customer_id = _seed(file_app, stock=5)
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(2)

    def worker():
        with file_app.app_context():
            try:
                barrier.wait()
                order_service.process_order(
                    customer_id,
                    [{"product_id": product_id, "quantity": 3, "unit_price": Decimal("10.00")}],
                )
                with lock:
                    results.append("placed")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    _run([worker, worker])

    assert results.count("placed") == 1
    failures = [r for r in results if r != "placed"]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    with file_app.app_context():
        assert inventory_service.get_stock(product_id) == 2
        assert db.session.query(Order).count() == 1


def test_many_concurrent_reservations_never_oversell(file_app):
    product_id, customer_id = _seed(file_app, stock=10)
    placed = []
    rejected = []
    lock = threading.Lock()

    def make_worker(quantity):
        def worker():
            with file_app.app_context():
                try:
                    order_service.process_order(
                        customer_id,
                        [{"product_id": product_id, "quantity": quantity, "unit_price": Decimal("1.00")}],
                    )
                    with lock:
                        placed.append(quantity)
                except InsufficientStockError:
                    with lock:
                        rejected.append(quantity)
                finally:
                    db.session.remove()
        return worker

    _run([make_worker(q) for q in (1, 2, 3, 4, 1, 2, 3, 4)])

    assert len(placed) + len(rejected) == 8
    with file_app.app_context():
        final = inventory_service.get_stock(product_id)
        assert final == 10 - sum(placed)
        assert final >= 0

        rows = db.session.query(InventoryTransaction).order_by(InventoryTransaction.id).all()
        assert len(rows) == len(placed)
        for previous, current in zip(rows, rows[1:]):
            assert current.previous_stock == previous.new_stock
        if rows:
            assert rows[-1].new_stock == final


def test_concurrent_adjustments_serialize(file_app):
    product_id, _ = _seed(file_app, stock=0)

    def worker():
        with file_app.app_context():
            try:
                inventory_service.adjust_inventory(product_id=product_id, delta=1, reason="count")
            finally:
                db.session.remove()

    _run([worker] * 10)

    with file_app.app_context():
        assert inventory_service.get_stock(product_id) == 10


def test_orders_listing_products_in_opposite_order_both_complete(file_app):
    first_id, customer_id = _seed(file_app, stock=20)
    with file_app.app_context():
        category_id = db.session.get(Product, first_id).category_id
        second = Product(sku="CONCUR-2", name="Second Product", category_id=category_id,
                         price=Decimal("5.00"), stock_quantity=20, reorder_level=0)
        db.session.add(second)
        db.session.commit()
        second_id = second.id

    placed = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(4)

    def make_worker(product_ids):
        def worker():
            with file_app.app_context():
                try:
                    barrier.wait()
                    order_service.process_order(
                        customer_id,
                        [{"product_id": pid, "quantity": 2, "unit_price": Decimal("1.00")} for pid in product_ids],
                    )
                    with lock:
                        placed.append(product_ids)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()
        return worker

    forward = (first_id, second_id)
    backward = (second_id, first_id)
    _run([make_worker(forward), make_worker(backward), make_worker(forward), make_worker(backward)])

    assert errors == []
    assert len(placed) == 4

    with file_app.app_context():
        assert inventory_service.get_stock(first_id) == 12
        assert inventory_service.get_stock(second_id) == 12
        assert db.session.query(Order).count() == 4

        for product_id in (first_id, second_id):
            rows = (
                db.session.query(InventoryTransaction)
                .filter_by(product_id=product_id)
                .order_by(InventoryTransaction.id)
                .all()
            )
            assert len(rows) == 4
            assert rows[0].previous_stock == 20
            for row in rows:
                assert row.previous_stock + row.quantity_delta == row.new_stock
            for previous, current in zip(rows, rows[1:]):
                assert current.previous_stock == previous.new_stock
            assert rows[-1].new_stock == 12
