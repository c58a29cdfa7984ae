from datetime import date
from decimal import Decimal

import pytest

from fulfillment.extensions import db
from fulfillment.models import AuditEntry, InventoryTransaction, Order, ProductReturn
from fulfillment.services import order_service, return_service
from fulfillment.services.errors import (
    InvalidAmountError,
    InvalidQuantityError,
    NotFoundError,
    ReturnNotAllowedError,
)


def _order(order_id):
    db.session.expire_all()
    return db.session.get(Order, order_id)


def test_partial_then_full_return(db_session, delivered_order, stock_of):
    order_id, product_id = delivered_order["order_id"], delivered_order["product_id"]
    assert stock_of(product_id) == 8

    first = return_service.process_return(order_id, product_id, 1, "Wrong size")
    assert first.status == "Processed"
    assert first.processed_at is not None
    assert first.refund_amount == Decimal("10.00")
    assert _order(order_id).status == "Delivered"
    assert stock_of(product_id) == 9

    return_service.process_return(order_id, product_id, 1)
    assert _order(order_id).status == "Returned"
    assert stock_of(product_id) == 10

    status_audits = (
        db.session.query(AuditEntry)
        .filter_by(table_name="Order", operation="UPDATE", primary_key=str(order_id))
        .order_by(AuditEntry.id)
        .all()
    )
    assert "status=Returned" in status_audits[-1].new_values
    assert db.session.query(AuditEntry).filter_by(table_name="ProductReturn", operation="INSERT").count() == 2


def test_restock_writes_return_ledger_row(db_session, delivered_order):
    pr = return_service.process_return(delivered_order["order_id"], delivered_order["product_id"], 2)

    tx = db.session.get(InventoryTransaction, pr.inventory_transaction_id)
    assert (tx.type, tx.quantity_delta, tx.reference_type, tx.reference_id) == ("Return", 2, "Return", str(pr.id))


def test_return_against_cancelled_order_not_allowed(db_session, customer, make_product, stock_of):
    product = make_product(stock=10)
    result = order_service.process_order(
        customer.id, [{"product_id": product.id, "quantity": 2, "unit_price": Decimal("10.00")}]
    )
    order_service.update_order_status(result.order_id, "Cancelled")
    assert stock_of(product.id) == 10
    ledger_rows = db.session.query(InventoryTransaction).count()

    with pytest.raises(ReturnNotAllowedError):
        return_service.process_return(result.order_id, product.id, 1)

    assert db.session.query(ProductReturn).count() == 0
    assert db.session.query(InventoryTransaction).count() == ledger_rows
    assert stock_of(product.id) == 10


def test_return_against_pending_order_not_allowed(db_session, customer, make_product):
    product = make_product(stock=10)
    result = order_service.process_order(
        customer.id, [{"product_id": product.id, "quantity": 1, "unit_price": Decimal("10.00")}]
    )

    with pytest.raises(ReturnNotAllowedError):
        return_service.process_return(result.order_id, product.id, 1)


def test_cannot_return_more_than_remaining(db_session, delivered_order, stock_of):
    order_id, product_id = delivered_order["order_id"], delivered_order["product_id"]

    with pytest.raises(InvalidQuantityError):
        return_service.process_return(order_id, product_id, 3)

    return_service.process_return(order_id, product_id, 1)
    with pytest.raises(InvalidQuantityError) as exc:
        return_service.process_return(order_id, product_id, 2)
    assert exc.value.details["already_returned"] == 1

    with pytest.raises(InvalidQuantityError):
        return_service.process_return(order_id, product_id, 0)
    assert stock_of(product_id) == 9


def test_unknown_order_or_product(db_session, delivered_order, make_product):
    other = make_product(stock=1)

    with pytest.raises(NotFoundError):
        return_service.process_return(999999, delivered_order["product_id"], 1)
    with pytest.raises(NotFoundError):
        return_service.process_return(delivered_order["order_id"], other.id, 1)


def test_order_date_must_match(db_session, delivered_order):
    order_id, product_id = delivered_order["order_id"], delivered_order["product_id"]

    with pytest.raises(NotFoundError):
        return_service.process_return(order_id, product_id, 1, order_date=date(1999, 1, 1))

    placed = _order(order_id).order_date.date()
    pr = return_service.process_return(order_id, product_id, 1, order_date=placed)
    assert pr.order_date.date() == placed


def test_refund_override_and_no_restock(db_session, delivered_order, stock_of):
    order_id, product_id = delivered_order["order_id"], delivered_order["product_id"]

    with pytest.raises(InvalidAmountError):
        return_service.process_return(order_id, product_id, 1, refund_amount=Decimal("-1"))

    pr = return_service.process_return(
        order_id, product_id, 1, "Opened box", refund_amount=Decimal("7.50"), restock=False
    )
    assert pr.refund_amount == Decimal("7.50")
    assert pr.inventory_transaction_id is None
    assert stock_of(product_id) == 8
    assert return_service.returned_quantity(pr.order_line_id) == 1
    assert return_service.refund_total(order_id) == Decimal("7.50")


def test_get_return_and_order_returns(db_session, delivered_order):
    pr = return_service.process_return(delivered_order["order_id"], delivered_order["product_id"], 1)

    assert return_service.get_return(pr.id).id == pr.id
    assert [r.id for r in return_service.get_order_returns(delivered_order["order_id"])] == [pr.id]
    with pytest.raises(NotFoundError):
        return_service.get_return(999999)
