from decimal import Decimal

import pytest

from fulfillment.extensions import db
from fulfillment.models import AuditEntry, Order
from fulfillment.services import order_service, totals_service
from fulfillment.services.concurrency import atomic
from fulfillment.services.errors import NotFoundError


def test_line_total_formula():
    assert totals_service.line_total(3, Decimal("2.50")) == Decimal("7.50")
    assert totals_service.line_total(2, Decimal("10.00"), Decimal("1.25")) == Decimal("18.75")


def test_recalculate_restores_drifted_totals(db_session, customer, make_product):
    product = make_product(stock=5)
    result = order_service.process_order(
        customer.id,
        [{"product_id": product.id, "quantity": 2, "unit_price": Decimal("10.00")}],
        tax_rate=Decimal("0.10"),
        shipping_amount=Decimal("5"),
    )
    order = db.session.get(Order, result.order_id)
    order.subtotal = Decimal("99")
    order.total_amount = Decimal("99")
    db.session.commit()

    with atomic():
        totals_service.recalculate_order_totals(result.order_id, actor="tester", audit=True)

    db.session.expire_all()
    order = db.session.get(Order, result.order_id)
    assert order.subtotal == Decimal("20.00")
    assert order.total_amount == Decimal("27.00")
    fix = db.session.query(AuditEntry).filter_by(operation="FIX").one()
    assert fix.actor == "tester"


def test_recalculate_keeps_zero_tax(db_session, customer, make_product):
    product = make_product(stock=5)
    result = order_service.process_order(
        customer.id,
        [{"product_id": product.id, "quantity": 1, "unit_price": Decimal("40.00")}],
        tax_rate=0,
    )

    with atomic():
        order = totals_service.recalculate_order_totals(result.order_id)

    assert order.tax_amount == Decimal("0")
    assert order.total_amount == Decimal("40.00")


def test_recalculate_without_change_writes_no_audit(db_session, customer, make_product):
    product = make_product(stock=5)
    result = order_service.process_order(
        customer.id, [{"product_id": product.id, "quantity": 1, "unit_price": Decimal("1.00")}]
    )

    with atomic():
        totals_service.recalculate_order_totals(result.order_id, audit=True)

    assert db.session.query(AuditEntry).filter_by(operation="FIX").count() == 0


def test_recalculate_missing_order(db_session):
    with pytest.raises(NotFoundError):
        with atomic():
            totals_service.recalculate_order_totals(999999)
