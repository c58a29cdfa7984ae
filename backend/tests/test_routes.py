from decimal import Decimal

from fulfillment.extensions import db
from fulfillment.models import Product


def _order_payload(customer, product, quantity=2, **extra):
    payload = {
        "customer_id": customer.id,
        "items": [{"product_id": product.id, "quantity": quantity, "unit_price": "10.00"}],
        "tax_rate": "0.0875",
        "shipping_amount": "9.99",
    }
    payload.update(extra)
    return payload


def test_health(client, db_session):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json["checks"]["database"]["status"] == "healthy"


def test_create_and_get_order(client, db_session, customer, make_product):
    product = make_product(stock=5)

    response = client.post("/api/orders/", json=_order_payload(customer, product))
    assert response.status_code == 201
    body = response.json
    assert body["total"] == "31.7400"
    order_id = body["order_id"]

    response = client.get(f"/api/orders/{order_id}")
    assert response.status_code == 200
    assert response.json["order"]["status"] == "Pending"
    assert len(response.json["order"]["lines"]) == 1


def test_create_order_error_mapping(client, db_session, customer, make_product):
    product = make_product(stock=1)

    short = client.post("/api/orders/", json=_order_payload(customer, product, quantity=2))
    assert short.status_code == 409
    assert short.json["code"] == "InsufficientStock"
    assert short.json["details"]["products"][0]["product_id"] == product.id

    bad_customer = client.post("/api/orders/", json={**_order_payload(customer, product, quantity=1), "customer_id": 999999})
    assert bad_customer.status_code == 400
    assert bad_customer.json["code"] == "CustomerInvalid"

    missing = client.post("/api/orders/", json={"customer_id": customer.id})
    assert missing.status_code == 400
    assert missing.json["code"] == "ValidationError"

    bad_zone = client.post("/api/orders/", json=_order_payload(customer, product, quantity=1, destination_zone="MOON"))
    assert bad_zone.status_code == 400

    bad_method = client.post("/api/orders/", json=_order_payload(customer, product, quantity=1, shipping_method="Teleport"))
    assert bad_method.status_code == 400
    assert bad_method.json["code"] == "ValidationError"

    assert client.get("/api/orders/999999").status_code == 404


def test_idempotent_create_returns_200_on_replay(client, db_session, customer, make_product):
    product = make_product(stock=5)
    payload = _order_payload(customer, product, quantity=1, idempotency_key="abc")

    first = client.post("/api/orders/", json=payload)
    again = client.post("/api/orders/", json=payload)

    assert first.status_code == 201
    assert again.status_code == 200
    assert again.json["order_id"] == first.json["order_id"]


def test_status_and_return_flow(client, db_session, customer, make_product):
    product = make_product(stock=5)
    order_id = client.post("/api/orders/", json=_order_payload(customer, product, quantity=1)).json["order_id"]

    for status in ("Processing", "Shipped"):
        response = client.post(f"/api/orders/{order_id}/status", json={"status": status})
        assert response.status_code == 200

    invalid = client.post(f"/api/orders/{order_id}/status", json={"status": "Pending"})
    assert invalid.status_code == 400
    assert invalid.json["code"] == "InvalidStatusTransition"

    paid = client.post(f"/api/orders/{order_id}/payment-status", json={"payment_status": "Captured"})
    assert paid.json["order"]["payment_status"] == "Captured"

    response = client.post("/api/returns/", json={"order_id": order_id, "product_id": product.id, "return_quantity": 1})
    assert response.status_code == 201
    return_id = response.json["return"]["id"]
    assert response.json["return"]["status"] == "Processed"

    assert client.get(f"/api/returns/{return_id}").json["return"]["order_id"] == order_id
    assert client.get(f"/api/orders/{order_id}/returns").json["count"] == 1
    assert client.get(f"/api/orders/{order_id}").json["order"]["status"] == "Returned"

    over = client.post("/api/returns/", json={"order_id": order_id, "product_id": product.id, "return_quantity": 1})
    assert over.status_code == 400
    assert over.json["code"] == "ReturnNotAllowed"


def test_inventory_routes(client, db_session, make_product):
    product = make_product(stock=3, reorder_level=5)

    adjusted = client.post(f"/api/inventory/{product.id}/adjust", json={"delta": -1, "reason": "Broken"})
    assert adjusted.status_code == 201
    assert adjusted.json["stock_quantity"] == 2

    refused = client.post(f"/api/inventory/{product.id}/adjust", json={"delta": -5, "reason": "Count"})
    assert refused.status_code == 409

    restocked = client.post(f"/api/inventory/{product.id}/restock", json={"quantity": 10})
    assert restocked.json["stock_quantity"] == 12

    history = client.get(f"/api/inventory/{product.id}/transactions").json
    assert history["count"] == 2
    assert history["stock_quantity"] == 12

    assert client.get("/api/inventory/999999/transactions").status_code == 400

    bad_delta = client.post(f"/api/inventory/{product.id}/adjust", json={"delta": "1.5"})
    assert bad_delta.status_code == 400

    db.session.expire_all()
    assert db.session.get(Product, product.id).stock_quantity == 12


def test_low_stock_route(client, db_session, make_product):
    empty = make_product(stock=0, reorder_level=5)
    make_product(stock=50, reorder_level=5)

    body = client.get("/api/inventory/low-stock").json
    assert [row["product_id"] for row in body["products"]] == [empty.id]

    body = client.get("/api/inventory/low-stock?include_out_of_stock=false").json
    assert body["count"] == 0


def test_pricing_routes(client, db_session):
    tier = client.get("/api/pricing/tier?total_spent=6000&order_count=10").json
    assert tier == {"tier": "Gold", "base_discount": "0.10"}

    tier = client.get("/api/pricing/tier?total_spent=10000&order_count=0").json
    assert tier == {"tier": "Platinum", "base_discount": "0.15"}

    discount = client.get("/api/pricing/discount?tier=Platinum&quantity=12&promotional=true&unit_price=10").json
    assert discount["discount_percent"] == "0.23"
    assert discount["discount_amount"] == "27.6000"

    shipping = client.get("/api/pricing/shipping?weight=1&zone=REGIONAL&method=Standard").json
    assert shipping["shipping_cost"] == "5.99"

    estimate = client.get("/api/pricing/delivery-estimate?order_date=2024-05-03&method=Overnight&zone=LOCAL").json
    assert estimate["expected_delivery_date"] == "2024-05-06"

    assert client.get("/api/pricing/shipping?weight=1&zone=MOON").status_code == 400


def test_integrity_and_audit_routes(client, db_session, make_product):
    product = make_product(stock=5)
    product.stock_quantity = -1
    db.session.commit()

    report = client.post("/api/integrity/check", json={}).json
    assert report["issue_count"] == 1
    assert report["issues"][0]["fix_applied"] is False

    fixed = client.post("/api/integrity/check", json={"fix": True}).json
    assert fixed["issues"][0]["fix_applied"] is True

    entries = client.get("/api/audit/?operation=FIX").json
    assert entries["count"] == 1
    assert entries["entries"][0]["table_name"] == "Product"
