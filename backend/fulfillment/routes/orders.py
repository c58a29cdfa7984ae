# backend/fulfillment/routes/orders.py
"""
Order API routes.

- POST /api/orders/                       place an order (one atomic unit of work)
- GET  /api/orders/<id>                   order with lines and returns
- POST /api/orders/<id>/status            move an order forward or cancel it
- POST /api/orders/<id>/payment-status    record a payment status change
- GET  /api/orders/<id>/returns           returns against the order

Money leaves as strings so no float rounding creeps in on the client side.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service, return_service
from ..services.errors import FulfillmentError
from ..validation import (
    ValidationError,
    error_response,
    parse_decimal,
    parse_int,
    require_fields,
    require_json,
    validation_response,
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _parse_items(raw) -> list[dict]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    items = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{i}] must be an object")
        require_fields(item, "product_id", "quantity", "unit_price")
        items.append({
            "product_id": parse_int(item["product_id"], f"items[{i}].product_id"),
            "quantity": parse_int(item["quantity"], f"items[{i}].quantity"),
            "unit_price": parse_decimal(item["unit_price"], f"items[{i}].unit_price"),
        })
    return items


@orders_bp.post("/")
def create_order_route():
    """
    Place an order.

    Request body:
    {
        "customer_id": 1,
        "items": [{"product_id": 10, "quantity": 2, "unit_price": "10.00"}],
        "shipping_address_id": 3,        (optional)
        "billing_address_id": 4,         (optional)
        "shipping_method": "Standard",   (optional)
        "destination_zone": "REGIONAL",  (optional)
        "tax_rate": "0.0875",            (optional; omitted = configured default)
        "shipping_amount": "9.99",       (optional)
        "discount_amount": "0",          (optional)
        "idempotency_key": "abc-123",    (optional)
        "actor": "web"                   (optional)
    }

    Returns:
        201: order created (200 when an idempotency key replays an existing order)
    """
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "customer_id", "items")

        idempotency_key = data.get("idempotency_key") or request.headers.get("Idempotency-Key")
        result = order_service.process_order(
            parse_int(data["customer_id"], "customer_id"),
            _parse_items(data["items"]),
            shipping_address_id=parse_int(data.get("shipping_address_id"), "shipping_address_id", required=False),
            billing_address_id=parse_int(data.get("billing_address_id"), "billing_address_id", required=False),
            shipping_method=data.get("shipping_method") or "Standard",
            destination_zone=data.get("destination_zone"),
            tax_rate=parse_decimal(data.get("tax_rate"), "tax_rate", required=False),
            shipping_amount=parse_decimal(data.get("shipping_amount", 0), "shipping_amount"),
            discount_amount=parse_decimal(data.get("discount_amount", 0), "discount_amount"),
            idempotency_key=idempotency_key,
            actor=data.get("actor"),
        )
        summary = order_service.get_order_summary(result.order_id)
        body = {"order_id": result.order_id, "total": str(result.total), "order": summary}
        return jsonify(body), 201 if result.created else 200
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.get_order_summary(order_id)})
    except FulfillmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
def update_status_route(order_id: int):
    """
    Request body: {"status": "Processing", "actor": "ops"}

    Cancelling (Pending/Processing -> Cancelled) returns reserved stock.
    """
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "status")
        order = order_service.update_order_status(order_id, data["status"], actor=data.get("actor"))
        return jsonify({"order": order.to_dict()})
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/payment-status")
def update_payment_status_route(order_id: int):
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "payment_status")
        order = order_service.update_payment_status(order_id, data["payment_status"], actor=data.get("actor"))
        return jsonify({"order": order.to_dict()})
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/returns")
def list_order_returns_route(order_id: int):
    try:
        order_service.get_order(order_id)
        returns = return_service.get_order_returns(order_id)
        return jsonify({"returns": [r.to_dict() for r in returns], "count": len(returns)})
    except FulfillmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list order returns")
        return jsonify({"error": "Internal server error"}), 500
