# backend/fulfillment/routes/returns.py
"""
Return API routes.

A return is validated, restocked and processed in one call; there is no
separate approval step over HTTP.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import return_service
from ..services.errors import FulfillmentError
from fulfillment.time_utils import parse_iso_date
from ..validation import (
    error_response,
    parse_bool,
    parse_decimal,
    parse_int,
    require_fields,
    require_json,
    validation_response,
)

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/")
def create_return_route():
    """
    Process a return against an order line.

    Request body:
    {
        "order_id": 12,
        "product_id": 10,
        "return_quantity": 1,
        "reason": "Damaged in transit",  (optional)
        "order_date": "2024-05-01",      (optional; must match the order)
        "refund_amount": "10.00",        (optional; default quantity * unit price)
        "restock": true,                 (optional, default true)
        "actor": "support"               (optional)
    }

    Returns:
        201: return processed
        400: invalid quantity/amount or order not returnable
        404: order or line not found
    """
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "order_id", "product_id", "return_quantity")

        order_date = data.get("order_date")
        product_return = return_service.process_return(
            parse_int(data["order_id"], "order_id"),
            parse_int(data["product_id"], "product_id"),
            parse_int(data["return_quantity"], "return_quantity"),
            data.get("reason"),
            order_date=parse_iso_date(order_date) if order_date else None,
            refund_amount=parse_decimal(data.get("refund_amount"), "refund_amount", required=False),
            restock=parse_bool(data.get("restock"), "restock", default=True),
            actor=data.get("actor"),
        )
        return jsonify({"return": product_return.to_dict()}), 201
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        return jsonify({"return": return_service.get_return(return_id).to_dict()})
    except FulfillmentError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load return")
        return jsonify({"error": "Internal server error"}), 500
