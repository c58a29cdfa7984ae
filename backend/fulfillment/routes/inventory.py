# backend/fulfillment/routes/inventory.py
"""
Inventory routes.

Every stock change goes through services/inventory_service.py and appends one
ledger row. Transactions are listed newest first.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models.inventory import TX_ADJUSTMENT
from ..services import inventory_service
from ..services.errors import FulfillmentError
from ..validation import (
    error_response,
    parse_bool,
    parse_int,
    require_fields,
    require_json,
    validation_response,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/<int:product_id>/adjust")
def adjust_inventory_route(product_id: int):
    """
    Manual stock correction.

    Request body:
    {
        "delta": -3,
        "reason": "Cycle count",
        "transaction_type": "Damage",   (optional: Adjustment|Restock|Damage|Transfer)
        "actor": "warehouse"            (optional)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "delta")
        tx = inventory_service.adjust_inventory(
            product_id=product_id,
            delta=parse_int(data["delta"], "delta"),
            reason=data.get("reason"),
            transaction_type=data.get("transaction_type") or TX_ADJUSTMENT,
            actor=data.get("actor"),
        )
        return jsonify({"transaction": tx.to_dict(), "stock_quantity": tx.new_stock}), 201
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:product_id>/restock")
def restock_inventory_route(product_id: int):
    """Request body: {"quantity": 20, "note": "PO 4411", "actor": "receiving"}"""
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "quantity")
        tx = inventory_service.restock_inventory(
            product_id=product_id,
            quantity=parse_int(data["quantity"], "quantity"),
            reference_id=data.get("reference_id"),
            reference_type=data.get("reference_type"),
            note=data.get("note"),
            actor=data.get("actor"),
        )
        return jsonify({"transaction": tx.to_dict(), "stock_quantity": tx.new_stock}), 201
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to restock inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:product_id>/transactions")
def list_transactions_route(product_id: int):
    try:
        limit = parse_int(request.args.get("limit"), "limit", required=False) or 200
        stock = inventory_service.get_stock(product_id)
        rows = inventory_service.list_inventory_transactions(product_id, limit=limit)
        return jsonify({
            "product_id": product_id,
            "stock_quantity": stock,
            "transactions": [t.to_dict() for t in rows],
            "count": len(rows),
        })
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory transactions")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
def low_stock_route():
    """
    Query params:
    - category_id: int (optional)
    - include_out_of_stock: bool (default true)
    """
    try:
        rows = inventory_service.list_low_stock_products(
            category_id=parse_int(request.args.get("category_id"), "category_id", required=False),
            include_out_of_stock=parse_bool(
                request.args.get("include_out_of_stock"), "include_out_of_stock", default=True
            ),
        )
        return jsonify({"products": rows, "count": len(rows)})
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to list low-stock products")
        return jsonify({"error": "Internal server error"}), 500
