# backend/fulfillment/routes/pricing.py
"""
Pricing quote routes. Read-only; nothing here writes to the database.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import pricing_service
from ..services.errors import FulfillmentError
from fulfillment.time_utils import parse_iso_date, to_iso_date, utcnow
from ..validation import (
    error_response,
    parse_decimal,
    parse_int,
    validation_response,
)

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.get("/tier")
def tier_route():
    """
    Query params: total_spent, order_count -> tier and its base discount.
    """
    try:
        total_spent = parse_decimal(request.args.get("total_spent"), "total_spent")
        order_count = parse_int(request.args.get("order_count"), "order_count")
        tier = pricing_service.customer_tier(total_spent, order_count)
        return jsonify({
            "tier": tier,
            "base_discount": str(pricing_service.TIER_BASE_DISCOUNT[tier]),
        })
    except ValueError as e:
        return validation_response(e)


@pricing_bp.get("/discount")
def discount_route():
    """
    Two forms:
    - customer_id, product_id, quantity, unit_price: quote from purchase history
    - tier, quantity, promotional[, unit_price][, extra]: pure rule evaluation
    """
    try:
        quantity = parse_int(request.args.get("quantity"), "quantity")
        customer_id = parse_int(request.args.get("customer_id"), "customer_id", required=False)

        if customer_id is not None:
            quote = pricing_service.quote_line_discount(
                customer_id,
                parse_int(request.args.get("product_id"), "product_id"),
                quantity,
                parse_decimal(request.args.get("unit_price"), "unit_price"),
            )
            quote["discount_percent"] = str(quote["discount_percent"])
            quote["discount_amount"] = str(quote["discount_amount"])
            return jsonify(quote)

        tier = request.args.get("tier", pricing_service.TIER_BRONZE)
        promotional = request.args.get("promotional", "false").lower() == "true"
        extra = parse_decimal(request.args.get("extra"), "extra", required=False) or 0
        percent = pricing_service.discount_percent(tier, quantity, promotional, extra=extra)

        body = {"tier": tier, "quantity": quantity, "discount_percent": str(percent)}
        unit_price = parse_decimal(request.args.get("unit_price"), "unit_price", required=False)
        if unit_price is not None:
            body["discount_amount"] = str(pricing_service.discount_amount(unit_price, quantity, percent))
        return jsonify(body)
    except FulfillmentError as e:
        return error_response(e)
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote discount")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.get("/shipping")
def shipping_route():
    """Query params: weight, zone, method."""
    try:
        weight = parse_decimal(request.args.get("weight"), "weight")
        zone = request.args.get("zone", pricing_service.ZONE_REGIONAL)
        method = request.args.get("method", pricing_service.METHOD_STANDARD)
        cost = pricing_service.shipping_cost(weight, zone, method)
        return jsonify({"weight": str(weight), "zone": zone, "method": method, "shipping_cost": str(cost)})
    except ValueError as e:
        return validation_response(e)


@pricing_bp.get("/delivery-estimate")
def delivery_estimate_route():
    """Query params: order_date (YYYY-MM-DD, default today), method, zone."""
    try:
        raw_date = request.args.get("order_date")
        order_date = parse_iso_date(raw_date) if raw_date else utcnow().date()
        zone = request.args.get("zone", pricing_service.ZONE_REGIONAL)
        method = request.args.get("method", pricing_service.METHOD_STANDARD)
        estimate = pricing_service.delivery_estimate(order_date, method, zone)
        return jsonify({
            "order_date": to_iso_date(order_date),
            "method": method,
            "zone": zone,
            "expected_delivery_date": to_iso_date(estimate),
        })
    except ValueError as e:
        return validation_response(e)
