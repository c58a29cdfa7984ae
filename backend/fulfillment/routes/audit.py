# backend/fulfillment/routes/audit.py

from flask import Blueprint, request, jsonify, current_app

from ..services import audit_service
from ..validation import parse_int, validation_response

audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("/")
def list_audit_entries_route():
    """
    Query params (all optional): table_name, primary_key, operation, limit (default 200).
    Newest first.
    """
    try:
        entries = audit_service.list_entries(
            table_name=request.args.get("table_name"),
            primary_key=request.args.get("primary_key"),
            operation=request.args.get("operation"),
            limit=parse_int(request.args.get("limit"), "limit", required=False) or 200,
        )
        return jsonify({"entries": [e.to_dict() for e in entries], "count": len(entries)})
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Failed to list audit entries")
        return jsonify({"error": "Internal server error"}), 500
