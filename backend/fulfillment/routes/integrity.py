# backend/fulfillment/routes/integrity.py

from flask import Blueprint, request, jsonify, current_app

from ..services import integrity_service
from ..validation import parse_bool, validation_response

integrity_bp = Blueprint("integrity", __name__, url_prefix="/api/integrity")


@integrity_bp.post("/check")
def check_route():
    """
    Run the integrity checks.

    Request body (optional): {"fix": true, "actor": "nightly"}
    Findings are returned with 200 whatever they are.
    """
    try:
        data = request.get_json(silent=True) or {}
        report = integrity_service.check_integrity(
            fix=parse_bool(data.get("fix"), "fix", default=False),
            actor=data.get("actor") or integrity_service.DEFAULT_ACTOR,
        )
        return jsonify(report.to_dict())
    except ValueError as e:
        return validation_response(e)
    except Exception:
        current_app.logger.exception("Integrity check failed")
        return jsonify({"error": "Internal server error"}), 500
