from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from flask import jsonify

from .services.errors import FulfillmentError


class ValidationError(ValueError):
    """400-level input problem."""


def error_response(exc: FulfillmentError):
    """JSON body and status for a FulfillmentError."""
    return jsonify(exc.to_dict()), exc.http_status


def validation_response(exc: ValueError):
    return jsonify({"error": str(exc), "code": "ValidationError", "details": {}}), 400


def require_json(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def require_fields(data: dict, *names: str) -> None:
    missing = [n for n in names if data.get(n) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_int(value: Any, name: str, *, required: bool = True) -> int | None:
    """
    Strict integer parsing: rejects bools, floats, decimals and scientific
    notation, accepts ints and plain digit strings.
    """
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        digits = stripped[1:] if stripped.startswith("-") else stripped
        if digits.isdigit():
            return int(stripped)
    raise ValidationError(f"{name} must be an integer")


def parse_decimal(value: Any, name: str, *, required: bool = True) -> Decimal | None:
    """Money/rate parsing. Floats go through str() so 0.1 stays 0.1."""
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number") from None
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return result


def parse_bool(value: Any, name: str, *, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"{name} must be a boolean")
