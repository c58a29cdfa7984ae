# backend/fulfillment/config.py
from __future__ import annotations
import os
from decimal import Decimal


def _int_list(value: str) -> list[int]:
    return [int(part) for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fulfillment.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Applied by process_order when the caller passes tax_rate=None.
    # An explicit 0 from the caller is honoured as zero tax.
    DEFAULT_TAX_RATE = Decimal(os.environ.get("DEFAULT_TAX_RATE", "0.0875"))

    # Categories whose products earn the promotional discount bump
    PROMOTIONAL_CATEGORY_IDS = _int_list(os.environ.get("PROMOTIONAL_CATEGORY_IDS", "1,2,3"))

    AUDIT_DEFAULT_ACTOR = os.environ.get("AUDIT_DEFAULT_ACTOR", "system")

    # Subtotal drift tolerated by the integrity checker (currency units)
    INTEGRITY_EPSILON = Decimal(os.environ.get("INTEGRITY_EPSILON", "0.01"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
