# Overview: Service-layer operations for the audit trail; append-only compliance log.

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import current_app

from ..extensions import db
from ..models import AuditEntry
from fulfillment.time_utils import utcnow
"""
Audit Trail Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Entries are written inside the same DB transaction as the state change they
  describe, by the operation that owns the change (no ORM event listeners).
- Values are stored as compact "key=value" text, keys sorted, so two entries
  describing the same state compare equal.
"""


def format_values(values: Optional[Mapping[str, Any]]) -> Optional[str]:
    if values is None:
        return None
    return ", ".join(f"{key}={values[key]}" for key in sorted(values))


def record(
    table_name: str,
    operation: str,
    primary_key,
    *,
    old_values: Optional[Mapping[str, Any]] = None,
    new_values: Optional[Mapping[str, Any]] = None,
    actor: str | None = None,
) -> AuditEntry:
    """
    Append one audit entry to the current unit of work.

    Flushes so the entry gets its id; the caller's transaction decides
    whether it commits.
    """
    entry = AuditEntry(
        table_name=table_name,
        operation=operation,
        primary_key=str(primary_key),
        old_values=format_values(old_values),
        new_values=format_values(new_values),
        actor=actor or current_app.config.get("AUDIT_DEFAULT_ACTOR", "system"),
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_entries(
    *,
    table_name: str | None = None,
    primary_key=None,
    operation: str | None = None,
    limit: int = 200,
) -> list[AuditEntry]:
    q = db.session.query(AuditEntry)
    if table_name is not None:
        q = q.filter(AuditEntry.table_name == table_name)
    if primary_key is not None:
        q = q.filter(AuditEntry.primary_key == str(primary_key))
    if operation is not None:
        q = q.filter(AuditEntry.operation == operation)
    return q.order_by(AuditEntry.id.desc()).limit(limit).all()
