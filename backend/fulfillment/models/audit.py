from __future__ import annotations

from ..extensions import db
from fulfillment.time_utils import to_utc_z


AUDIT_OPERATIONS = ("INSERT", "UPDATE", "DELETE", "FIX", "STOCK_ALERT")


class AuditEntry(db.Model):
    """
    Compliance record of a state transition.

    Append-only: services/audit_service.py is the only writer and it never
    updates or deletes. occurred time is created_at (system time).
    """
    __tablename__ = "audit_entries"
    __table_args__ = (
        db.Index("ix_audit_table_pk", "table_name", "primary_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(50), nullable=False)
    operation = db.Column(db.String(15), nullable=False, index=True)
    primary_key = db.Column(db.String(50), nullable=False)
    old_values = db.Column(db.Text, nullable=True)
    new_values = db.Column(db.Text, nullable=True)
    actor = db.Column(db.String(50), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "operation": self.operation,
            "primary_key": self.primary_key,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "actor": self.actor,
            "created_at": to_utc_z(self.created_at),
        }
