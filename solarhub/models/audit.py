"""
SolarHub Back-Office
Audit domain model.

Models:
    - AuditLog: immutable, append-only trail of record mutations and
      system operations. Consumed by the audit log and recycle bin views.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import event

from solarhub.models import db


class AuditAction(str, enum.Enum):
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    PURGE = "PURGE"
    ARCHIVE = "ARCHIVE"
    UNARCHIVE = "UNARCHIVE"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DB_RESET = "DB_RESET"
    DB_EXPORT = "DB_EXPORT"
    DB_IMPORT = "DB_IMPORT"


AUDIT_ACTIONS = frozenset(a.value for a in AuditAction)

# table_name used for entries that are not about a single row
SYSTEM_TABLE = "system"


class AuditLog(db.Model):
    """
    Immutable audit trail entry.

    One row per action on one record. ``old_data`` / ``new_data`` carry
    opaque before/after snapshots (whatever the model's ``to_dict`` returned).
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_record", "table_name", "record_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_created", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(60), nullable=False)
    record_id = db.Column(
        db.String(64), nullable=False,
        comment="PK of the referenced row (int-as-string) or a batch/system token",
    )
    action = db.Column(
        db.String(20), nullable=False,
        comment="DELETE | RESTORE | PURGE | ARCHIVE | UNARCHIVE | CREATE | UPDATE | DB_*",
    )
    actor_user_id = db.Column(db.String(64), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    old_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "action": self.action,
            "actor_user_id": self.actor_user_id,
            "reason": self.reason,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.table_name}/{self.record_id}>"


class ImmutableAuditLogError(RuntimeError):
    """Raised when ORM code tries to change or remove an audit row."""


@event.listens_for(AuditLog, "before_update")
def _block_update(mapper, connection, target):
    raise ImmutableAuditLogError(f"audit_logs row {target.id} is immutable")


@event.listens_for(AuditLog, "before_delete")
def _block_delete(mapper, connection, target):
    raise ImmutableAuditLogError(f"audit_logs row {target.id} cannot be deleted")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    table_name: str,
    record_id,
    action: str,
    actor_user_id: str | None = None,
    old_data: dict | None = None,
    new_data: dict | None = None,
    reason: str | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Raises:
        ValueError: ``action`` is not one of ``AuditAction``.
    """
    action = action.value if isinstance(action, AuditAction) else str(action)
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    log = AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        actor_user_id=str(actor_user_id) if actor_user_id is not None else None,
        old_data=old_data,
        new_data=new_data,
        reason=reason,
    )
    db.session.add(log)
    db.session.flush()
    return log
