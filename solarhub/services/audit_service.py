"""Audit log writer and queries.

Mutations commit first, then the audit row is written in its own commit.
The two steps are not one transaction: an audit write that fails after the
mutation committed is logged and dropped, never rolled back into the
mutation. Entries are therefore at-most-once per mutation.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from solarhub.core.exceptions import NotFoundError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AUDIT_ACTIONS, AuditAction, AuditLog, write_audit
from solarhub.utils.helpers import ensure_utc

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 200

# Keys computed on read; they never go into a stored snapshot.
_DERIVED_KEYS = frozenset({"derived_status"})


def snapshot(record) -> dict | None:
    """Return the audit snapshot of a model instance (``to_dict`` minus derived keys)."""
    if record is None:
        return None
    return {k: v for k, v in record.to_dict().items() if k not in _DERIVED_KEYS}


def log_action(
    table_name: str,
    record_id,
    action: AuditAction | str,
    *,
    actor_user_id: str | None = None,
    old_data: dict | None = None,
    new_data: dict | None = None,
    reason: str | None = None,
) -> AuditLog | None:
    """Append one audit row and commit it.

    Returns the entry, or None when the store rejected the write.
    """
    try:
        entry = write_audit(
            table_name=table_name,
            record_id=record_id,
            action=action,
            actor_user_id=actor_user_id,
            old_data=old_data,
            new_data=new_data,
            reason=reason,
        )
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning(
            "Audit write failed table=%s record=%s action=%s",
            table_name, record_id, action,
            exc_info=True,
            extra={
                "table_name": table_name,
                "record_id": str(record_id),
                "action": str(getattr(action, "value", action)),
                "actor_user_id": actor_user_id,
            },
        )
        return None


def list_audit_logs(
    *,
    table_name: str | None = None,
    record_id: str | None = None,
    action: str | None = None,
    actor_user_id: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    """Return paginated audit logs, newest first."""
    q = AuditLog.query

    if table_name:
        q = q.filter(AuditLog.table_name == table_name)
    if record_id:
        q = q.filter(AuditLog.record_id == str(record_id))
    if action:
        action = action.upper()
        if action not in AUDIT_ACTIONS:
            raise ValidationError(f"Unknown audit action: {action}", details={"action": action})
        q = q.filter(AuditLog.action == action)
    if actor_user_id:
        q = q.filter(AuditLog.actor_user_id == actor_user_id)

    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())

    page = max(1, page)
    per_page = min(MAX_PER_PAGE, max(1, per_page))
    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return {
        "audit_logs": [log.to_dict() for log in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }


def get_audit_log(log_id: int) -> dict:
    log = db.session.get(AuditLog, log_id)
    if log is None:
        raise NotFoundError(resource="AuditLog", resource_id=log_id)
    return log.to_dict()


def record_history(table_name: str, record_id) -> list[dict]:
    """Every entry for one record, oldest first."""
    rows = (
        AuditLog.query
        .filter(AuditLog.table_name == table_name, AuditLog.record_id == str(record_id))
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )
    return [r.to_dict() for r in rows]


def last_action_at(action: AuditAction) -> datetime | None:
    """Timestamp of the most recent entry with ``action``, if any."""
    value = db.session.execute(
        select(func.max(AuditLog.created_at)).where(AuditLog.action == action.value)
    ).scalar()
    return ensure_utc(value)
