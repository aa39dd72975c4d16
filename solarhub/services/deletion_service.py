"""Deletion policy dispatcher.

Every governed table has at most one ``DeletionPolicy`` row. Operations
resolve the table through ``GovernedTable``, load the effective policy
(the row, or ``DEFAULT_POLICY`` when there is none) and dispatch on
``deletion_mode``:

    soft_delete   → is_deleted / deleted_at / delete_reason     (DELETE)
    archive       → is_archived / archived_at / archive_reason  (ARCHIVE)
    hard_delete   → physical row delete                         (DELETE)
    disable_only  → is_active = False, record kept              (UPDATE)

Validation (reason, confirmation, policy permission) always happens before
the first mutation. The mutation is committed, then the audit entry is
written through ``audit_service.log_action``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from solarhub.core.exceptions import NotFoundError, PolicyViolationError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.deletion_policy import (
    ARCHIVABLE_TABLES,
    DEFAULT_POLICY,
    TABLE_DISPLAY_NAMES,
    DeletionMode,
    DeletionPolicy,
    GovernedTable,
)
from solarhub.models.directory import Investor, InvestorContact, Partner, PartnerContact
from solarhub.models.document import Document
from solarhub.models.project import Project
from solarhub.services import audit_service
from solarhub.utils.helpers import ensure_utc, parse_bool, utcnow

logger = logging.getLogger(__name__)

MODELS: dict[GovernedTable, type] = {
    GovernedTable.PROJECTS: Project,
    GovernedTable.DOCUMENTS: Document,
    GovernedTable.INVESTORS: Investor,
    GovernedTable.INVESTOR_CONTACTS: InvestorContact,
    GovernedTable.PARTNERS: Partner,
    GovernedTable.PARTNER_CONTACTS: PartnerContact,
}

# Per-item failures a batch records instead of raising.
_ITEM_ERRORS = (NotFoundError, ValidationError, PolicyViolationError, SQLAlchemyError)


@dataclass(frozen=True)
class EffectivePolicy:
    table: GovernedTable
    deletion_mode: DeletionMode
    retention_days: int | None
    require_reason: bool
    require_confirmation: bool
    allow_auto_purge: bool
    is_default: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["table_name"] = self.table.value
        data["display_name"] = TABLE_DISPLAY_NAMES[self.table]
        data["deletion_mode"] = self.deletion_mode.value
        data["archivable"] = self.table in ARCHIVABLE_TABLES
        del data["table"]
        return data


# ── Lookup ───────────────────────────────────────────────────────────────


def resolve_table(table_name) -> GovernedTable:
    """Map a table name to its ``GovernedTable`` member.

    Raises:
        ValidationError: the table is not governed.
    """
    if isinstance(table_name, GovernedTable):
        return table_name
    try:
        return GovernedTable(str(table_name))
    except ValueError:
        raise ValidationError(
            f"Table is not governed by a deletion policy: {table_name}",
            details={"table_name": table_name},
        ) from None


def _default_retention() -> int:
    return current_app.config.get("DEFAULT_RETENTION_DAYS", DEFAULT_POLICY["retention_days"])


def _bool_or_default(value, key: str) -> bool:
    return DEFAULT_POLICY[key] if value is None else bool(value)


def get_effective_policy(table) -> EffectivePolicy:
    """Return the policy row for ``table`` or the safe default."""
    table = resolve_table(table)
    row = DeletionPolicy.query.filter_by(table_name=table.value).first()
    if row is None:
        return EffectivePolicy(
            table=table,
            deletion_mode=DeletionMode(DEFAULT_POLICY["deletion_mode"]),
            retention_days=_default_retention(),
            require_reason=DEFAULT_POLICY["require_reason"],
            require_confirmation=DEFAULT_POLICY["require_confirmation"],
            allow_auto_purge=DEFAULT_POLICY["allow_auto_purge"],
            is_default=True,
        )

    try:
        mode = DeletionMode(row.deletion_mode)
    except ValueError:
        logger.warning(
            "Unknown deletion_mode=%r on table=%s, falling back to soft_delete",
            row.deletion_mode, table.value,
        )
        mode = DeletionMode.SOFT_DELETE

    return EffectivePolicy(
        table=table,
        deletion_mode=mode,
        retention_days=row.retention_days,
        require_reason=_bool_or_default(row.require_reason, "require_reason"),
        require_confirmation=_bool_or_default(row.require_confirmation, "require_confirmation"),
        allow_auto_purge=_bool_or_default(row.allow_auto_purge, "allow_auto_purge"),
    )


def list_policies() -> list[dict]:
    return [get_effective_policy(t).to_dict() for t in GovernedTable]


def upsert_policy(table, data: dict, actor: str | None = None) -> dict:
    """Create or update the policy row for ``table``."""
    table = resolve_table(table)
    errors = {}

    mode = data.get("deletion_mode")
    if mode is not None:
        try:
            mode = DeletionMode(mode)
        except ValueError:
            errors["deletion_mode"] = f"must be one of {[m.value for m in DeletionMode]}"
        else:
            if mode is DeletionMode.ARCHIVE and table not in ARCHIVABLE_TABLES:
                errors["deletion_mode"] = f"{table.value} cannot be archived"

    retention = data.get("retention_days")
    if retention is not None:
        try:
            retention = int(retention)
        except (TypeError, ValueError):
            errors["retention_days"] = "must be an integer"
        else:
            if retention < 0:
                errors["retention_days"] = "must be >= 0"

    if errors:
        raise ValidationError("Invalid deletion policy", details=errors)

    row = DeletionPolicy.query.filter_by(table_name=table.value).first()
    if row is None:
        row = DeletionPolicy(table_name=table.value, created_by=actor, **DEFAULT_POLICY)
        db.session.add(row)

    if mode is not None:
        row.deletion_mode = mode.value
    if "retention_days" in data:
        row.retention_days = retention
    for flag in ("require_reason", "require_confirmation", "allow_auto_purge"):
        if flag in data:
            setattr(row, flag, parse_bool(data[flag]))

    db.session.commit()
    logger.info("Deletion policy for %s set to %s by %s", table.value, row.deletion_mode, actor)
    return get_effective_policy(table).to_dict()


def get_record(table, record_id):
    """Load any row of a governed table, deleted or not."""
    table = resolve_table(table)
    record = db.session.get(MODELS[table], record_id)
    if record is None:
        raise NotFoundError(resource=table.value, resource_id=record_id)
    return record


# ── Single-record operations ─────────────────────────────────────────────


def _result(table: GovernedTable, record_id, action: AuditAction | None, **extra) -> dict:
    out = {
        "table_name": table.value,
        "record_id": record_id,
        "action": action.value if action else None,
    }
    out.update(extra)
    return out


def delete_record(table, record_id, *, reason: str | None = None, actor: str | None = None) -> dict:
    """Delete one record the way its table's policy says.

    Raises:
        ValidationError: reason required but blank, or record already deleted.
        NotFoundError: no such record.
    """
    table = resolve_table(table)
    policy = get_effective_policy(table)
    reason = (reason or "").strip() or None
    if policy.require_reason and not reason:
        raise ValidationError("A delete reason is required", details={"reason": "required"})

    record = get_record(table, record_id)
    if record.is_deleted:
        raise ValidationError(f"{table.value} id={record_id} is already deleted")

    old = audit_service.snapshot(record)
    mode = policy.deletion_mode

    if mode is DeletionMode.HARD_DELETE:
        db.session.delete(record)
        db.session.commit()
        audit_service.log_action(
            table.value, record_id, AuditAction.DELETE,
            actor_user_id=actor, old_data=old, reason=reason,
        )
        logger.info("Hard-deleted %s id=%s by %s", table.value, record_id, actor)
        return _result(table, record_id, AuditAction.DELETE, mode=mode.value, deleted=True)

    if mode is DeletionMode.ARCHIVE:
        if table not in ARCHIVABLE_TABLES:
            raise PolicyViolationError(f"{table.value} cannot be archived", table=table.value)
        record.archive(actor=actor, reason=reason)
        action = AuditAction.ARCHIVE
        deleted = False
    elif mode is DeletionMode.DISABLE_ONLY:
        record.disable()
        action = AuditAction.UPDATE
        deleted = False
    else:
        record.soft_delete(actor=actor, reason=reason)
        action = AuditAction.DELETE
        deleted = True

    db.session.commit()
    audit_service.log_action(
        table.value, record_id, action,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(record), reason=reason,
    )
    logger.info(
        "%s %s id=%s (mode=%s) by %s", action.value, table.value, record_id, mode.value, actor,
        extra={"table_name": table.value, "record_id": str(record_id), "action": action.value},
    )
    return _result(table, record_id, action, mode=mode.value, deleted=deleted)


def restore_record(table, record_id, *, actor: str | None = None, reason: str | None = None) -> dict:
    table = resolve_table(table)
    record = get_record(table, record_id)
    if not record.is_deleted:
        raise ValidationError(f"{table.value} id={record_id} is not deleted")

    old = audit_service.snapshot(record)
    record.restore()
    db.session.commit()
    audit_service.log_action(
        table.value, record_id, AuditAction.RESTORE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(record), reason=reason,
    )
    logger.info("Restored %s id=%s by %s", table.value, record_id, actor)
    return _result(table, record_id, AuditAction.RESTORE)


def _check_purge_allowed(policy: EffectivePolicy, *, admin: bool, confirm: bool):
    if not (policy.allow_auto_purge or admin):
        raise PolicyViolationError(
            f"Purging {policy.table.value} requires an admin or allow_auto_purge",
            table=policy.table.value,
        )
    if policy.require_confirmation and not confirm:
        raise ValidationError("Purge must be confirmed", details={"confirm": "required"})


def _purge(table: GovernedTable, record, *, actor, reason) -> None:
    record_id = record.id
    old = audit_service.snapshot(record)
    db.session.delete(record)
    db.session.commit()
    audit_service.log_action(
        table.value, record_id, AuditAction.PURGE,
        actor_user_id=actor, old_data=old, reason=reason,
    )


def purge_record(
    table,
    record_id,
    *,
    actor: str | None = None,
    admin: bool = False,
    confirm: bool = False,
    reason: str | None = None,
) -> dict:
    """Physically delete an already soft-deleted record.

    Raises:
        PolicyViolationError: record not soft-deleted, or caller may not purge.
        ValidationError: confirmation required but missing.
    """
    table = resolve_table(table)
    policy = get_effective_policy(table)
    _check_purge_allowed(policy, admin=admin, confirm=confirm)

    record = get_record(table, record_id)
    if not record.is_deleted:
        raise PolicyViolationError(
            f"{table.value} id={record_id} must be deleted before it can be purged",
            table=table.value,
        )
    _purge(table, record, actor=actor, reason=reason)
    logger.info("Purged %s id=%s by %s", table.value, record_id, actor)
    return _result(table, record_id, AuditAction.PURGE)


def archive_record(table, record_id, *, reason: str | None = None, actor: str | None = None) -> dict:
    table = resolve_table(table)
    if table not in ARCHIVABLE_TABLES:
        raise PolicyViolationError(f"{table.value} cannot be archived", table=table.value)
    record = get_record(table, record_id)
    if record.is_archived:
        raise ValidationError(f"{table.value} id={record_id} is already archived")

    old = audit_service.snapshot(record)
    record.archive(actor=actor, reason=(reason or "").strip() or None)
    db.session.commit()
    audit_service.log_action(
        table.value, record_id, AuditAction.ARCHIVE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(record), reason=reason,
    )
    return _result(table, record_id, AuditAction.ARCHIVE)


def unarchive_record(table, record_id, *, actor: str | None = None) -> dict:
    table = resolve_table(table)
    if table not in ARCHIVABLE_TABLES:
        raise PolicyViolationError(f"{table.value} cannot be archived", table=table.value)
    record = get_record(table, record_id)
    if not record.is_archived:
        raise ValidationError(f"{table.value} id={record_id} is not archived")

    old = audit_service.snapshot(record)
    record.unarchive()
    db.session.commit()
    audit_service.log_action(
        table.value, record_id, AuditAction.UNARCHIVE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(record),
    )
    return _result(table, record_id, AuditAction.UNARCHIVE)


# ── Batch operations ─────────────────────────────────────────────────────


def _run_batch(operation, table: GovernedTable, record_ids, **kwargs) -> dict:
    """Apply ``operation`` to each id; one failure never stops the batch."""
    results = []
    for record_id in record_ids:
        try:
            operation(table, record_id, **kwargs)
        except _ITEM_ERRORS as exc:
            db.session.rollback()
            logger.warning("Batch %s failed on %s id=%s: %s", operation.__name__, table.value, record_id, exc)
            results.append({"record_id": record_id, "ok": False, "error": str(exc)})
        else:
            results.append({"record_id": record_id, "ok": True, "error": None})

    succeeded = sum(1 for r in results if r["ok"])
    return {
        "table_name": table.value,
        "results": results,
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


def _check_ids(record_ids) -> list:
    if not record_ids:
        raise ValidationError("record_ids must be a non-empty list", details={"record_ids": "required"})
    return list(dict.fromkeys(record_ids))


def batch_delete(table, record_ids, *, reason: str | None = None, actor: str | None = None) -> dict:
    table = resolve_table(table)
    record_ids = _check_ids(record_ids)
    if get_effective_policy(table).require_reason and not (reason or "").strip():
        raise ValidationError("A delete reason is required", details={"reason": "required"})
    return _run_batch(delete_record, table, record_ids, reason=reason, actor=actor)


def batch_restore(table, record_ids, *, actor: str | None = None) -> dict:
    table = resolve_table(table)
    return _run_batch(restore_record, table, _check_ids(record_ids), actor=actor)


def batch_purge(
    table, record_ids, *, actor: str | None = None, admin: bool = False, confirm: bool = False,
) -> dict:
    table = resolve_table(table)
    record_ids = _check_ids(record_ids)
    _check_purge_allowed(get_effective_policy(table), admin=admin, confirm=confirm)
    return _run_batch(purge_record, table, record_ids, actor=actor, admin=admin, confirm=confirm)


# ── Recycle bin / retention ──────────────────────────────────────────────


def _purge_after(deleted_at: datetime | None, retention_days: int | None):
    if deleted_at is None or retention_days is None:
        return None
    return ensure_utc(deleted_at) + timedelta(days=retention_days)


def list_recycle_bin(table=None) -> list[dict]:
    """Soft-deleted records across governed tables, newest deletion first."""
    tables = [resolve_table(table)] if table else list(GovernedTable)
    items = []

    for gt in tables:
        model = MODELS[gt]
        policy = get_effective_policy(gt)
        try:
            rows = model.query_deleted().all()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Recycle bin: skipping table %s", gt.value, exc_info=True)
            continue

        for row in rows:
            purge_after = _purge_after(row.deleted_at, policy.retention_days)
            items.append({
                "table_name": gt.value,
                "table_display_name": TABLE_DISPLAY_NAMES[gt],
                "record_id": row.id,
                "display_name": row.display_name,
                "deleted_at": ensure_utc(row.deleted_at).isoformat() if row.deleted_at else None,
                "deleted_by": row.deleted_by,
                "delete_reason": row.delete_reason,
                "retention_days": policy.retention_days,
                "purge_after": purge_after.isoformat() if purge_after else None,
            })

    items.sort(key=lambda i: i["deleted_at"] or "", reverse=True)
    return items


def purge_expired(now: datetime | None = None, actor: str = "system") -> dict[str, int]:
    """Purge soft-deleted rows past retention on tables allowing auto purge.

    Returns the number of purged rows per table.
    """
    now = ensure_utc(now) or utcnow()
    purged: dict[str, int] = {}

    for gt in GovernedTable:
        policy = get_effective_policy(gt)
        if not policy.allow_auto_purge or policy.retention_days is None:
            continue

        count = 0
        for row in MODELS[gt].query_deleted().all():
            purge_after = _purge_after(row.deleted_at, policy.retention_days)
            if purge_after is None or purge_after > now:
                continue
            _purge(gt, row, actor=actor, reason=f"retention {policy.retention_days}d expired")
            count += 1

        if count:
            logger.info("Retention purge removed %d row(s) from %s", count, gt.value)
        purged[gt.value] = count

    return purged
