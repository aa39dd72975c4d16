"""System operations for administrators.

    table_stats       row / soft-deleted counts per table
    check_integrity   orphan, retention and duplicate-code scan
    export_database   JSON snapshot of the business tables      (DB_EXPORT)
    import_database   insert snapshot rows whose ids are absent (DB_IMPORT)
    reset_database    scoped wipe behind typed confirmations    (DB_RESET)

Reset deletes table by table in dependency order and keeps going when one
table fails; the errors are returned with the counts that did succeed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from solarhub.core.exceptions import CooldownError, ValidationError
from solarhub.models import db
from solarhub.models.audit import SYSTEM_TABLE, AuditAction, AuditLog
from solarhub.models.deletion_policy import DeletionPolicy, GovernedTable
from solarhub.models.directory import Investor, InvestorContact, Partner, PartnerContact
from solarhub.models.document import Document
from solarhub.models.progress import ProgressMilestone, ProgressSetting, ProjectMilestone
from solarhub.models.project import Project
from solarhub.services import audit_service
from solarhub.services.deletion_service import get_effective_policy
from solarhub.utils.helpers import ensure_utc, parse_datetime, utcnow

logger = logging.getLogger(__name__)

RESET_CONFIRM_TEXT = "RESET"
SNAPSHOT_VERSION = 1

# Parents before children, so an import can insert in this order.
EXPORT_MODELS = (
    Investor,
    InvestorContact,
    Partner,
    PartnerContact,
    Project,
    Document,
    ProgressMilestone,
    ProjectMilestone,
    ProgressSetting,
    DeletionPolicy,
)
_EXPORT_BY_NAME = {m.__tablename__: m for m in EXPORT_MODELS}

# Children before parents, for deletion.
_DEMO_TABLES = ("documents", "project_milestones", "projects")
_BUSINESS_TABLES = _DEMO_TABLES + ("investor_contacts", "investors", "partner_contacts", "partners")
RESET_SCOPES = {
    "demo": _DEMO_TABLES,
    "business": _BUSINESS_TABLES,
    "factory": _BUSINESS_TABLES + ("audit_logs",),
}
_RESET_MODELS = {**_EXPORT_BY_NAME, "audit_logs": AuditLog}


# ── Stats & integrity ────────────────────────────────────────────────────


def _count(model, *conditions) -> int:
    return db.session.execute(select(func.count()).select_from(model).where(*conditions)).scalar() or 0


def table_stats() -> dict:
    tables = []
    for model in EXPORT_MODELS + (AuditLog,):
        entry = {"table_name": model.__tablename__, "row_count": _count(model)}
        if hasattr(model, "is_deleted"):
            entry["deleted_count"] = _count(model, model.is_deleted.is_(True))
        tables.append(entry)
    return {
        "tables": tables,
        "total_rows": sum(t["row_count"] for t in tables),
        "generated_at": utcnow().isoformat(),
    }


def check_integrity(now: datetime | None = None) -> dict:
    now = ensure_utc(now) or utcnow()
    issues = []

    orphan_docs = _count(Document, Document.project_id.is_(None))
    if orphan_docs:
        issues.append({
            "table": "documents", "issue": "缺少 project_id 的文件",
            "count": orphan_docs, "severity": "warning",
        })

    orphan_contacts = _count(InvestorContact, InvestorContact.investor_id.is_(None))
    if orphan_contacts:
        issues.append({
            "table": "investor_contacts", "issue": "缺少有效 investor_id 的聯絡人",
            "count": orphan_contacts, "severity": "warning",
        })

    no_investor = _count(Project, Project.investor_id.is_(None), Project.is_deleted.is_(False))
    if no_investor:
        issues.append({
            "table": "projects", "issue": "未指派投資人的專案",
            "count": no_investor, "severity": "info",
        })

    for table in (GovernedTable.PROJECTS, GovernedTable.DOCUMENTS, GovernedTable.INVESTORS, GovernedTable.PARTNERS):
        policy = get_effective_policy(table)
        if policy.retention_days is None:
            continue
        model = _EXPORT_BY_NAME[table.value]
        cutoff = now - timedelta(days=policy.retention_days)
        expired = _count(model, model.is_deleted.is_(True), model.deleted_at < cutoff)
        if expired:
            issues.append({
                "table": table.value, "issue": "超過保留期限的已刪除項目",
                "count": expired, "severity": "info",
            })

    duplicates = db.session.execute(
        select(Investor.investor_code)
        .where(Investor.is_deleted.is_(False))
        .group_by(Investor.investor_code)
        .having(func.count(Investor.id) > 1)
        .order_by(Investor.investor_code)
    ).scalars().all()
    if duplicates:
        issues.append({
            "table": "investors", "issue": f"重複的投資人代碼: {', '.join(duplicates)}",
            "count": len(duplicates), "severity": "error",
        })

    return {"ok": not issues, "issues": issues, "checked_at": now.isoformat()}


# ── Export / import ──────────────────────────────────────────────────────


def _serialise(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _row_to_dict(row) -> dict:
    return {col.name: _serialise(getattr(row, col.key)) for col in row.__table__.columns}


def export_database(*, actor: str | None = None) -> dict:
    tables = {}
    for model in EXPORT_MODELS:
        rows = model.query.order_by(model.id.asc()).all()
        tables[model.__tablename__] = [_row_to_dict(r) for r in rows]

    counts = {name: len(rows) for name, rows in tables.items()}
    audit_service.log_action(
        SYSTEM_TABLE, uuid.uuid4().hex, AuditAction.DB_EXPORT,
        actor_user_id=actor, new_data={"row_counts": counts},
    )
    logger.info("Database exported by %s: %s", actor, counts)
    return {
        "version": SNAPSHOT_VERSION,
        "exported_at": utcnow().isoformat(),
        "tables": tables,
    }


def _coerce(column, value):
    if value is None:
        return None
    if isinstance(column.type, db.DateTime):
        return parse_datetime(value)
    if isinstance(column.type, db.Date):
        return date.fromisoformat(str(value)[:10])
    return value


def import_database(snapshot: dict, *, actor: str | None = None) -> dict:
    """Insert the snapshot rows whose primary key is not in the table yet.

    Raises:
        ValidationError: malformed snapshot or unknown table.
    """
    if not isinstance(snapshot, dict) or not isinstance(snapshot.get("tables"), dict):
        raise ValidationError("Snapshot must contain a 'tables' object", details={"tables": "required"})
    unknown = sorted(set(snapshot["tables"]) - set(_EXPORT_BY_NAME))
    if unknown:
        raise ValidationError(f"Unknown tables in snapshot: {unknown}", details={"tables": unknown})

    inserted = {}
    for model in EXPORT_MODELS:
        rows = snapshot["tables"].get(model.__tablename__) or []
        columns = {c.name: c for c in model.__table__.columns}
        existing = set(db.session.execute(select(model.id)).scalars().all())
        count = 0
        for raw in rows:
            if not isinstance(raw, dict) or raw.get("id") in existing:
                continue
            try:
                values = {name: _coerce(columns[name], v) for name, v in raw.items() if name in columns}
            except ValueError as exc:
                db.session.rollback()
                raise ValidationError(
                    f"Invalid value in {model.__tablename__} id={raw.get('id')}: {exc}",
                ) from None
            db.session.execute(model.__table__.insert().values(**values))
            existing.add(raw.get("id"))
            count += 1
        inserted[model.__tablename__] = count

    db.session.commit()
    audit_service.log_action(
        SYSTEM_TABLE, uuid.uuid4().hex, AuditAction.DB_IMPORT,
        actor_user_id=actor, new_data={"inserted_counts": inserted, "version": snapshot.get("version")},
    )
    logger.info("Database import by %s inserted %s", actor, inserted)
    return {"inserted": inserted, "total_inserted": sum(inserted.values())}


# ── Reset ────────────────────────────────────────────────────────────────


def reset_cooldown_status(now: datetime | None = None) -> dict:
    now = ensure_utc(now) or utcnow()
    cooldown = timedelta(minutes=current_app.config.get("DB_RESET_COOLDOWN_MINUTES", 10))
    last = audit_service.last_action_at(AuditAction.DB_RESET)
    remaining = (last + cooldown - now) if last else timedelta(0)
    remaining_minutes = max(0, -(-int(remaining.total_seconds()) // 60))
    return {
        "last_reset_at": last.isoformat() if last else None,
        "in_cooldown": remaining_minutes > 0,
        "remaining_minutes": remaining_minutes,
    }


def _validate_reset(data: dict) -> dict:
    config = current_app.config
    errors = {}

    scope = data.get("scope")
    if scope not in RESET_SCOPES:
        errors["scope"] = f"must be one of {list(RESET_SCOPES)}"
    if data.get("confirm_text") != RESET_CONFIRM_TEXT:
        errors["confirm_text"] = f"type {RESET_CONFIRM_TEXT} to confirm"
    if data.get("environment_id") != config.get("ENVIRONMENT_ID"):
        errors["environment_id"] = "does not match this environment"
    reason = (data.get("reason") or "").strip()
    if len(reason) < config.get("DB_RESET_MIN_REASON_LENGTH", 10):
        errors["reason"] = f"at least {config.get('DB_RESET_MIN_REASON_LENGTH', 10)} characters"
    if not data.get("backup_file_id"):
        errors["backup_file_id"] = "a backup is required before reset"

    if errors:
        raise ValidationError("Reset request rejected", details=errors)
    return {"scope": scope, "reason": reason}


def reset_database(data: dict, *, actor: str | None = None, now: datetime | None = None) -> dict:
    """Delete every row of the scope's tables.

    Raises:
        ValidationError: any confirmation is missing or wrong.
        CooldownError: the previous reset is too recent.
    """
    clean = _validate_reset(data or {})
    cooldown = reset_cooldown_status(now)
    if cooldown["in_cooldown"]:
        raise CooldownError(
            f"冷卻時間尚未結束，請等待 {cooldown['remaining_minutes']} 分鐘後再試",
            remaining_minutes=cooldown["remaining_minutes"],
        )

    scope = clean["scope"]
    tables = RESET_SCOPES[scope]
    deleted_counts: dict[str, int] = {}
    errors: list[str] = []

    logger.warning("Database reset started by %s scope=%s tables=%s", actor, scope, tables)
    for name in tables:
        model = _RESET_MODELS[name]
        try:
            before = _count(model)
            db.session.execute(delete(model.__table__))
            db.session.commit()
            deleted_counts[name] = before
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Database reset failed on table %s: %s", name, exc)
            errors.append(f"{name}: {exc}")

    audit_service.log_action(
        SYSTEM_TABLE, uuid.uuid4().hex, AuditAction.DB_RESET,
        actor_user_id=actor,
        reason=clean["reason"],
        new_data={
            "scope": scope,
            "environment_id": data.get("environment_id"),
            "backup_file_id": data.get("backup_file_id"),
            "affected_tables": list(tables),
            "deleted_counts": deleted_counts,
        },
    )
    return {
        "success": not errors,
        "scope": scope,
        "deleted_counts": deleted_counts,
        "errors": errors,
    }
