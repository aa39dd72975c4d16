"""Investor / partner directory CRUD.

Same shape as the project service: validate, commit the row, then append a
CREATE / UPDATE audit entry with the snapshots.
"""

from __future__ import annotations

import logging

from solarhub.core.exceptions import NotFoundError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.directory import Investor, InvestorContact, Partner, PartnerContact
from solarhub.services import audit_service

logger = logging.getLogger(__name__)

PARTNER_TYPES = ("construction", "structural", "electrical", "other")

_INVESTOR_FIELDS = ("investor_code", "company_name", "tax_id", "address", "note")
_PARTNER_FIELDS = ("name", "partner_type", "phone", "email", "note")
_CONTACT_FIELDS = ("contact_name", "phone", "email")


def _required(data: dict, names, errors: dict) -> None:
    for name in names:
        if not str(data.get(name, "") or "").strip():
            errors[name] = "required"


def _get_live(model, table: str, record_id: int):
    record = db.session.get(model, record_id)
    if record is None or record.is_deleted:
        raise NotFoundError(resource=table, resource_id=record_id)
    return record


def _apply(record, data: dict, fields, required=()) -> None:
    errors = {}
    _required(data, [k for k in required if k in data], errors)
    if errors:
        raise ValidationError("Required fields cannot be empty", details=errors)
    for name in fields:
        if name in data:
            value = data[name]
            setattr(record, name, value.strip() if isinstance(value, str) else value)


def _create(model, table: str, data: dict, fields, required, actor, **extra):
    errors = {}
    _required(data, required, errors)
    if errors:
        raise ValidationError("Missing required fields", details=errors)
    record = model(**extra)
    _apply(record, data, fields)
    db.session.add(record)
    db.session.commit()
    audit_service.log_action(
        table, record.id, AuditAction.CREATE,
        actor_user_id=actor, new_data=audit_service.snapshot(record),
    )
    return record


def _update(record, table: str, data: dict, fields, required, actor):
    old = audit_service.snapshot(record)
    _apply(record, data, fields, required=required)
    db.session.commit()
    audit_service.log_action(
        table, record.id, AuditAction.UPDATE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(record),
    )
    return record


# ── Investors ────────────────────────────────────────────────────────────


def list_investors(*, include_deleted: bool = False, search: str | None = None) -> list[Investor]:
    query = Investor.query if include_deleted else Investor.query_active()
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Investor.investor_code.ilike(like), Investor.company_name.ilike(like)))
    return query.order_by(Investor.investor_code.asc(), Investor.id.asc()).all()


def get_investor(investor_id: int) -> Investor:
    return _get_live(Investor, "investors", investor_id)


def create_investor(data: dict, *, actor: str | None = None) -> Investor:
    investor = _create(
        Investor, "investors", data, _INVESTOR_FIELDS, ("investor_code", "company_name"), actor,
    )
    logger.info("Investor %s created by %s", investor.investor_code, actor)
    return investor


def update_investor(investor_id: int, data: dict, *, actor: str | None = None) -> Investor:
    return _update(
        get_investor(investor_id), "investors", data,
        _INVESTOR_FIELDS, ("investor_code", "company_name"), actor,
    )


def list_investor_contacts(investor_id: int) -> list[InvestorContact]:
    get_investor(investor_id)
    return (
        InvestorContact.query_active()
        .filter(InvestorContact.investor_id == investor_id)
        .order_by(InvestorContact.id.asc())
        .all()
    )


def create_investor_contact(investor_id: int, data: dict, *, actor: str | None = None) -> InvestorContact:
    get_investor(investor_id)
    return _create(
        InvestorContact, "investor_contacts", data, _CONTACT_FIELDS + ("title",),
        ("contact_name",), actor, investor_id=investor_id,
    )


# ── Partners ─────────────────────────────────────────────────────────────


def _check_partner_type(data: dict) -> None:
    value = data.get("partner_type")
    if value not in (None, "") and value not in PARTNER_TYPES:
        raise ValidationError(
            f"Unknown partner_type: {value}",
            details={"partner_type": f"must be one of {list(PARTNER_TYPES)}"},
        )


def list_partners(*, include_deleted: bool = False, partner_type: str | None = None) -> list[Partner]:
    query = Partner.query if include_deleted else Partner.query_active()
    if partner_type:
        query = query.filter(Partner.partner_type == partner_type)
    return query.order_by(Partner.name.asc(), Partner.id.asc()).all()


def get_partner(partner_id: int) -> Partner:
    return _get_live(Partner, "partners", partner_id)


def create_partner(data: dict, *, actor: str | None = None) -> Partner:
    _check_partner_type(data)
    return _create(Partner, "partners", data, _PARTNER_FIELDS, ("name",), actor)


def update_partner(partner_id: int, data: dict, *, actor: str | None = None) -> Partner:
    _check_partner_type(data)
    return _update(get_partner(partner_id), "partners", data, _PARTNER_FIELDS, ("name",), actor)


def list_partner_contacts(partner_id: int) -> list[PartnerContact]:
    get_partner(partner_id)
    return (
        PartnerContact.query_active()
        .filter(PartnerContact.partner_id == partner_id)
        .order_by(PartnerContact.id.asc())
        .all()
    )


def create_partner_contact(partner_id: int, data: dict, *, actor: str | None = None) -> PartnerContact:
    get_partner(partner_id)
    return _create(
        PartnerContact, "partner_contacts", data, _CONTACT_FIELDS + ("role",),
        ("contact_name",), actor, partner_id=partner_id,
    )
