"""Document CRUD service.

``derived_status`` is read-only: it is never accepted from input and the
list filter translates it into conditions on the two date columns.
"""

from __future__ import annotations

import logging

from solarhub.core.exceptions import NotFoundError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.document import Document
from solarhub.models.project import Project
from solarhub.services import audit_service
from solarhub.services.document_status import DocumentStatus, parse_status
from solarhub.utils.helpers import parse_date

logger = logging.getLogger(__name__)

DATE_FIELDS = ("submitted_at", "issued_at", "due_at")
_TEXT_FIELDS = ("doc_type_code", "title", "drive_file_id", "note")


def status_clause(status: DocumentStatus):
    """SQL condition equivalent to ``derive_document_status(...) == status``."""
    if status is DocumentStatus.OBTAINED:
        return Document.issued_at.isnot(None)
    if status is DocumentStatus.IN_PROGRESS:
        return db.and_(Document.issued_at.is_(None), Document.submitted_at.isnot(None))
    return db.and_(Document.issued_at.is_(None), Document.submitted_at.is_(None))


def list_documents(
    *,
    project_id: int | None = None,
    derived_status: str | None = None,
    doc_type_code: str | None = None,
    include_deleted: bool = False,
) -> list[Document]:
    query = Document.query if include_deleted else Document.query_active()
    if project_id is not None:
        query = query.filter(Document.project_id == project_id)
    if doc_type_code:
        query = query.filter(Document.doc_type_code == doc_type_code)
    if derived_status:
        try:
            status = parse_status(derived_status)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"derived_status": derived_status}) from None
        query = query.filter(status_clause(status))
    return query.order_by(Document.project_id.asc(), Document.id.asc()).all()


def get_document(document_id: int, *, include_deleted: bool = False) -> Document:
    doc = db.session.get(Document, document_id)
    if doc is None or (doc.is_deleted and not include_deleted):
        raise NotFoundError(resource="documents", resource_id=document_id)
    return doc


def _date_or_error(data: dict, name: str, errors: dict):
    raw = data.get(name)
    if raw in (None, ""):
        return None
    value = parse_date(raw)
    if value is None:
        errors[name] = "invalid date"
    return value


def _check_project(project_id):
    if project_id in (None, ""):
        return None
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted:
        raise ValidationError("Project not found", details={"project_id": project_id})
    return project.id


def create_document(data: dict, *, actor: str | None = None) -> Document:
    errors = {}
    doc_type = str(data.get("doc_type", "") or "").strip()
    if not doc_type:
        errors["doc_type"] = "required"
    dates = {name: _date_or_error(data, name, errors) for name in DATE_FIELDS}
    if errors:
        raise ValidationError("Invalid document", details=errors)

    doc = Document(
        project_id=_check_project(data.get("project_id")),
        doc_type=doc_type,
        **dates,
        **{name: data.get(name) for name in _TEXT_FIELDS},
    )
    db.session.add(doc)
    db.session.commit()

    audit_service.log_action(
        "documents", doc.id, AuditAction.CREATE,
        actor_user_id=actor, new_data=audit_service.snapshot(doc),
    )
    return doc


def update_document(document_id: int, data: dict, *, actor: str | None = None) -> Document:
    doc = get_document(document_id)
    old = audit_service.snapshot(doc)

    errors = {}
    if "doc_type" in data:
        doc_type = str(data.get("doc_type") or "").strip()
        if not doc_type:
            errors["doc_type"] = "required"
        doc.doc_type = doc_type
    dates = {name: _date_or_error(data, name, errors) for name in DATE_FIELDS if name in data}
    if errors:
        db.session.rollback()
        raise ValidationError("Invalid document", details=errors)

    if "project_id" in data:
        doc.project_id = _check_project(data["project_id"])
    for name, value in dates.items():
        setattr(doc, name, value)
    for name in _TEXT_FIELDS:
        if name in data:
            setattr(doc, name, data[name])

    db.session.commit()

    audit_service.log_action(
        "documents", doc.id, AuditAction.UPDATE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(doc),
    )
    return doc
