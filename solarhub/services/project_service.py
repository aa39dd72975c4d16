"""Project CRUD service.

Create and update commit the row and then append a CREATE / UPDATE audit
entry. Progress columns are owned by ``progress_service`` and ignored here.
"""

from __future__ import annotations

import logging

from solarhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.directory import Investor
from solarhub.models.project import DEFAULT_PROJECT_STAGE, PROJECT_STAGES, Project
from solarhub.services import audit_service

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("project_name", "address", "note")


def list_projects(
    *,
    include_deleted: bool = False,
    status: str | None = None,
    investor_id: int | None = None,
    search: str | None = None,
) -> list[Project]:
    query = Project.query if include_deleted else Project.query_active()
    if status:
        query = query.filter(Project.status == _check_status(status))
    if investor_id is not None:
        query = query.filter(Project.investor_id == investor_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Project.project_code.ilike(like), Project.project_name.ilike(like)))
    return query.order_by(Project.project_code.asc()).all()


def get_project(project_id: int, *, include_deleted: bool = False) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or (project.is_deleted and not include_deleted):
        raise NotFoundError(resource="projects", resource_id=project_id)
    return project


def _check_status(status: str) -> str:
    status = str(status or "").strip()
    if status not in PROJECT_STAGES:
        raise ValidationError(
            f"Unknown project status: {status}",
            details={"status": f"must be one of {list(PROJECT_STAGES)}"},
        )
    return status


def _check_investor(investor_id):
    if investor_id in (None, ""):
        return None
    investor = db.session.get(Investor, investor_id)
    if investor is None or investor.is_deleted:
        raise ValidationError("Investor not found", details={"investor_id": investor_id})
    return investor.id


def _check_capacity(value):
    if value in (None, ""):
        return None
    try:
        capacity = float(value)
    except (TypeError, ValueError):
        raise ValidationError("capacity_kwp must be a number", details={"capacity_kwp": value}) from None
    if capacity < 0:
        raise ValidationError("capacity_kwp must be >= 0", details={"capacity_kwp": value})
    return capacity


def _check_code_unique(code: str, exclude_id: int | None = None):
    query = Project.query.filter(Project.project_code == code)
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    if query.first():
        raise ConflictError("projects", "project_code", code)


def create_project(data: dict, *, actor: str | None = None) -> Project:
    code = str(data.get("project_code", "") or "").strip()
    name = str(data.get("project_name", "") or "").strip()

    errors = {}
    if not code:
        errors["project_code"] = "required"
    if not name:
        errors["project_name"] = "required"
    if errors:
        raise ValidationError("Missing required fields", details=errors)
    _check_code_unique(code)

    project = Project(
        project_code=code,
        project_name=name,
        status=_check_status(data.get("status") or DEFAULT_PROJECT_STAGE),
        investor_id=_check_investor(data.get("investor_id")),
        capacity_kwp=_check_capacity(data.get("capacity_kwp")),
        address=data.get("address"),
        note=data.get("note"),
    )
    db.session.add(project)
    db.session.commit()

    audit_service.log_action(
        "projects", project.id, AuditAction.CREATE,
        actor_user_id=actor, new_data=audit_service.snapshot(project),
    )
    logger.info("Project %s created by %s", project.project_code, actor)
    return project


def update_project(project_id: int, data: dict, *, actor: str | None = None) -> Project:
    project = get_project(project_id)
    old = audit_service.snapshot(project)

    if "project_code" in data:
        code = str(data.get("project_code", "") or "").strip()
        if not code:
            raise ValidationError("project_code cannot be empty", details={"project_code": "required"})
        _check_code_unique(code, exclude_id=project.id)
        project.project_code = code

    if "status" in data:
        project.status = _check_status(data["status"])
    if "investor_id" in data:
        project.investor_id = _check_investor(data["investor_id"])
    if "capacity_kwp" in data:
        project.capacity_kwp = _check_capacity(data["capacity_kwp"])

    for attr in _TEXT_FIELDS:
        if attr in data:
            value = data.get(attr)
            if attr == "project_name" and not str(value or "").strip():
                raise ValidationError("project_name cannot be empty", details={"project_name": "required"})
            setattr(project, attr, value)

    db.session.commit()

    audit_service.log_action(
        "projects", project.id, AuditAction.UPDATE,
        actor_user_id=actor, old_data=old, new_data=audit_service.snapshot(project),
    )
    return project
