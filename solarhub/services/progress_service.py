"""Progress aggregation and stalled-project classification.

Pure calculation helpers come first (no database access) so dashboards and
tests can use them directly; the DB-backed operations below load the
milestone catalogue, settings and completion rows and delegate to them.

    track progress = Σ weight(completed ∧ active) / Σ weight(active) × 100
    overall        = admin × admin_weight/100 + engineering × engineering_weight/100
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime

from solarhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditAction
from solarhub.models.progress import (
    TRACK_ADMIN,
    TRACK_ENGINEERING,
    TRACKS,
    ProgressMilestone,
    ProgressSetting,
    ProjectMilestone,
)
from solarhub.models.project import PROJECT_STAGES, Project
from solarhub.services import audit_service
from solarhub.utils.helpers import add_months, ensure_utc, utcnow

logger = logging.getLogger(__name__)

STAGE_COMPLETED = "已完成"

SETTING_WEIGHTS = "weights"
SETTING_ALERT_THRESHOLDS = "alert_thresholds"

DEFAULT_WEIGHTS = {"admin_weight": 50, "engineering_weight": 50}

DEFAULT_LATE_STAGES = ("台電審查", "能源署送件", "同意備案", "工程施工", "報竣掛表")


# ── Pure calculation ─────────────────────────────────────────────────────


def track_progress(milestones, completed_codes) -> float:
    """Percent of active weight completed in one track (0 when nothing is active)."""
    completed_codes = set(completed_codes)
    active = [m for m in milestones if m.is_active]
    total = sum(max(m.weight or 0.0, 0.0) for m in active)
    if total <= 0:
        return 0.0
    done = sum(max(m.weight or 0.0, 0.0) for m in active if m.milestone_code in completed_codes)
    return done / total * 100


def normalize_weights(admin_weight=None, engineering_weight=None) -> dict:
    """Return an admin/engineering split that adds up to 100.

    Setting only one side infers the other. When both are given they must
    already add up to 100.
    """
    if admin_weight is None and engineering_weight is None:
        return dict(DEFAULT_WEIGHTS)

    try:
        admin = float(admin_weight) if admin_weight is not None else None
        engineering = float(engineering_weight) if engineering_weight is not None else None
    except (TypeError, ValueError):
        raise ValidationError("Weights must be numbers") from None

    if admin is None:
        admin = 100 - engineering
    elif engineering is None:
        engineering = 100 - admin

    if not (0 <= admin <= 100 and 0 <= engineering <= 100):
        raise ValidationError(
            "Weights must be between 0 and 100",
            details={"admin_weight": admin, "engineering_weight": engineering},
        )
    if abs(admin + engineering - 100) > 1e-9:
        raise ValidationError(
            "admin_weight + engineering_weight must equal 100",
            details={"admin_weight": admin, "engineering_weight": engineering},
        )
    return {"admin_weight": admin, "engineering_weight": engineering}


def overall_progress(admin: float, engineering: float, weights: dict) -> float:
    value = (
        admin * weights["admin_weight"] / 100
        + engineering * weights["engineering_weight"] / 100
    )
    return min(100.0, max(0.0, value))


def current_stage(milestones, completed_codes) -> str | None:
    """Name of the first incomplete active milestone by ``sort_order``.

    ``STAGE_COMPLETED`` once every active milestone is done; None for an
    empty track.
    """
    completed_codes = set(completed_codes)
    active = sorted((m for m in milestones if m.is_active), key=lambda m: (m.sort_order, m.id or 0))
    if not active:
        return None
    for m in active:
        if m.milestone_code not in completed_codes:
            return m.stage_label or m.milestone_name
    return STAGE_COMPLETED


@dataclass
class AlertThresholds:
    months_threshold: int = 6
    min_progress_old_project: float = 25
    min_progress_late_stage: float = 50
    late_stages: list = field(default_factory=lambda: list(DEFAULT_LATE_STAGES))
    max_display_count: int = 5

    @classmethod
    def from_dict(cls, data: dict | None) -> "AlertThresholds":
        data = data or {}
        defaults = cls()
        errors = {}
        values = {}
        for name in ("months_threshold", "max_display_count"):
            raw = data.get(name, getattr(defaults, name))
            try:
                values[name] = int(raw)
            except (TypeError, ValueError):
                errors[name] = "must be an integer"
        for name in ("min_progress_old_project", "min_progress_late_stage"):
            raw = data.get(name, getattr(defaults, name))
            try:
                values[name] = float(raw)
            except (TypeError, ValueError):
                errors[name] = "must be a number"
            else:
                if not 0 <= values[name] <= 100:
                    errors[name] = "must be between 0 and 100"

        late = data.get("late_stages", defaults.late_stages)
        if not isinstance(late, (list, tuple)):
            errors["late_stages"] = "must be a list"
        else:
            unknown = [s for s in late if s not in PROJECT_STAGES]
            if unknown:
                errors["late_stages"] = f"unknown stages: {unknown}"
            values["late_stages"] = list(late)

        if values.get("months_threshold", 0) < 0:
            errors["months_threshold"] = "must be >= 0"
        if values.get("max_display_count", 1) < 1:
            errors["max_display_count"] = "must be >= 1"

        if errors:
            raise ValidationError("Invalid alert thresholds", details=errors)
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)


def is_stalled(
    created_at: datetime,
    status: str,
    progress: float,
    thresholds: AlertThresholds,
    now: datetime | None = None,
) -> bool:
    """True when the project is older than the threshold and behind on progress."""
    now = ensure_utc(now) or utcnow()
    created_at = ensure_utc(created_at)
    if created_at is None:
        return False
    if add_months(created_at, thresholds.months_threshold) >= now:
        return False
    progress = progress or 0.0
    if progress < thresholds.min_progress_old_project:
        return True
    return status in thresholds.late_stages and progress < thresholds.min_progress_late_stage


# ── Settings ─────────────────────────────────────────────────────────────


def _get_setting(key: str):
    row = ProgressSetting.query.filter_by(setting_key=key).first()
    return row.setting_value if row else None


def _put_setting(key: str, value: dict, description: str | None = None) -> None:
    row = ProgressSetting.query.filter_by(setting_key=key).first()
    if row is None:
        row = ProgressSetting(setting_key=key, description=description)
        db.session.add(row)
    row.setting_value = value
    db.session.commit()


def get_weights() -> dict:
    stored = _get_setting(SETTING_WEIGHTS) or {}
    try:
        return normalize_weights(stored.get("admin_weight"), stored.get("engineering_weight"))
    except ValidationError:
        logger.warning("Stored progress weights are invalid (%r); using defaults", stored)
        return dict(DEFAULT_WEIGHTS)


def set_weights(data: dict) -> dict:
    weights = normalize_weights(data.get("admin_weight"), data.get("engineering_weight"))
    _put_setting(SETTING_WEIGHTS, weights, "Admin / engineering track split")
    logger.info("Progress weights set to %s", weights)
    return weights


def get_alert_thresholds() -> AlertThresholds:
    stored = _get_setting(SETTING_ALERT_THRESHOLDS)
    try:
        return AlertThresholds.from_dict(stored)
    except ValidationError:
        logger.warning("Stored alert thresholds are invalid (%r); using defaults", stored)
        return AlertThresholds()


def set_alert_thresholds(data: dict) -> AlertThresholds:
    merged = {**get_alert_thresholds().to_dict(), **(data or {})}
    thresholds = AlertThresholds.from_dict(merged)
    _put_setting(SETTING_ALERT_THRESHOLDS, thresholds.to_dict(), "Stalled project alert thresholds")
    return thresholds


# ── Milestone catalogue ──────────────────────────────────────────────────


def _validate_milestone(data: dict, *, partial: bool) -> dict:
    errors = {}
    clean = {}

    for name in ("milestone_code", "milestone_name"):
        if name in data:
            value = (data.get(name) or "").strip()
            if not value:
                errors[name] = "required"
            clean[name] = value
        elif not partial:
            errors[name] = "required"

    if "milestone_type" in data or not partial:
        if data.get("milestone_type") not in TRACKS:
            errors["milestone_type"] = f"must be one of {list(TRACKS)}"
        clean["milestone_type"] = data.get("milestone_type")

    if "weight" in data:
        try:
            clean["weight"] = float(data["weight"])
        except (TypeError, ValueError):
            errors["weight"] = "must be a number"
        else:
            if not 0 <= clean["weight"] <= 100:
                errors["weight"] = "must be between 0 and 100"

    if "sort_order" in data:
        try:
            clean["sort_order"] = int(data["sort_order"])
        except (TypeError, ValueError):
            errors["sort_order"] = "must be an integer"

    for flag in ("is_required", "is_active"):
        if flag in data:
            clean[flag] = bool(data[flag])
    for text in ("description", "stage_label"):
        if text in data:
            clean[text] = data[text]

    if errors:
        raise ValidationError("Invalid milestone", details=errors)
    return clean


def list_milestones(track: str | None = None, include_inactive: bool = True) -> list[ProgressMilestone]:
    q = ProgressMilestone.query
    if track:
        if track not in TRACKS:
            raise ValidationError(f"Unknown track: {track}", details={"track": track})
        q = q.filter(ProgressMilestone.milestone_type == track)
    if not include_inactive:
        q = q.filter(ProgressMilestone.is_active.is_(True))
    return q.order_by(
        ProgressMilestone.milestone_type, ProgressMilestone.sort_order, ProgressMilestone.id,
    ).all()


def create_milestone(data: dict) -> ProgressMilestone:
    clean = _validate_milestone(data, partial=False)
    if ProgressMilestone.query.filter_by(milestone_code=clean["milestone_code"]).first():
        raise ConflictError("ProgressMilestone", "milestone_code", clean["milestone_code"])
    milestone = ProgressMilestone(**clean)
    db.session.add(milestone)
    db.session.commit()
    return milestone


def update_milestone(milestone_id: int, data: dict) -> ProgressMilestone:
    milestone = db.session.get(ProgressMilestone, milestone_id)
    if milestone is None:
        raise NotFoundError(resource="ProgressMilestone", resource_id=milestone_id)
    clean = _validate_milestone(data, partial=True)

    new_code = clean.get("milestone_code")
    if new_code and new_code != milestone.milestone_code:
        if ProgressMilestone.query.filter_by(milestone_code=new_code).first():
            raise ConflictError("ProgressMilestone", "milestone_code", new_code)
        ProjectMilestone.query.filter_by(milestone_code=milestone.milestone_code).update(
            {"milestone_code": new_code}, synchronize_session=False,
        )

    for key, value in clean.items():
        setattr(milestone, key, value)
    db.session.commit()
    return milestone


def track_weight_summary() -> dict:
    """Sum of active weights per track, with a balance flag."""
    summary = {}
    for track in TRACKS:
        active = list_milestones(track, include_inactive=False)
        total = round(sum(m.weight or 0.0 for m in active), 2)
        summary[track] = {
            "active_count": len(active),
            "total_weight": total,
            "is_balanced": abs(total - 100) < 0.01,
        }
    return summary


# ── Project milestones ───────────────────────────────────────────────────


def _get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted:
        raise NotFoundError(resource="projects", resource_id=project_id)
    return project


def _completed_codes(project_id: int) -> set[str]:
    rows = ProjectMilestone.query.filter_by(project_id=project_id, is_completed=True).all()
    return {r.milestone_code for r in rows}


def get_project_milestones(project_id: int) -> dict:
    """Catalogue milestones per track with this project's completion state."""
    _get_project(project_id)
    rows = {r.milestone_code: r for r in ProjectMilestone.query.filter_by(project_id=project_id)}

    tracks = {}
    for track in TRACKS:
        items = []
        for m in list_milestones(track, include_inactive=False):
            row = rows.get(m.milestone_code)
            items.append({
                **m.to_dict(),
                "is_completed": bool(row and row.is_completed),
                "completed_at": row.completed_at.isoformat() if row and row.completed_at else None,
                "completed_by": row.completed_by if row else None,
                "note": row.note if row else None,
            })
        tracks[track] = items
    return tracks


def set_milestone_completion(
    project_id: int,
    milestone_code: str,
    completed: bool,
    *,
    actor: str | None = None,
    note: str | None = None,
) -> dict:
    """Mark one milestone done/undone, then recalculate the project."""
    _get_project(project_id)
    milestone = ProgressMilestone.query.filter_by(milestone_code=milestone_code).first()
    if milestone is None:
        raise NotFoundError(resource="ProgressMilestone", resource_id=milestone_code)

    row = ProjectMilestone.query.filter_by(project_id=project_id, milestone_code=milestone_code).first()
    if row is None:
        row = ProjectMilestone(project_id=project_id, milestone_code=milestone_code)
        db.session.add(row)

    row.is_completed = bool(completed)
    row.completed_at = utcnow() if completed else None
    row.completed_by = actor if completed else None
    if note is not None:
        row.note = note
    db.session.flush()

    return recalculate_project_progress(project_id, actor=actor)


def recalculate_project_progress(project_id: int, *, actor: str | None = None) -> dict:
    """Rewrite the cached progress and stage columns on a project."""
    project = _get_project(project_id)
    old = audit_service.snapshot(project)

    completed = _completed_codes(project_id)
    weights = get_weights()
    by_track = {t: list_milestones(t) for t in TRACKS}

    admin = track_progress(by_track[TRACK_ADMIN], completed)
    engineering = track_progress(by_track[TRACK_ENGINEERING], completed)

    project.admin_progress = round(admin, 2)
    project.engineering_progress = round(engineering, 2)
    project.overall_progress = round(overall_progress(admin, engineering, weights), 2)
    project.admin_stage = current_stage(by_track[TRACK_ADMIN], completed)
    project.engineering_stage = current_stage(by_track[TRACK_ENGINEERING], completed)
    db.session.commit()

    new = audit_service.snapshot(project)
    if _progress_changed(old, new):
        audit_service.log_action(
            "projects", project.id, AuditAction.UPDATE,
            actor_user_id=actor, old_data=old, new_data=new, reason="progress recalculated",
        )
    return {
        "project_id": project.id,
        "admin_progress": project.admin_progress,
        "engineering_progress": project.engineering_progress,
        "overall_progress": project.overall_progress,
        "admin_stage": project.admin_stage,
        "engineering_stage": project.engineering_stage,
        "weights": weights,
    }


_PROGRESS_KEYS = (
    "admin_progress", "engineering_progress", "overall_progress", "admin_stage", "engineering_stage",
)


def _progress_changed(old: dict, new: dict) -> bool:
    return any(old.get(k) != new.get(k) for k in _PROGRESS_KEYS)


def list_stalled_projects(now: datetime | None = None) -> dict:
    """Live projects flagged as stalled, oldest first, capped for display."""
    thresholds = get_alert_thresholds()
    projects = Project.query_active().order_by(Project.created_at.asc(), Project.id.asc()).all()
    stalled = [
        p for p in projects
        if is_stalled(p.created_at, p.status, p.overall_progress, thresholds, now=now)
    ]
    return {
        "total": len(stalled),
        "projects": [p.to_dict() for p in stalled[: thresholds.max_display_count]],
        "thresholds": thresholds.to_dict(),
    }
