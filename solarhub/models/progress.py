"""
SolarHub Back-Office
Progress domain models.

Models:
    - ProgressMilestone: catalogue of weighted milestones per track
    - ProjectMilestone:  per-project completion of a catalogue milestone
    - ProgressSetting:   keyed JSON settings (track weights, alert thresholds)
"""

from datetime import datetime, timezone

from solarhub.models import db

TRACK_ADMIN = "admin"
TRACK_ENGINEERING = "engineering"
TRACKS = (TRACK_ADMIN, TRACK_ENGINEERING)


def _utcnow():
    return datetime.now(timezone.utc)


class ProgressMilestone(db.Model):
    """
    One weighted step in the administrative or engineering track.

    Active weights within a track are expected to add up to 100; this is
    reported by ``progress_service.track_weight_summary`` and never enforced.
    """

    __tablename__ = "progress_milestones"

    id = db.Column(db.Integer, primary_key=True)
    milestone_code = db.Column(db.String(50), nullable=False, unique=True)
    milestone_type = db.Column(db.String(20), nullable=False, comment="admin | engineering")
    milestone_name = db.Column(db.String(100), nullable=False)
    weight = db.Column(db.Float, nullable=False, default=0.0, comment="percentage points")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_required = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.Text, nullable=True)
    stage_label = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "milestone_code": self.milestone_code,
            "milestone_type": self.milestone_type,
            "milestone_name": self.milestone_name,
            "weight": self.weight,
            "sort_order": self.sort_order,
            "is_required": self.is_required,
            "is_active": self.is_active,
            "description": self.description,
            "stage_label": self.stage_label,
        }


class ProjectMilestone(db.Model):
    __tablename__ = "project_milestones"
    __table_args__ = (
        db.UniqueConstraint("project_id", "milestone_code", name="uq_project_milestone_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    milestone_code = db.Column(db.String(50), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "milestone_code": self.milestone_code,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "completed_by": self.completed_by,
            "note": self.note,
        }


class ProgressSetting(db.Model):
    __tablename__ = "progress_settings"

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(50), nullable=False, unique=True)
    setting_value = db.Column(db.JSON, nullable=False, default=dict)
    description = db.Column(db.String(200), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "setting_key": self.setting_key,
            "setting_value": self.setting_value,
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
