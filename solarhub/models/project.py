"""Project domain model: the solar site (案場) and its lifecycle stage."""

from datetime import datetime, timezone

from solarhub.models import db
from solarhub.models.soft_delete import (
    ArchiveMixin,
    DisableMixin,
    SoftDeleteMixin,
    lifecycle_fields,
)

# Fixed lifecycle, in order. The last two are terminal side-states.
PROJECT_STAGES = (
    "開發中",
    "土地確認",
    "結構簽證",
    "台電送件",
    "台電審查",
    "能源署送件",
    "同意備案",
    "工程施工",
    "報竣掛表",
    "設備登記",
    "運維中",
    "暫停",
    "取消",
)
DEFAULT_PROJECT_STAGE = PROJECT_STAGES[0]


def _utcnow():
    return datetime.now(timezone.utc)


class Project(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    """Root business entity."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    project_code = db.Column(db.String(50), nullable=False, unique=True)
    project_name = db.Column(db.String(200), nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default=DEFAULT_PROJECT_STAGE,
        comment="One of PROJECT_STAGES",
    )
    investor_id = db.Column(
        db.Integer, db.ForeignKey("investors.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    capacity_kwp = db.Column(db.Float, nullable=True)
    address = db.Column(db.String(300), nullable=True)
    note = db.Column(db.Text, nullable=True)

    # ── Cached progress (rewritten by progress_service.recalculate_project_progress) ──
    admin_progress = db.Column(db.Float, nullable=False, default=0.0)
    engineering_progress = db.Column(db.Float, nullable=False, default=0.0)
    overall_progress = db.Column(db.Float, nullable=False, default=0.0)
    admin_stage = db.Column(db.String(100), nullable=True)
    engineering_stage = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    investor = db.relationship("Investor", backref=db.backref("projects", lazy="dynamic"))
    documents = db.relationship(
        "Document", backref="project", lazy="dynamic", passive_deletes=True,
    )
    milestones = db.relationship(
        "ProjectMilestone", backref="project", lazy="dynamic", passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.project_name or self.project_code or "未命名案場"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_code": self.project_code,
            "project_name": self.project_name,
            "status": self.status,
            "investor_id": self.investor_id,
            "capacity_kwp": self.capacity_kwp,
            "address": self.address,
            "note": self.note,
            "admin_progress": self.admin_progress,
            "engineering_progress": self.engineering_progress,
            "overall_progress": self.overall_progress,
            "admin_stage": self.admin_stage,
            "engineering_stage": self.engineering_stage,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **lifecycle_fields(self),
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.project_code}>"
