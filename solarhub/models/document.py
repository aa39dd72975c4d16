"""Document model: permits and certificates attached to a project."""

from datetime import datetime, timezone

from solarhub.models import db
from solarhub.models.soft_delete import (
    ArchiveMixin,
    DisableMixin,
    SoftDeleteMixin,
    lifecycle_fields,
)
from solarhub.services.document_status import DocumentStatus, derive_document_status


def _utcnow():
    return datetime.now(timezone.utc)


class Document(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    """
    A permit / filing tracked per project.

    The lifecycle state is exposed as ``derived_status`` and is never a
    column: it is recomputed from ``submitted_at`` / ``issued_at`` on access.
    """

    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    doc_type = db.Column(db.String(100), nullable=False)
    doc_type_code = db.Column(db.String(30), nullable=True, index=True)
    title = db.Column(db.String(200), nullable=True)
    submitted_at = db.Column(db.Date, nullable=True, comment="送件日")
    issued_at = db.Column(db.Date, nullable=True, comment="核發日")
    due_at = db.Column(db.Date, nullable=True, comment="到期日")
    drive_file_id = db.Column(db.String(200), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    @property
    def derived_status(self) -> DocumentStatus:
        return derive_document_status(self.submitted_at, self.issued_at)

    @property
    def display_name(self) -> str:
        return self.doc_type or "未命名文件"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "doc_type": self.doc_type,
            "doc_type_code": self.doc_type_code,
            "title": self.title,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "drive_file_id": self.drive_file_id,
            "note": self.note,
            "derived_status": self.derived_status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **lifecycle_fields(self),
        }

    def __repr__(self):
        return f"<Document {self.id}: {self.doc_type} project={self.project_id}>"
