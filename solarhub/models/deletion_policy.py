"""
Deletion policy model.

One row per governed table. Tables are identified by ``GovernedTable``
rather than free-form strings; a table without a row falls back to
``DEFAULT_POLICY`` (soft delete, reason required).
"""

import enum
from datetime import datetime, timezone

from solarhub.models import db


class DeletionMode(str, enum.Enum):
    SOFT_DELETE = "soft_delete"
    ARCHIVE = "archive"
    HARD_DELETE = "hard_delete"
    DISABLE_ONLY = "disable_only"


class GovernedTable(str, enum.Enum):
    PROJECTS = "projects"
    DOCUMENTS = "documents"
    INVESTORS = "investors"
    INVESTOR_CONTACTS = "investor_contacts"
    PARTNERS = "partners"
    PARTNER_CONTACTS = "partner_contacts"


ARCHIVABLE_TABLES = frozenset({
    GovernedTable.PROJECTS,
    GovernedTable.DOCUMENTS,
    GovernedTable.INVESTORS,
    GovernedTable.PARTNERS,
})

TABLE_DISPLAY_NAMES = {
    GovernedTable.PROJECTS: "案場",
    GovernedTable.DOCUMENTS: "文件",
    GovernedTable.INVESTORS: "投資人",
    GovernedTable.INVESTOR_CONTACTS: "投資人聯絡人",
    GovernedTable.PARTNERS: "外包夥伴",
    GovernedTable.PARTNER_CONTACTS: "夥伴聯絡人",
}

DEFAULT_POLICY = {
    "deletion_mode": DeletionMode.SOFT_DELETE.value,
    "retention_days": 30,
    "require_reason": True,
    "require_confirmation": True,
    "allow_auto_purge": False,
}


def _utcnow():
    return datetime.now(timezone.utc)


class DeletionPolicy(db.Model):
    __tablename__ = "deletion_policies"

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(60), nullable=False, unique=True)
    deletion_mode = db.Column(
        db.String(20), nullable=False, default=DeletionMode.SOFT_DELETE.value,
        comment="soft_delete | archive | hard_delete | disable_only",
    )
    retention_days = db.Column(db.Integer, nullable=True, default=30)
    require_reason = db.Column(db.Boolean, nullable=True, default=True)
    require_confirmation = db.Column(db.Boolean, nullable=True, default=True)
    allow_auto_purge = db.Column(db.Boolean, nullable=True, default=False)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "deletion_mode": self.deletion_mode,
            "retention_days": self.retention_days,
            "require_reason": self.require_reason,
            "require_confirmation": self.require_confirmation,
            "allow_auto_purge": self.allow_auto_purge,
            "created_by": self.created_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
