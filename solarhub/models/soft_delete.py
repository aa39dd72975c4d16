"""
Record lifecycle mixins.

Adds the flag/timestamp columns the deletion policy dispatcher mutates.
Governed models include all three so any table can be switched between
deletion modes without a schema change.

Usage:
    class MyModel(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
        ...

    # Soft delete
    obj.soft_delete(actor="u-1", reason="duplicate")
    db.session.commit()

    # Query only live records
    MyModel.query_active().all()

    # Restore
    obj.restore()
    db.session.commit()
"""

from datetime import datetime, timezone

from solarhub.models import db


class SoftDeleteMixin:
    """Flag + timestamp + reason soft delete."""

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None)
    deleted_by = db.Column(db.String(64), nullable=True)
    delete_reason = db.Column(db.Text, nullable=True)

    def soft_delete(self, actor=None, reason=None):
        """Mark this record as deleted."""
        self.is_deleted = True
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by = actor
        self.delete_reason = reason

    def restore(self):
        """Clear every soft-delete field."""
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None
        self.delete_reason = None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.is_deleted.is_(False))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.is_deleted.is_(True))


class ArchiveMixin:
    """Read-only archive marker; archived rows stay visible in lists."""

    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_by = db.Column(db.String(64), nullable=True)
    archive_reason = db.Column(db.Text, nullable=True)

    def archive(self, actor=None, reason=None):
        self.is_archived = True
        self.archived_at = datetime.now(timezone.utc)
        self.archived_by = actor
        self.archive_reason = reason

    def unarchive(self):
        self.is_archived = False
        self.archived_at = None
        self.archived_by = None
        self.archive_reason = None


class DisableMixin:
    """``is_active`` switch used by the disable_only deletion mode."""

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def disable(self):
        self.is_active = False

    def enable(self):
        self.is_active = True


def lifecycle_fields(obj) -> dict:
    """Serialise the mixin columns shared by every governed model."""
    return {
        "is_deleted": bool(obj.is_deleted),
        "deleted_at": obj.deleted_at.isoformat() if obj.deleted_at else None,
        "deleted_by": obj.deleted_by,
        "delete_reason": obj.delete_reason,
        "is_archived": bool(obj.is_archived),
        "archived_at": obj.archived_at.isoformat() if obj.archived_at else None,
        "archive_reason": obj.archive_reason,
        "is_active": bool(obj.is_active),
    }
