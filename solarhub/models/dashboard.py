"""Per-user dashboard layout (section visibility and order, default filters)."""

from datetime import datetime, timezone

from solarhub.models import db


class DashboardSettings(db.Model):
    __tablename__ = "dashboard_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, unique=True)
    sections = db.Column(
        db.JSON, nullable=False, default=list,
        comment="[{id, label, visible, order}, ...]",
    )
    default_filters = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<DashboardSettings user={self.user_id}>"
