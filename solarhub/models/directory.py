"""Investor and partner directory models."""

from datetime import datetime, timezone

from solarhub.models import db
from solarhub.models.soft_delete import (
    ArchiveMixin,
    DisableMixin,
    SoftDeleteMixin,
    lifecycle_fields,
)


def _utcnow():
    return datetime.now(timezone.utc)


class Investor(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    """Company that owns one or more solar projects."""

    __tablename__ = "investors"

    id = db.Column(db.Integer, primary_key=True)
    investor_code = db.Column(
        db.String(20), nullable=False, index=True,
        comment="Short code used in project codes; uniqueness checked by integrity scan",
    )
    company_name = db.Column(db.String(200), nullable=False)
    tax_id = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(300), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    contacts = db.relationship(
        "InvestorContact", backref="investor", lazy="dynamic", passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.company_name or "未命名投資人"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "investor_code": self.investor_code,
            "company_name": self.company_name,
            "tax_id": self.tax_id,
            "address": self.address,
            "note": self.note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **lifecycle_fields(self),
        }


class InvestorContact(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    __tablename__ = "investor_contacts"

    id = db.Column(db.Integer, primary_key=True)
    investor_id = db.Column(
        db.Integer, db.ForeignKey("investors.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    contact_name = db.Column(db.String(100), nullable=False)
    title = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def display_name(self) -> str:
        return self.contact_name or "未命名聯絡人"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "investor_id": self.investor_id,
            "contact_name": self.contact_name,
            "title": self.title,
            "phone": self.phone,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **lifecycle_fields(self),
        }


class Partner(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    """Outsourced contractor (construction, structural, electrical…)."""

    __tablename__ = "partners"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    partner_type = db.Column(
        db.String(50), nullable=True,
        comment="construction | structural | electrical | other",
    )
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    contacts = db.relationship(
        "PartnerContact", backref="partner", lazy="dynamic", passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        return self.name or "未命名夥伴"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "partner_type": self.partner_type,
            "phone": self.phone,
            "email": self.email,
            "note": self.note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **lifecycle_fields(self),
        }


class PartnerContact(SoftDeleteMixin, ArchiveMixin, DisableMixin, db.Model):
    __tablename__ = "partner_contacts"

    id = db.Column(db.Integer, primary_key=True)
    partner_id = db.Column(
        db.Integer, db.ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    contact_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def display_name(self) -> str:
        return self.contact_name or "未命名聯絡人"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "partner_id": self.partner_id,
            "contact_name": self.contact_name,
            "role": self.role,
            "phone": self.phone,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **lifecycle_fields(self),
        }
