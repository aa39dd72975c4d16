"""initial_solarhub_schema

Create the project / document / directory tables, progress catalogue,
deletion policies, dashboard settings and the audit log.

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def _lifecycle_columns():
    """Columns added by SoftDeleteMixin / ArchiveMixin / DisableMixin."""
    return [
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(length=64), nullable=True),
        sa.Column("delete_reason", sa.Text(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", sa.String(length=64), nullable=True),
        sa.Column("archive_reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "investors" not in existing_tables:
        op.create_table(
            "investors",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("investor_code", sa.String(length=20), nullable=False),
            sa.Column("company_name", sa.String(length=200), nullable=False),
            sa.Column("tax_id", sa.String(length=20), nullable=True),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_investors_investor_code", "investors", ["investor_code"])
        op.create_index("ix_investors_is_deleted", "investors", ["is_deleted"])

    if "investor_contacts" not in existing_tables:
        op.create_table(
            "investor_contacts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("investor_id", sa.Integer(), nullable=True),
            sa.Column("contact_name", sa.String(length=100), nullable=False),
            sa.Column("title", sa.String(length=100), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.ForeignKeyConstraint(["investor_id"], ["investors.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_investor_contacts_investor_id", "investor_contacts", ["investor_id"])
        op.create_index("ix_investor_contacts_is_deleted", "investor_contacts", ["is_deleted"])

    if "partners" not in existing_tables:
        op.create_table(
            "partners",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("partner_type", sa.String(length=50), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_partners_is_deleted", "partners", ["is_deleted"])

    if "partner_contacts" not in existing_tables:
        op.create_table(
            "partner_contacts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("partner_id", sa.Integer(), nullable=False),
            sa.Column("contact_name", sa.String(length=100), nullable=False),
            sa.Column("role", sa.String(length=100), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.ForeignKeyConstraint(["partner_id"], ["partners.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_partner_contacts_partner_id", "partner_contacts", ["partner_id"])
        op.create_index("ix_partner_contacts_is_deleted", "partner_contacts", ["is_deleted"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_code", sa.String(length=50), nullable=False),
            sa.Column("project_name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="開發中"),
            sa.Column("investor_id", sa.Integer(), nullable=True),
            sa.Column("capacity_kwp", sa.Float(), nullable=True),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("admin_progress", sa.Float(), nullable=False, server_default="0"),
            sa.Column("engineering_progress", sa.Float(), nullable=False, server_default="0"),
            sa.Column("overall_progress", sa.Float(), nullable=False, server_default="0"),
            sa.Column("admin_stage", sa.String(length=100), nullable=True),
            sa.Column("engineering_stage", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.ForeignKeyConstraint(["investor_id"], ["investors.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_code"),
        )
        op.create_index("ix_projects_investor_id", "projects", ["investor_id"])
        op.create_index("ix_projects_is_deleted", "projects", ["is_deleted"])

    if "documents" not in existing_tables:
        op.create_table(
            "documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("doc_type", sa.String(length=100), nullable=False),
            sa.Column("doc_type_code", sa.String(length=30), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=True),
            sa.Column("submitted_at", sa.Date(), nullable=True),
            sa.Column("issued_at", sa.Date(), nullable=True),
            sa.Column("due_at", sa.Date(), nullable=True),
            sa.Column("drive_file_id", sa.String(length=200), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            *_lifecycle_columns(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_documents_project_id", "documents", ["project_id"])
        op.create_index("ix_documents_doc_type_code", "documents", ["doc_type_code"])
        op.create_index("ix_documents_is_deleted", "documents", ["is_deleted"])

    if "progress_milestones" not in existing_tables:
        op.create_table(
            "progress_milestones",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("milestone_code", sa.String(length=50), nullable=False),
            sa.Column("milestone_type", sa.String(length=20), nullable=False),
            sa.Column("milestone_name", sa.String(length=100), nullable=False),
            sa.Column("weight", sa.Float(), nullable=False, server_default="0"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("stage_label", sa.String(length=50), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("milestone_code"),
        )

    if "project_milestones" not in existing_tables:
        op.create_table(
            "project_milestones",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("milestone_code", sa.String(length=50), nullable=False),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_by", sa.String(length=64), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "milestone_code", name="uq_project_milestone_code"),
        )
        op.create_index("ix_project_milestones_project_id", "project_milestones", ["project_id"])

    if "progress_settings" not in existing_tables:
        op.create_table(
            "progress_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("setting_key", sa.String(length=50), nullable=False),
            sa.Column("setting_value", sa.JSON(), nullable=False),
            sa.Column("description", sa.String(length=200), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("setting_key"),
        )

    if "deletion_policies" not in existing_tables:
        op.create_table(
            "deletion_policies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("table_name", sa.String(length=60), nullable=False),
            sa.Column("deletion_mode", sa.String(length=20), nullable=False, server_default="soft_delete"),
            sa.Column("retention_days", sa.Integer(), nullable=True),
            sa.Column("require_reason", sa.Boolean(), nullable=True),
            sa.Column("require_confirmation", sa.Boolean(), nullable=True),
            sa.Column("allow_auto_purge", sa.Boolean(), nullable=True),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("table_name"),
        )

    if "dashboard_settings" not in existing_tables:
        op.create_table(
            "dashboard_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("sections", sa.JSON(), nullable=False),
            sa.Column("default_filters", sa.JSON(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("table_name", sa.String(length=60), nullable=False),
            sa.Column("record_id", sa.String(length=64), nullable=False),
            sa.Column("action", sa.String(length=20), nullable=False),
            sa.Column("actor_user_id", sa.String(length=64), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("old_data", sa.JSON(), nullable=True),
            sa.Column("new_data", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_record", "audit_logs", ["table_name", "record_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
        op.create_index("idx_audit_created", "audit_logs", ["created_at"])


def downgrade():
    for table in (
        "audit_logs",
        "dashboard_settings",
        "deletion_policies",
        "progress_settings",
        "project_milestones",
        "progress_milestones",
        "documents",
        "projects",
        "partner_contacts",
        "partners",
        "investor_contacts",
        "investors",
    ):
        op.drop_table(table)
