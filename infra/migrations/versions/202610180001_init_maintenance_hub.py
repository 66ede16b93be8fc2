"""init maintenance hub tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("phone", sa.String(length=15), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_ip", sa.String(length=45), nullable=True),
        sa.Column("avatar", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "machines",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("reference", sa.String(length=50), nullable=False),
        sa.Column("brand", sa.String(length=50), nullable=True),
        sa.Column("model", sa.String(length=50), nullable=True),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("department", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("installation_date", sa.Date(), nullable=True),
        sa.Column("warranty_end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("last_maintenance_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_maintenance_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("serial_number"),
    )
    op.create_index("ix_machines_name", "machines", ["name"])
    op.create_index("ix_machines_reference", "machines", ["reference"], unique=True)
    op.create_index("ix_machines_department", "machines", ["department"])
    op.create_index("ix_machines_status", "machines", ["status"])
    op.create_index("ix_machines_created_at", "machines", ["created_at"])

    op.create_table(
        "maintenance_schedules",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("machine_id", sa.String(), nullable=False),
        sa.Column("technician_id", sa.String(), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=False),
        sa.Column("maintenance_type", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("frequency", sa.String(length=20), nullable=False),
        sa.Column("recurrence_pattern", sa.JSON(), nullable=True),
        sa.Column("checklist", sa.JSON(), nullable=True),
        sa.Column("required_parts", sa.JSON(), nullable=True),
        sa.Column("estimated_cost", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("actual_cost", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(), nullable=True),
        sa.Column("completion_notes", sa.String(), nullable=True),
        sa.Column("next_scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["machine_id"], ["machines.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_maintenance_schedules_machine_id", "maintenance_schedules", ["machine_id"])
    op.create_index("ix_maintenance_schedules_technician_id", "maintenance_schedules", ["technician_id"])
    op.create_index("ix_maintenance_schedules_scheduled_date", "maintenance_schedules", ["scheduled_date"])
    op.create_index("ix_maintenance_schedules_maintenance_type", "maintenance_schedules", ["maintenance_type"])
    op.create_index("ix_maintenance_schedules_status", "maintenance_schedules", ["status"])
    op.create_index("ix_maintenance_schedules_completed_by", "maintenance_schedules", ["completed_by"])

    op.create_table(
        "reports",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("machine_id", sa.String(), nullable=False),
        sa.Column("technician_id", sa.String(), nullable=False),
        sa.Column("work_type", sa.String(length=20), nullable=False),
        sa.Column("problem_description", sa.String(), nullable=False),
        sa.Column("actions_taken", sa.String(), nullable=False),
        sa.Column("parts_used", sa.JSON(), nullable=True),
        sa.Column("tools_used", sa.JSON(), nullable=True),
        sa.Column("observations", sa.String(), nullable=True),
        sa.Column("recommendations", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["machine_id"], ["machines.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reports_work_date", "reports", ["work_date"])
    op.create_index("ix_reports_machine_id", "reports", ["machine_id"])
    op.create_index("ix_reports_technician_id", "reports", ["technician_id"])
    op.create_index("ix_reports_status", "reports", ["status"])
    op.create_index("ix_reports_created_at", "reports", ["created_at"])

    op.create_table(
        "file_attachments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=512), nullable=False),
        sa.Column("mimetype", sa.String(length=100), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("file_type", sa.String(length=20), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("machine_id", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("report_id", sa.String(), nullable=True),
        sa.Column("maintenance_schedule_id", sa.String(), nullable=True),
        sa.Column("uploaded_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["machine_id"], ["machines.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"]),
        sa.ForeignKeyConstraint(["maintenance_schedule_id"], ["maintenance_schedules.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_file_attachments_machine_id", "file_attachments", ["machine_id"])
    op.create_index("ix_file_attachments_user_id", "file_attachments", ["user_id"])
    op.create_index("ix_file_attachments_report_id", "file_attachments", ["report_id"])
    op.create_index(
        "ix_file_attachments_maintenance_schedule_id",
        "file_attachments",
        ["maintenance_schedule_id"],
    )
    op.create_index("ix_file_attachments_uploaded_by", "file_attachments", ["uploaded_by"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("entity", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("details", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_entity_entity_id", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity_entity_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_user_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_file_attachments_uploaded_by", table_name="file_attachments")
    op.drop_index("ix_file_attachments_maintenance_schedule_id", table_name="file_attachments")
    op.drop_index("ix_file_attachments_report_id", table_name="file_attachments")
    op.drop_index("ix_file_attachments_user_id", table_name="file_attachments")
    op.drop_index("ix_file_attachments_machine_id", table_name="file_attachments")
    op.drop_table("file_attachments")

    op.drop_index("ix_reports_created_at", table_name="reports")
    op.drop_index("ix_reports_status", table_name="reports")
    op.drop_index("ix_reports_technician_id", table_name="reports")
    op.drop_index("ix_reports_machine_id", table_name="reports")
    op.drop_index("ix_reports_work_date", table_name="reports")
    op.drop_table("reports")

    op.drop_index("ix_maintenance_schedules_completed_by", table_name="maintenance_schedules")
    op.drop_index("ix_maintenance_schedules_status", table_name="maintenance_schedules")
    op.drop_index("ix_maintenance_schedules_maintenance_type", table_name="maintenance_schedules")
    op.drop_index("ix_maintenance_schedules_scheduled_date", table_name="maintenance_schedules")
    op.drop_index("ix_maintenance_schedules_technician_id", table_name="maintenance_schedules")
    op.drop_index("ix_maintenance_schedules_machine_id", table_name="maintenance_schedules")
    op.drop_table("maintenance_schedules")

    op.drop_index("ix_machines_created_at", table_name="machines")
    op.drop_index("ix_machines_status", table_name="machines")
    op.drop_index("ix_machines_department", table_name="machines")
    op.drop_index("ix_machines_reference", table_name="machines")
    op.drop_index("ix_machines_name", table_name="machines")
    op.drop_table("machines")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
