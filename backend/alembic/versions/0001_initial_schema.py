"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the read-only collaborator tables (actors, addon_services,
subscriptions, subscription_addons) and the lifecycle tables
(schedules, schedule_notes, notification_deliveries).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- actors ---
    op.create_table(
        "actors",
        sa.Column("actor_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="vendor"),
        sa.Column("permissions", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- addon_services ---
    op.create_table(
        "addon_services",
        sa.Column("addon_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("billing_type", sa.String(20), nullable=False, server_default="one_time"),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- subscriptions ---
    op.create_table(
        "subscriptions",
        sa.Column("subscription_id", sa.String(36), primary_key=True),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("actors.actor_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- subscription_addons ---
    op.create_table(
        "subscription_addons",
        sa.Column("subscription_id", sa.String(36), sa.ForeignKey("subscriptions.subscription_id"), primary_key=True),
        sa.Column("addon_id", sa.String(36), sa.ForeignKey("addon_services.addon_id"), primary_key=True),
    )

    # --- schedules ---
    op.create_table(
        "schedules",
        sa.Column("schedule_id", sa.String(36), primary_key=True),
        sa.Column("addon_id", sa.String(36), sa.ForeignKey("addon_services.addon_id"), nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("actors.actor_id"), nullable=False),
        sa.Column("subscription_id", sa.String(36), sa.ForeignKey("subscriptions.subscription_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("email_subject", sa.String(255), nullable=False),
        sa.Column("email_message", sa.Text, nullable=False),
        sa.Column("vendor_response", sa.Text, nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("in_progress_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_by", sa.String(36), sa.ForeignKey("actors.actor_id"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_schedules_vendor_addon_status", "schedules", ["vendor_id", "addon_id", "status"])
    active_only = sa.text("status IN ('scheduled', 'in_progress')")
    op.create_index(
        "uq_schedules_active_vendor_addon",
        "schedules",
        ["vendor_id", "addon_id"],
        unique=True,
        sqlite_where=active_only,
        postgresql_where=active_only,
    )

    # --- schedule_notes ---
    op.create_table(
        "schedule_notes",
        sa.Column("note_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.String(36), sa.ForeignKey("schedules.schedule_id"), nullable=False),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("actors.actor_id"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_schedule_notes_schedule_id", "schedule_notes", ["schedule_id"])

    # --- notification_deliveries ---
    op.create_table(
        "notification_deliveries",
        sa.Column("delivery_id", sa.String(36), primary_key=True),
        sa.Column("schedule_id", sa.String(36), sa.ForeignKey("schedules.schedule_id"), nullable=False),
        sa.Column("event_kind", sa.String(20), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notification_deliveries_schedule_id", "notification_deliveries", ["schedule_id"])
    op.create_index("ix_notification_deliveries_status_next", "notification_deliveries", ["status", "next_attempt_at"])


def downgrade() -> None:
    op.drop_table("notification_deliveries")
    op.drop_table("schedule_notes")
    op.drop_index("uq_schedules_active_vendor_addon", table_name="schedules")
    op.drop_index("ix_schedules_vendor_addon_status", table_name="schedules")
    op.drop_table("schedules")
    op.drop_table("subscription_addons")
    op.drop_table("subscriptions")
    op.drop_table("addon_services")
    op.drop_table("actors")
