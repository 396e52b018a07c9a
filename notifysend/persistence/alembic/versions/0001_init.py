"""create notifications lookup and sent notification status tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("status", sa.String(), nullable=False, server_default="Sending"),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("image_link", sa.Text(), nullable=True),
        sa.Column("button_title", sa.String(), nullable=True),
        sa.Column("button_link", sa.Text(), nullable=True),
        sa.Column("author", sa.String(), nullable=True),
        sa.Column("notify_user", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("full_width", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_type", sa.String(), nullable=True),
        sa.Column("custom_card_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # Composite key keeps one status row per (notification, recipient) for atomic upserts.
    op.create_table(
        "sent_notifications",
        sa.Column("notification_id", sa.String(), primary_key=True),
        sa.Column("recipient_id", sa.String(), primary_key=True),
        sa.Column("activity_id", sa.String(), nullable=False, server_default=""),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivery_status", sa.String(), nullable=True),
        sa.Column("all_send_status_codes", sa.Text(), nullable=False, server_default=""),
        sa.Column("total_number_of_send_throttles", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("exception", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sent_notifications_status_code", "sent_notifications", ["notification_id", "status_code"])


def downgrade() -> None:
    op.drop_index("ix_sent_notifications_status_code", table_name="sent_notifications")
    op.drop_table("sent_notifications")
    op.drop_table("notifications")
