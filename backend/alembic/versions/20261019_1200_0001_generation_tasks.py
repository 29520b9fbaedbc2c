"""Generation tasks, notifications and credit ledger tables

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 12:00:00
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
    # --- ai_tasks ---
    op.create_table(
        "ai_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("media_kind", sa.String(20), nullable=False, comment="image | video | music"),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("scene", sa.String(50), nullable=True),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("options", sa.JSON, nullable=True),
        sa.Column("external_job_id", sa.String(128), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("task_info", sa.JSON, nullable=True),
        sa.Column("task_result", sa.JSON, nullable=True),
        sa.Column("result_version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cost_credits", sa.Integer, nullable=False, server_default="0"),
        sa.Column("credit_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_ai_tasks_user_id", "ai_tasks", ["user_id"])
    op.create_index("ix_ai_tasks_media_kind", "ai_tasks", ["media_kind"])
    op.create_index("ix_ai_tasks_status", "ai_tasks", ["status"])
    op.create_index("ix_ai_tasks_external_job_id", "ai_tasks", ["external_job_id"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("link", sa.String(1024), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("read_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # --- credit_transactions ---
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False, comment="grant | consume | refund"),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("task_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index("ix_credit_transactions_task_id", "credit_transactions", ["task_id"])


def downgrade() -> None:
    op.drop_table("credit_transactions")
    op.drop_table("notifications")
    op.drop_table("ai_tasks")
