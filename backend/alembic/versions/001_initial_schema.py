"""Initial schema: users, accounts, change logs, comments, notifications.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    existing = insp.get_table_names()

    if "users" in existing:
        return  # Already applied (e.g. from create_all)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=True, server_default="Viewer"),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("client", sa.String(512), nullable=False),
        sa.Column("manager", sa.String(255), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False, server_default="USD"),
        sa.Column("status", sa.String(20), nullable=True, server_default="Active"),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_accounts_manager", "accounts", ["manager"], unique=False)
    op.create_index("ix_accounts_status", "accounts", ["status"], unique=False)

    op.create_table(
        "change_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("date_of_change", sa.Date(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("campaign_name", sa.String(512), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("expected_impact", sa.String(20), nullable=False),
        sa.Column("pre_change_ctr", sa.Float(), nullable=True),
        sa.Column("pre_change_cpc", sa.Float(), nullable=True),
        sa.Column("pre_change_conv_rate", sa.Float(), nullable=True),
        sa.Column("pre_change_cpa", sa.Float(), nullable=True),
        sa.Column("post_change_ctr", sa.Float(), nullable=True),
        sa.Column("post_change_cpc", sa.Float(), nullable=True),
        sa.Column("post_change_conv_rate", sa.Float(), nullable=True),
        sa.Column("post_change_cpa", sa.Float(), nullable=True),
        sa.Column("next_review_date", sa.Date(), nullable=True),
        sa.Column("logged_by_id", sa.Uuid(), nullable=False),
        sa.Column("created_by_name", sa.String(255), nullable=True),
        sa.Column("last_edited_by_id", sa.Uuid(), nullable=True),
        sa.Column("last_edited_by_name", sa.String(255), nullable=True),
        sa.Column("last_edited_at", sa.DateTime(), nullable=True),
        sa.Column("result", sa.String(20), nullable=True, server_default="Pending"),
        sa.Column("result_summary", sa.Text(), nullable=True, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_logs_account_id", "change_logs", ["account_id"], unique=False)
    op.create_index("ix_change_logs_logged_by_id", "change_logs", ["logged_by_id"], unique=False)
    op.create_index("ix_change_logs_date_of_change", "change_logs", ["date_of_change"], unique=False)
    op.create_index("ix_change_logs_result", "change_logs", ["result"], unique=False)

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("log_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("text", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["log_id"], ["change_logs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comments_log_id", "comments", ["log_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)
    op.create_index("ix_notifications_target", "notifications", ["target_type", "target_id"], unique=False)


def downgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    if "users" not in insp.get_table_names():
        return

    op.drop_index("ix_notifications_target", table_name="notifications")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_comments_log_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_change_logs_result", table_name="change_logs")
    op.drop_index("ix_change_logs_date_of_change", table_name="change_logs")
    op.drop_index("ix_change_logs_logged_by_id", table_name="change_logs")
    op.drop_index("ix_change_logs_account_id", table_name="change_logs")
    op.drop_table("change_logs")
    op.drop_index("ix_accounts_status", table_name="accounts")
    op.drop_index("ix_accounts_manager", table_name="accounts")
    op.drop_table("accounts")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
