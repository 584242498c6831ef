"""Initial schema: users, collaboration requests, messages, reports, XP outbox.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _user_fk(**kwargs) -> sa.ForeignKey:
    return sa.ForeignKey("users.id", **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("photo", sa.Text(), nullable=True),
        sa.Column("skills", sa.JSON(), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("badge", sa.Text(), nullable=False, server_default="Beginner"),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("role", sa.Text(), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("xp >= 0", name="ck_user_xp_non_negative"),
        sa.CheckConstraint("role IN ('user','admin')", name="ck_user_role"),
    )
    op.create_index("idx_users_public_blocked", "users", ["is_public", "is_blocked"])
    op.create_index("idx_users_xp", "users", ["xp"])

    op.create_table(
        "collaboration_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("from_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("to_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("pair_key", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("pair_key", name="uq_request_pair"),
        sa.CheckConstraint(
            "status IN ('pending','accepted','rejected')", name="ck_request_status"
        ),
    )
    op.create_index("idx_requests_to_status", "collaboration_requests", ["to_user_id", "status"])
    op.create_index("idx_requests_from_status", "collaboration_requests", ["from_user_id", "status"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("from_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("to_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("idx_messages_pair_time", "messages", ["from_user_id", "to_user_id", "timestamp"])
    op.create_index("idx_messages_to_read", "messages", ["to_user_id", "read"])
    op.create_index("idx_messages_time", "messages", ["timestamp"])

    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("from_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("to_user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_by", sa.Uuid(), _user_fk(ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.UniqueConstraint("from_user_id", "to_user_id", name="uq_report_pair"),
        sa.CheckConstraint(
            "status IN ('pending','reviewed','resolved')", name="ck_report_status"
        ),
    )
    op.create_index("idx_reports_to_time", "reports", ["to_user_id", "timestamp"])
    op.create_index("idx_reports_status_time", "reports", ["status", "timestamp"])
    op.create_index("idx_reports_reason", "reports", ["reason"])

    op.create_table(
        "xp_awards",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), _user_fk(ondelete="CASCADE"), nullable=False),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("collaboration_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("request_id", "user_id", name="uq_xp_award_request_user"),
        sa.CheckConstraint("status IN ('pending','applied')", name="ck_xp_award_status"),
    )
    op.create_index("idx_xp_awards_status", "xp_awards", ["status", "attempts", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_xp_awards_status", table_name="xp_awards")
    op.drop_table("xp_awards")
    op.drop_index("idx_reports_reason", table_name="reports")
    op.drop_index("idx_reports_status_time", table_name="reports")
    op.drop_index("idx_reports_to_time", table_name="reports")
    op.drop_table("reports")
    op.drop_index("idx_messages_time", table_name="messages")
    op.drop_index("idx_messages_to_read", table_name="messages")
    op.drop_index("idx_messages_pair_time", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_requests_from_status", table_name="collaboration_requests")
    op.drop_index("idx_requests_to_status", table_name="collaboration_requests")
    op.drop_table("collaboration_requests")
    op.drop_index("idx_users_xp", table_name="users")
    op.drop_index("idx_users_public_blocked", table_name="users")
    op.drop_table("users")
