"""initial schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("uid", sa.String(length=10), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_uid", "users", ["uid"], unique=True)

    op.create_table(
        "call_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("call_id", sa.String(length=36), nullable=True),
        sa.Column("caller_uid", sa.String(length=10), nullable=False),
        sa.Column("callee_uid", sa.String(length=10), nullable=False),
        sa.Column("media", sa.String(length=8), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_call_logs_call_id", "call_logs", ["call_id"], unique=False)
    op.create_index("ix_call_logs_caller_uid", "call_logs", ["caller_uid"], unique=False)
    op.create_index("ix_call_logs_callee_uid", "call_logs", ["callee_uid"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_call_logs_callee_uid", table_name="call_logs")
    op.drop_index("ix_call_logs_caller_uid", table_name="call_logs")
    op.drop_index("ix_call_logs_call_id", table_name="call_logs")
    op.drop_table("call_logs")

    op.drop_index("ix_users_uid", table_name="users")
    op.drop_table("users")
