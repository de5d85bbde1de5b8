"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the tables for the work hours tracker:
users, work_entries, day_adjustments.
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
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    # --- work_entries ---
    op.create_table(
        "work_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_at", sa.DateTime, nullable=False),
        sa.Column("end_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("idx_work_entries_user_start", "work_entries", ["user_id", "start_at"])
    op.create_index("idx_work_entries_user_end", "work_entries", ["user_id", "end_at"])
    op.create_index(
        "uq_work_entries_user_active",
        "work_entries",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("end_at IS NULL"),
        postgresql_where=sa.text("end_at IS NULL"),
    )

    # --- day_adjustments ---
    op.create_table(
        "day_adjustments",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("day_date", sa.String(10), primary_key=True),
        sa.Column("day_type", sa.String(10), nullable=False, server_default="none"),
        sa.Column("permission_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("idx_day_adjustments_user_day", "day_adjustments", ["user_id", "day_date"])


def downgrade() -> None:
    op.drop_index("idx_day_adjustments_user_day", table_name="day_adjustments")
    op.drop_table("day_adjustments")
    op.drop_index("uq_work_entries_user_active", table_name="work_entries")
    op.drop_index("idx_work_entries_user_end", table_name="work_entries")
    op.drop_index("idx_work_entries_user_start", table_name="work_entries")
    op.drop_table("work_entries")
    op.drop_table("users")
