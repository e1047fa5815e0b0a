"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:12:31.204117

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_BRANCHES = [
    {"code": "MAIN", "name": "Main Branch", "prefix": "A", "active": True, "display_order": 1},
    {"code": "NORTH", "name": "North Branch", "prefix": "B", "active": True, "display_order": 2},
    {"code": "SOUTH", "name": "South Branch", "prefix": "C", "active": True, "display_order": 3},
]


def upgrade() -> None:
    # Create branches table
    branches = op.create_table(
        "branches",
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("prefix", sa.String(length=5), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("code"),
    )

    # Create queue_states table (one row per branch and day)
    op.create_table(
        "queue_states",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("branch", sa.String(length=10), nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_serving_queue_no", sa.String(length=9), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("branch", "date_key", name="uq_queue_state_branch_date"),
        sa.CheckConstraint("last_number >= 0", name="ck_queue_state_last_number_non_negative"),
    )

    # Create tickets table (ULID as UUID)
    op.create_table(
        "tickets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("queue_no", sa.String(length=9), nullable=False),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.Column("branch", sa.String(length=10), nullable=False),
        sa.Column("date_key", sa.String(length=10), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("full_name", sa.String(length=100), nullable=False),
        sa.Column("mobile", sa.String(length=20), nullable=False),
        sa.Column("purpose", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("called_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "branch", "date_key", "generation", "queue_no", name="uq_ticket_branch_date_generation_queue_no"
        ),
    )
    op.create_index("ix_tickets_branch_status_created_at", "tickets", ["branch", "status", "created_at"])

    # Seed default branches
    op.bulk_insert(branches, DEFAULT_BRANCHES)


def downgrade() -> None:
    op.drop_index("ix_tickets_branch_status_created_at", table_name="tickets")
    op.drop_table("tickets")
    op.drop_table("queue_states")
    op.drop_table("branches")
