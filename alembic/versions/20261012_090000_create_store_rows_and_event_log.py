"""Create store_rows and event_log tables

Revision ID: 7a1c2e9d4b60
Revises:
Create Date: 2026-10-12 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "7a1c2e9d4b60"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "store_rows",
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column(
            "row_json",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "event_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("court", sa.String(length=20), nullable=True),
        sa.Column("game_number", sa.Integer(), nullable=True),
        sa.Column("inning", sa.Integer(), nullable=True),
        sa.Column("half", sa.String(length=10), nullable=True),
        sa.Column("runs", sa.Integer(), nullable=True),
        sa.Column("sender_id", sa.String(length=100), nullable=True),
        sa.Column("event_id", sa.String(length=100), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_event_log_match", "event_log", ["court", "game_number"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_event_log_match", table_name="event_log")
    op.drop_table("event_log")
    op.drop_table("store_rows")
