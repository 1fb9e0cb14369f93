"""Initial schema: videos with processing state.

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


def upgrade() -> None:
    op.create_table(
        "videos",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="public"),
        sa.Column("processing_status", sa.String(20), nullable=False, server_default="uploading"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_ref", sa.Text(), nullable=True),
        sa.Column("original_path", sa.Text(), nullable=True),
        sa.Column("processed_variants", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("remote_ref", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_videos_processing_status", "videos", ["processing_status"])


def downgrade() -> None:
    op.drop_index("ix_videos_processing_status", table_name="videos")
    op.drop_table("videos")
