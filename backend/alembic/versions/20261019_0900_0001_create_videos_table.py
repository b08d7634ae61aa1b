"""Create videos table

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "videos",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column(
            "video_url",
            sa.Text().with_variant(mysql.LONGTEXT(), "mysql"),
            nullable=False,
            comment="Storage URL once completed; legacy rows may hold a data: URL",
        ),
        sa.Column("video_id", sa.String(255), nullable=True, comment="Provider job id"),
        sa.Column("model", sa.String(100), nullable=False, server_default="sora-2"),
        sa.Column("status", sa.String(20), nullable=False, server_default="in_progress"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("creation_type", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("created_at", sa.DateTime, nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=True, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_videos_video_id", "videos", ["video_id"], unique=True)
    op.create_index("ix_videos_status", "videos", ["status"])
    op.create_index("ix_videos_created_at", "videos", ["created_at"])
    op.create_index("ix_videos_status_created_at", "videos", ["status", "created_at"])
    op.create_index("ix_videos_creation_type", "videos", ["creation_type"])


def downgrade() -> None:
    op.drop_index("ix_videos_creation_type", table_name="videos")
    op.drop_index("ix_videos_status_created_at", table_name="videos")
    op.drop_index("ix_videos_created_at", table_name="videos")
    op.drop_index("ix_videos_status", table_name="videos")
    op.drop_index("ix_videos_video_id", table_name="videos")
    op.drop_table("videos")
