"""thread snapshot tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import TIMESTAMP

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "discord_threads",
        sa.Column("thread_id", sa.Text(), primary_key=True),
        sa.Column("thread_name", sa.Text(), nullable=False),
        sa.Column("topic", sa.Text()),
        sa.Column("owner_id", sa.Text()),
        sa.Column("owner_nickname", sa.Text()),
        sa.Column("parent_id", sa.Text()),
        sa.Column("member_count", sa.Integer()),
        sa.Column("message_count", sa.Integer()),
        sa.Column("available_tags", sa.Text()),
        sa.Column("applied_tags", sa.Text()),
        sa.Column("thread_metadata", sa.Text()),
        sa.Column("created_timestamp", sa.BigInteger()),
        sa.Column("last_updated", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_discord_threads_parent_id", "discord_threads", ["parent_id"])

    op.create_table(
        "discord_channel_tags",
        sa.Column("parent_id", sa.Text(), primary_key=True),
        sa.Column("tag_id", sa.Text(), primary_key=True),
        sa.Column("tag_name", sa.Text()),
        sa.Column("tag_emoji", sa.Text()),
    )

    op.create_table(
        "discord_sync_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trigger", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("threads_processed", sa.Integer()),
        sa.Column("error_count", sa.Integer()),
        sa.Column("error_message", sa.Text()),
        sa.Column("duration_seconds", sa.Float()),
        sa.Column("started_at", TIMESTAMP(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", TIMESTAMP(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("discord_sync_runs")
    op.drop_table("discord_channel_tags")
    op.drop_index("ix_discord_threads_parent_id", table_name="discord_threads")
    op.drop_table("discord_threads")
