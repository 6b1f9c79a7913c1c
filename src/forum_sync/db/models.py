"""SQLAlchemy ORM models for the thread snapshot tables.

discord_threads:      one row per active thread (rich schema)
discord_channel_tags: forum tag taxonomy, keyed by (parent_id, tag_id)
discord_sync_runs:    one row per sync run
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Float, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import TIMESTAMP


class Base(DeclarativeBase):
    pass


class DiscordThread(Base):
    __tablename__ = "discord_threads"

    thread_id: Mapped[str] = mapped_column(Text, primary_key=True)
    thread_name: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[Optional[str]] = mapped_column(Text)
    owner_id: Mapped[Optional[str]] = mapped_column(Text)
    owner_nickname: Mapped[Optional[str]] = mapped_column(Text)
    parent_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    member_count: Mapped[Optional[int]] = mapped_column(Integer)
    message_count: Mapped[Optional[int]] = mapped_column(Integer)
    available_tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON text
    applied_tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON list of tag ids
    thread_metadata: Mapped[Optional[str]] = mapped_column(Text)  # JSON text
    created_timestamp: Mapped[Optional[int]] = mapped_column(BigInteger)  # epoch ms
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms


class DiscordChannelTag(Base):
    __tablename__ = "discord_channel_tags"

    parent_id: Mapped[str] = mapped_column(Text, primary_key=True)
    tag_id: Mapped[str] = mapped_column(Text, primary_key=True)
    tag_name: Mapped[Optional[str]] = mapped_column(Text)
    tag_emoji: Mapped[Optional[str]] = mapped_column(Text)


class DiscordSyncRun(Base):
    __tablename__ = "discord_sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trigger: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    threads_processed: Mapped[Optional[int]] = mapped_column(Integer)
    error_count: Mapped[Optional[int]] = mapped_column(Integer)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float)
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
