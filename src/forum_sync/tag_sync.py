"""
Forum tag taxonomy sync.

For every parent channel touched by the current thread batch, fetch the
channel and upsert its available_tags into discord_channel_tags, keyed by
(parent_id, tag_id). Channels without tags, and channels that cannot be
fetched, are skipped; one bad channel never stops the others.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from .discord_client import DiscordClient

logger = logging.getLogger(__name__)


@dataclass
class ChannelTag:
    """One discord_channel_tags row."""
    parent_id: str
    tag_id: str
    tag_name: Optional[str]
    tag_emoji: Optional[str] = None


@dataclass
class TagSyncStats:
    channels: int = 0
    tags_written: int = 0
    channels_without_tags: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)


def tag_emoji(tag: dict) -> Optional[str]:
    """Unicode emoji or custom emoji name for a forum tag, if any."""
    if tag.get("emoji_name"):
        return tag["emoji_name"]
    emoji = tag.get("emoji")
    if isinstance(emoji, dict):
        return emoji.get("name") or None
    return None


def tags_from_channel(channel_id: str, channel: Optional[dict]) -> list[ChannelTag]:
    """ChannelTag rows for a channel's available_tags (empty if it has none)."""
    tags = (channel or {}).get("available_tags") or []
    return [
        ChannelTag(
            parent_id=str(channel_id),
            tag_id=str(tag["id"]),
            tag_name=tag.get("name"),
            tag_emoji=tag_emoji(tag),
        )
        for tag in tags
        if isinstance(tag, dict) and tag.get("id") is not None
    ]


async def sync_channel_tags(
    client: DiscordClient,
    writer,
    parent_ids: Iterable[str],
) -> TagSyncStats:
    """Fetch and upsert the tag taxonomy of each parent channel."""
    stats = TagSyncStats()

    for channel_id in parent_ids:
        stats.channels += 1
        try:
            channel = await client.get_channel(channel_id)
            tags = tags_from_channel(channel_id, channel)

            if not tags:
                stats.channels_without_tags += 1
                logger.info("No tags found for channel %s", channel_id)
                continue

            for tag in tags:
                await writer.upsert_tag(tag)
            stats.tags_written += len(tags)
            logger.info("Stored %d tags for channel %s", len(tags), channel_id)
        except Exception as exc:
            logger.error("Error fetching or storing tags for channel %s: %s", channel_id, exc)
            stats.failed.append((str(channel_id), str(exc)))

    logger.info(
        "Tag sync: %d channels, %d tags written, %d without tags, %d failed",
        stats.channels, stats.tags_written, stats.channels_without_tags, len(stats.failed),
    )
    return stats
