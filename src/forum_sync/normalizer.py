"""Map raw Discord thread objects onto discord_threads rows."""

import json
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

# First second of 2015, the epoch of Discord snowflake ids (ms)
DISCORD_EPOCH_MS = 1420070400000


@dataclass
class ThreadRecord:
    """One discord_threads row."""
    thread_id: Optional[str]
    thread_name: Optional[str]
    topic: Optional[str] = None
    owner_id: Optional[str] = None
    owner_nickname: Optional[str] = None
    parent_id: Optional[str] = None
    member_count: Optional[int] = None
    message_count: Optional[int] = None
    available_tags: Optional[str] = None
    applied_tags: Optional[str] = None
    thread_metadata: Optional[str] = None
    created_timestamp: Optional[int] = None
    last_updated: int = 0

    def as_row(self) -> tuple:
        """Column values in discord_threads column order."""
        return tuple(asdict(self).values())


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def snowflake_timestamp(snowflake: Any) -> Optional[int]:
    """Creation time (epoch ms) encoded in a Discord snowflake id."""
    try:
        return (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    except (TypeError, ValueError, OverflowError):
        return None


def created_timestamp(raw: Mapping) -> Optional[int]:
    """
    Thread creation time in epoch ms.

    Discord sets thread_metadata.create_timestamp only on threads created
    after 2022-01-09; older threads fall back to the id's snowflake time.
    """
    metadata = raw.get("thread_metadata")
    if isinstance(metadata, Mapping) and metadata.get("create_timestamp"):
        try:
            created = datetime.fromisoformat(str(metadata["create_timestamp"]).replace("Z", "+00:00"))
            return int(created.timestamp() * 1000)
        except (ValueError, OverflowError, OSError):
            pass
    return snowflake_timestamp(raw.get("id"))


def _lookup_owner(owner_id: Any, member_map: Mapping) -> Optional[str]:
    if owner_id is None or not member_map:
        return None
    return member_map.get(str(owner_id))


def normalize_thread(
    raw: Mapping,
    member_map: Optional[Mapping[str, str]] = None,
    now_ms: Optional[int] = None,
) -> ThreadRecord:
    """
    Build a ThreadRecord from a raw thread object.

    Pure and total: absent fields become None, counters pass through as
    Discord sent them, and structured fields are JSON-encoded only when
    present. owner_nickname comes from member_map and is None when the
    owner is unknown.
    """
    if not isinstance(raw, Mapping):
        raw = {}
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    owner_id = raw.get("owner_id")
    return ThreadRecord(
        thread_id=raw.get("id"),
        thread_name=raw.get("name"),
        topic=raw.get("topic") or None,
        owner_id=owner_id,
        owner_nickname=_lookup_owner(owner_id, member_map or {}),
        parent_id=raw.get("parent_id") or None,
        member_count=raw.get("member_count"),
        message_count=raw.get("message_count"),
        available_tags=_to_json(raw.get("available_tags")),
        applied_tags=_to_json(raw.get("applied_tags")),
        thread_metadata=_to_json(raw.get("thread_metadata")),
        created_timestamp=created_timestamp(raw),
        last_updated=now_ms,
    )
