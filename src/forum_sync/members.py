"""
Guild member resolution: user id → display name.

Pages through /guilds/{id}/members with the last user id of each page as
the cursor. Resolution is best-effort: a missing GUILD_MEMBERS intent or a
failed page ends pagination and the partial map is returned. Nothing here
raises to the caller.
"""

import logging

from .discord_client import DiscordClient, MissingAccess

logger = logging.getLogger(__name__)

# Discord's maximum page size for the list-members endpoint
MEMBER_PAGE_SIZE = 1000


def member_display_name(member: dict):
    """Guild nickname if set, otherwise the global username."""
    user = member.get("user") or {}
    return member.get("nick") or user.get("username")


async def fetch_member_map(
    client: DiscordClient,
    guild_id: str,
    page_size: int = MEMBER_PAGE_SIZE,
) -> dict[str, str]:
    """Build a user id → display name map for the whole guild."""
    member_map: dict[str, str] = {}
    after = "0"
    pages = 0

    while True:
        try:
            members = await client.list_guild_members(guild_id, limit=page_size, after=after)
        except MissingAccess as exc:
            logger.warning(
                "Missing GUILD_MEMBERS privileged intent, owner nicknames will be "
                "partial (%d resolved): %s",
                len(member_map), exc,
            )
            break
        except Exception as exc:
            logger.error(
                "Error fetching guild members after %s, keeping %d resolved: %s",
                after, len(member_map), exc,
            )
            break

        if not members:
            break

        pages += 1
        for member in members:
            if not isinstance(member, dict):
                continue
            user = member.get("user") or {}
            user_id = user.get("id")
            if user_id is None:
                continue
            member_map[str(user_id)] = member_display_name(member)

        last = members[-1] if isinstance(members[-1], dict) else {}
        last_user = last.get("user") or {}
        if last_user.get("id") is None:
            logger.warning("Member page ended without a user id, stopping pagination")
            break
        after = str(last_user["id"])

        if len(members) < page_size:
            break

    logger.info("Resolved %d guild members in %d pages", len(member_map), pages)
    return member_map
