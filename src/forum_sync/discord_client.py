"""
Discord REST API client for forum thread data.

Handles:
- Bot token authentication
- Active thread listing (guild-wide or per forum channel)
- Channel metadata (forum tag taxonomy)
- Paginated guild member listing

Every call is a single attempt; callers decide whether a failure is fatal
or should be skipped.

Usage:
    client = DiscordClient(token)
    await client.initialize()
    threads = await client.list_active_threads(guild_id)
    channel = await client.get_channel(threads[0]["parent_id"])
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

API_BASE_URL = "https://discord.com/api/v10"

# Discord JSON error codes that mean "the bot may not see this"
MISSING_ACCESS_CODES = {50001, 50013}


class DiscordAPIError(Exception):
    """Non-2xx response from the Discord API."""

    def __init__(self, status: int, message: str, code: Optional[int] = None, path: str = ""):
        self.status = status
        self.code = code
        self.path = path
        super().__init__(f"Discord API {status} on {path}: {message}")


class MissingAccess(DiscordAPIError):
    """The bot lacks the permission or privileged intent for this call."""


class DiscordClient:
    """Async client for the Discord v10 REST API."""

    def __init__(self, token: str, timeout: float = 30.0):
        self.token = token
        self.timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Create the HTTP client."""
        self._http_client = httpx.AsyncClient(
            base_url=API_BASE_URL,
            timeout=self.timeout,
            headers={"Authorization": f"Bot {self.token}"},
        )

    async def close(self):
        """Clean up HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _api_get(self, path: str, params: dict = None):
        """Make an authenticated GET request and return the decoded JSON body."""
        if self._http_client is None:
            raise RuntimeError("DiscordClient.initialize() has not been called")

        response = await self._http_client.get(path, params=params)

        if response.status_code >= 400:
            raise _error_from_response(response, path)

        return response.json()

    async def list_active_threads(self, guild_id: str) -> list[dict]:
        """
        All active threads in a guild.

        Endpoint: /guilds/{guild.id}/threads/active
        """
        data = await self._api_get(f"/guilds/{guild_id}/threads/active")
        threads = (data or {}).get("threads") or []
        logger.info("Found %d active threads in guild %s", len(threads), guild_id)
        return threads

    async def list_channel_threads(self, channel_id: str) -> list[dict]:
        """
        Active threads whose parent is the given forum/text channel.

        Discord only lists active threads per guild, so the channel is
        resolved to its guild first and the guild listing is filtered.
        """
        channel = await self.get_channel(channel_id)
        guild_id = (channel or {}).get("guild_id")
        if not guild_id:
            raise DiscordAPIError(404, "channel has no guild", path=f"/channels/{channel_id}")

        threads = await self.list_active_threads(guild_id)
        return [t for t in threads if str(t.get("parent_id")) == str(channel_id)]

    async def get_channel(self, channel_id: str) -> dict:
        """
        Channel metadata, including `available_tags` for forum channels.

        Endpoint: /channels/{channel.id}
        """
        return await self._api_get(f"/channels/{channel_id}")

    async def list_guild_members(
        self, guild_id: str, limit: int = 1000, after: str = "0"
    ) -> list[dict]:
        """
        One page of guild members, ordered by user id.

        Endpoint: /guilds/{guild.id}/members
        Requires the GUILD_MEMBERS privileged intent, otherwise Discord
        answers 403 Missing Access.
        """
        data = await self._api_get(
            f"/guilds/{guild_id}/members",
            params={"limit": limit, "after": after},
        )
        return data if isinstance(data, list) else []


def _error_from_response(response: httpx.Response, path: str) -> DiscordAPIError:
    """Build the matching DiscordAPIError subclass for a failed response."""
    code = None
    message = response.reason_phrase or "error"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or message

    if response.status_code == 403 or code in MISSING_ACCESS_CODES:
        return MissingAccess(response.status_code, message, code=code, path=path)
    return DiscordAPIError(response.status_code, message, code=code, path=path)
