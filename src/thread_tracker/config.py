"""Application settings loaded from environment variables / .env file."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION = "0.1.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str
    discord_bot_token: str = ""
    discord_guild_id: str = ""
    # Comma-separated; when set, only these channels' threads are synced
    discord_channel_ids: str = ""
    sync_strategy: Literal["replace", "upsert"] = "replace"
    sync_cron: str = "*/15 * * * *"
    sync_timeout_seconds: float = 300.0
    sync_resolve_owners: bool = True
    sync_max_errors: int = 200
    sync_api_key: str = ""
    app_env: str = "development"
    app_port: int = 8100
    app_host: str = "0.0.0.0"

    @property
    def channel_id_list(self) -> list[str]:
        return [c.strip() for c in self.discord_channel_ids.split(",") if c.strip()]

    @property
    def sync_configured(self) -> bool:
        return bool(self.discord_bot_token and (self.discord_guild_id or self.channel_id_list))


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
