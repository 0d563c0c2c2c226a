"""
Hub Settings

Loaded from environment variables (prefix FLEETSYNC_HUB_) or a .env file:
- FLEETSYNC_HUB_STORAGE_BACKEND=sqlite | supabase
- FLEETSYNC_HUB_SQLITE_PATH=/var/lib/fleetsync/hub.db
- FLEETSYNC_HUB_SUPABASE_URL=https://xxx.supabase.co
- FLEETSYNC_HUB_SUPABASE_SERVICE_KEY=your-service-role-key
- FLEETSYNC_HUB_SIGNING_SECRET=...
- FLEETSYNC_HUB_REGISTRATION_SECRET=...
- FLEETSYNC_HUB_ADMIN_KEY=...
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class HubSettings(BaseSettings):
    """Hub settings loaded from environment variables."""
    storage_backend: str = "sqlite"
    sqlite_path: str = "/var/lib/fleetsync/hub.db"

    supabase_url: str = ""
    supabase_service_key: str = ""

    # HMAC key for relay identity tokens
    signing_secret: str = ""
    # Shared secret the registration bearer token is derived from
    registration_secret: str = ""
    # Static bearer key for /config/admin and /agent/admin
    admin_key: str = ""

    cache_ttl_seconds: float = 300.0

    # Comma-separated list
    allowed_origins: str = ""

    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]

    model_config = SettingsConfigDict(
        env_prefix="FLEETSYNC_HUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> HubSettings:
    """Get cached settings."""
    return HubSettings()
