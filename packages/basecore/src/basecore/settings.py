"""
Application settings.

All values come from environment variables (or a local .env file) so the
same code runs against the stub backend during development and against
Supabase in production.
"""

import functools
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when a required setting is missing or invalid."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Backend selection
    RESIDENCY_BACKEND: Literal["stub", "supabase"] = "stub"
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # HTTP client
    API_TIMEOUT_MS: int = 10_000
    API_RETRY: int = 1
    API_RETRY_DELAY_MS: int = 500

    # Local persistence
    REDIS_URL: str = "redis://localhost:6379/0"
    SSW_ENCRYPTION_KEY: str | None = None

    # Session timers
    SESSION_REFRESH_MARGIN_SECONDS: int = 60
    STUB_SESSION_TTL_SECONDS: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool | None = None

    def require_supabase(self) -> tuple[str, str]:
        """Return (url, anon_key) or raise if either is missing."""
        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY:
            raise ConfigurationError(
                "Supabase の環境変数が設定されていません。"
                "SUPABASE_URL と SUPABASE_ANON_KEY を .env などに定義してください。"
            )
        return self.SUPABASE_URL, self.SUPABASE_ANON_KEY


@functools.lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)."""
    return Settings()
