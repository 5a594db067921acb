"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scraper settings loaded from environment variables.

    Every field can be set as ``SCRAPBTC_<NAME>`` or in a ``.env`` file.
    CLI flags take precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCRAPBTC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (postgresql:// or sqlite+aiosqlite://)
    database_url: str = "postgresql://localhost/bitcoin_data"

    # Bitcoin Core RPC
    rpc_host: str = "localhost:8332"
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: float = 60.0

    # Processing
    workers: int = 10
    refresh_interval: float = 0.1  # Progress redraw tick in seconds

    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
