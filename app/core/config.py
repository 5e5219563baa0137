"""
Application configuration using pydantic-settings.

All settings are loaded from environment variables or .env file.

SNMP 相關設定以 ``SNMP_`` 為前綴，例如：
    SNMP_MOCK=true
    SNMP_CACHE_TTL_SECONDS=30
    SNMP_CONCURRENCY=20
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Database
    db_host: str = Field(default="localhost", description="DB host")
    db_port: int = Field(default=3306, description="DB port")
    db_name: str = Field(default="netpulse", description="DB name")
    db_user: str = Field(default="admin", description="DB user")
    db_password: str = Field(default="admin", description="DB password")
    database_url: str = Field(
        default="",
        description="Full async DB URL; overrides db_* fields when set (tests use sqlite+aiosqlite).",
    )

    # SNMP protocol client
    snmp_mock: bool = Field(
        default=False,
        description="Use the in-memory mock agent instead of real UDP traffic.",
    )
    snmp_max_oids_per_pdu: int = Field(
        default=50,
        description="Maximum OIDs carried in one GET request; larger lists are chunked.",
    )
    snmp_walk_max_iterations: int = Field(
        default=500,
        description="Maximum request/response exchanges a single walk may perform.",
    )
    snmp_walk_timeout: float = Field(
        default=120.0,
        description="Wall-clock bound (seconds) for one complete walk.",
    )
    snmp_default_max_repetitions: int = Field(default=20, description="GETBULK max-repetitions")

    # SNMP response cache
    snmp_cache_max_entries: int = Field(default=5000, description="Response cache size cap")
    snmp_cache_ttl_seconds: float = Field(
        default=30.0,
        description="Default TTL for GET/WALK results.",
    )
    snmp_cache_system_ttl_seconds: float = Field(
        default=300.0,
        description="TTL for system group results (slow-changing).",
    )
    snmp_cache_counter_ttl_seconds: float = Field(
        default=0.0,
        description="TTL for interface counter results; 0 disables caching.",
    )

    # Polling
    snmp_concurrency: int = Field(
        default=20,
        description="Maximum devices polled concurrently.",
    )
    poll_interval_seconds: int = Field(
        default=300,
        description="Default polling interval in seconds (fallback if scheduler.yaml omits interval).",
    )

    # Application
    app_name: str = Field(default="NetPulse", description="Application name")
    app_debug: bool = Field(default=False, description="Debug mode")
    api_prefix: str = Field(default="/api/v1", description="API prefix")

    @property
    def async_database_url(self) -> str:
        """Build async database connection URL."""
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance (Singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
