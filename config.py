"""Application configuration using pydantic-settings."""

from datetime import timedelta

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Catalog service configuration from environment variables."""

    # Database
    db_host: str = Field(default="db", alias="DB_HOST")
    db_port: int = Field(default=5432, alias="DB_PORT")
    db_name: str = Field(default="shop", alias="DB_NAME")
    db_user: str = Field(default="postgres", alias="DB_USER")
    db_password: str = Field(default="postgres", alias="DB_PASSWORD")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    db_echo: bool = Field(default=False, alias="DB_ECHO")

    # Product cache (capacity 0 = unbounded)
    cache_capacity: int = Field(default=50, ge=0, alias="CACHE_CAPACITY")
    cache_default_ttl_minutes: int = Field(default=30, gt=0, alias="CACHE_DEFAULT_TTL_MINUTES")
    cache_cleanup_interval_minutes: int = Field(default=5, gt=0, alias="CACHE_CLEANUP_INTERVAL_MINUTES")
    cache_stats_interval_minutes: int = Field(default=30, gt=0, alias="CACHE_STATS_INTERVAL_MINUTES")
    cache_warmup_size: int = Field(default=0, ge=0, alias="CACHE_WARMUP_SIZE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    @property
    def database_url(self) -> str:
        """Build async PostgreSQL connection string."""
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def cache_capacity_or_none(self) -> int | None:
        return self.cache_capacity or None

    @property
    def cache_default_ttl(self) -> timedelta:
        return timedelta(minutes=self.cache_default_ttl_minutes)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Singleton instance
settings = Settings()
