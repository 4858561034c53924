from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "creator-feed"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "CREATOR_FEED_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/creator_feed",
        validation_alias=AliasChoices("DATABASE_URL", "CREATOR_FEED_DATABASE_URL"),
    )
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "CREATOR_FEED_LOG_LEVEL"))
    dedup_near_duplicates_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("DEDUP_NEAR_DUPLICATES_ENABLED", "CREATOR_FEED_DEDUP_NEAR_DUPLICATES_ENABLED"),
    )
    dedup_simhash_max_distance: int = Field(default=6, validation_alias=AliasChoices("DEDUP_SIMHASH_MAX_DISTANCE", "CREATOR_FEED_DEDUP_SIMHASH_MAX_DISTANCE"))
    dedup_simhash_min_tokens: int = Field(default=8, validation_alias=AliasChoices("DEDUP_SIMHASH_MIN_TOKENS", "CREATOR_FEED_DEDUP_SIMHASH_MIN_TOKENS"))
    dedup_near_window_days: int = Field(default=30, validation_alias=AliasChoices("DEDUP_NEAR_WINDOW_DAYS", "CREATOR_FEED_DEDUP_NEAR_WINDOW_DAYS"))
    dedup_primary_cas_attempts: int = Field(default=5, validation_alias=AliasChoices("DEDUP_PRIMARY_CAS_ATTEMPTS", "CREATOR_FEED_DEDUP_PRIMARY_CAS_ATTEMPTS"))
    batch_max_items: int = Field(default=100, validation_alias=AliasChoices("BATCH_MAX_ITEMS", "CREATOR_FEED_BATCH_MAX_ITEMS"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
