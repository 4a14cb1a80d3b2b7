"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Anything larger than this is not a single-card DRF export
MAX_FILE_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Parser and scoring settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FURLONG_",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"

    # Parser
    schema_revision: str = "bris-12pp"
    strict_schema: bool = False  # drop lines whose anchor fields disagree
    max_file_bytes: int = Field(default=MAX_FILE_BYTES, gt=0)
    min_expected_fields: int = Field(default=100, ge=0)
    binary_ratio_threshold: float = Field(default=0.05, ge=0, le=1)
    mojibake_threshold: int = Field(default=5, ge=1)

    # Pattern analyzer
    pattern_cache_ttl_seconds: int = Field(default=24 * 60 * 60, ge=0)

    def model_post_init(self, __context) -> None:
        """Normalise the schema revision so env values match registry keys."""
        object.__setattr__(self, "schema_revision", self.schema_revision.strip().lower())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
