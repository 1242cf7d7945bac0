"""
Application Settings.

Centralized configuration using Pydantic Settings with environment variable loading.
Credentials are optional at load time: a missing Apify token or Anthropic key only
fails the pipeline step that needs it, with a ConfigurationError.

Production Mode:
    When app_env="production", additional validations apply:
    - debug must be False
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Apify (Listing search + review scraping jobs)
    # -------------------------------------------------------------------------
    apify_api_token: SecretStr | None = Field(
        default=None, description="Apify API token used to start and poll actor runs"
    )
    discovery_actor_id: str = Field(
        default="compass/crawler-google-places",
        description="Actor that discovers Google Maps listings for a query",
    )
    reviews_actor_id: str = Field(
        default="compass/Google-Maps-Reviews-Scraper",
        description="Actor that scrapes reviews for a list of place URLs",
    )
    scrape_language: str = Field(
        default="it",
        description="Language code passed to both actors",
    )

    # -------------------------------------------------------------------------
    # Anthropic (Claude review analysis)
    # -------------------------------------------------------------------------
    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key for Claude"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for place and brand analysis",
    )
    analysis_max_tokens: int = Field(
        default=2000,
        description="Max tokens for a single analysis response",
    )

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    discovery_poll_interval: float = Field(
        default=2.0, gt=0, description="Seconds between discovery status checks"
    )
    discovery_max_attempts: int = Field(
        default=150, ge=1, description="Status checks before a discovery poll times out (~5 min)"
    )
    scrape_poll_interval: float = Field(
        default=3.0, gt=0, description="Seconds between scrape status checks"
    )
    scrape_max_attempts: int = Field(
        default=200, ge=1, description="Status checks before a scrape poll times out (~10 min)"
    )

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------
    enrichment_batch_size: int = Field(
        default=3, ge=1, description="Concurrent place analyses per batch"
    )
    default_max_reviews: int = Field(
        default=100, ge=1, description="Default reviews scraped per place"
    )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------
    history_path: Path = Field(
        default=Path("data/history.json"),
        description="JSON file holding past run artifacts",
    )
    history_max_entries: int = Field(default=20, ge=1)
    history_dedupe_seconds: float = Field(default=60.0, ge=0)

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON lines (console renderer otherwise)",
    )
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_max_runs: int = Field(
        default=50,
        ge=1,
        description="Runs kept in memory by the API; older idle runs are evicted",
    )
    cors_allowed_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed to call the API from a browser",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production settings are safe."""
        if self.app_env == "production" and self.debug:
            raise ValueError("Production configuration errors: debug must be False in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings if needed.
    """
    return Settings()
