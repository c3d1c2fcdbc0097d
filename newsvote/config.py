"""
Configuration settings for the News Vote moderation service.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    app_name: str = "News Vote API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./newsvote.db"

    # Status resolution thresholds
    min_votes: int = 5               # Minimum valid votes before a verdict
    fake_threshold: float = 0.6      # Fake ratio at or above this = Fake
    not_fake_threshold: float = 0.4  # Fake ratio at or below this = Not Fake

    # An invalidated vote no longer blocks the same user from voting again
    allow_revote_after_invalidation: bool = True

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    allowed_origins: str = "http://localhost:8000,http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "NV_"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
