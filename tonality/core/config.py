"""
Configuration management for the tonality engine.
Loads settings from environment variables.
"""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "tonality"
    app_version: str = "0.1.0"
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Pitch reference
    reference_frequency: float = 440.0  # Hz (A4)
    reference_midi: int = 69

    # Tolerances
    pitch_tolerance_cents: float = 50.0
    spectrum_tolerance_cents: float = 50.0
    unison_tolerance_cents: float = 15.0

    # Matching
    match_threshold: float = 0.5
    pitch_weight: float = 0.6
    phrase_continuity_threshold: float = 0.75

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get settings instance.
    Useful for injecting configuration into matchers and corpora.
    """
    return settings
