"""
Centralized configuration management for the flashdeck application.
"""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .scheduler import LapsePolicy


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".flashdeck" / "flashdeck.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from FLASHDECK_* environment
    variables or a .env file.
    """
    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    # Overridden by FLASHDECK_DB_PATH (the CLI also honours FLASHDECK_DB).
    db_path: Path = Field(default_factory=get_default_db_path)

    # --- Scheduling ---
    # Chosen once per installation; the two policies must not be mixed.
    lapse_policy: LapsePolicy = LapsePolicy.RESET

    # Maximum number of due cards pulled into one review session.
    session_limit: int = Field(default=20, ge=1)

    # --- Logging ---
    log_level: str = "WARNING"

    # --- Testing Configuration ---
    # When True, disables safety checks that prevent data loss during tests.
    # Should NEVER be enabled in production.
    testing_mode: bool = False


# Create a singleton instance of the settings
settings = Settings()
