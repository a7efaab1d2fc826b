"""
Configuration Management

Uses pydantic-settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables or .env file.
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # API Server
    # =========================================================================
    api_host: str = Field(default="0.0.0.0", description="API server bind address")
    api_port: int = Field(default=8000, description="API server port")
    api_key: str = Field(default="", description="API key for mutating endpoints")
    docs_enabled: bool = Field(default=True, description="Serve the OpenAPI docs")

    # =========================================================================
    # Database
    # =========================================================================
    database_path: str = Field(default="data/calendar.db", description="SQLite database path")

    # =========================================================================
    # Booking Rules
    # =========================================================================
    scope_event_lookup_by_team: bool = Field(
        default=True,
        description="Restrict single-event lookups to the caller's team"
    )
    reject_overlapping_bookings: bool = Field(
        default=False,
        description="Refuse bookings that overlap another booking of the same item"
    )

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="", description="Log file path (empty disables file logging)")

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def database_full_path(self) -> Path:
        """Get absolute path to database"""
        return Path(self.database_path).resolve()


# Global settings instance
settings = Settings()
