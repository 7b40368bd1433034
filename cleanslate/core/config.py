"""Configuration management for cleanslate."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    sqlite_db_path: str = Field(default="./data/cleanslate.db", description="SQLite database file path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    environment: str = Field(default="development", description="Deployment environment name")

    # Public links
    app_url: str = Field(default="http://localhost:5174", description="Base URL used for public invoice links")

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production."""
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Recurrence
    RECURRENCE_MAX_OCCURRENCES: int = 4  # Look-ahead cap per series
    RECURRENCE_HORIZON_DAYS: int = 365  # Nothing is generated past anchor date + horizon

    # Scheduling
    APPOINTMENT_NORMALIZED_HOUR: int = 12  # Stored time-of-day for calendar dates (avoids timezone drift)
    WEEK_LENGTH_DAYS: int = 7

    # Tokens
    SERIES_ID_BYTES: int = 8
    INVOICE_TOKEN_BYTES: int = 16

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 1000  # Default limit for unpaginated engine queries

    # Payouts
    MAX_HELPER_FEE_PERCENTAGE: float = 100.0

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
