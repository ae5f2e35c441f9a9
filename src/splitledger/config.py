"""Configuration management for SplitLedger."""

from decimal import Decimal
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity of whoever runs the tool
    actor_id: str
    actor_email: str | None = None
    actor_name: str | None = None

    # Display name used to highlight "you" in member lists
    your_name: str = ""

    # Money settings
    settlement_currency: str = "HKD"
    share_tolerance: Decimal = Decimal("0.5")  # Warn when shares drift further

    # Exchange rate API
    rate_api_url: str = "https://api.frankfurter.app"
    rate_timeout: float = 30.0

    # Database path
    database_path: Path = Path.home() / ".splitledger" / "splitledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @field_validator("settlement_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Make sure you have created a .env file "
            f"with at least ACTOR_ID set. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
