"""Configuration management for splitledger."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPLITLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity of the caller when none is given on the command line
    current_user_id: str | None = None

    # Group membership service (optional)
    group_service_url: str | None = None
    group_service_token: str | None = None

    # Whether an expense with settled obligations may still be deleted
    allow_delete_settled: bool = False

    # Database path
    database_path: Path = Path.home() / ".splitledger" / "ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your SPLITLEDGER_* environment "
            f"variables or .env file.\n"
            f"Error: {e}"
        ) from e
