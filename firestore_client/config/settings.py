"""Client settings using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from firestore_client.models.subscription import CombineStrategy


class Settings(BaseSettings):
    """Client configuration from environment variables.

    GCP_PROJECT_ID must be provided via environment variables or .env file.
    Everything else has a default value.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Google Cloud Platform
    # -------------------------------------------------------------------------
    GCP_PROJECT_ID: str
    FIRESTORE_DATABASE: str = "(default)"

    # Firestore Emulator (local development)
    FIRESTORE_EMULATOR_HOST: str | None = None

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------
    WATCH_ALL_STRATEGY: CombineStrategy = CombineStrategy.LATEST
    """How watch_all combines per-document listeners"""

    WATCH_POLL_INTERVAL_SECONDS: float = Field(default=1.0, gt=0)
    """How often a waiting consumer checks that its listeners are still alive"""

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    FETCH_ALL_MAX_WORKERS: int = Field(default=8, gt=0)  # fetch_all concurrent reads

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def is_local(self) -> bool:
        """Check if running against the Firestore emulator."""
        return self.FIRESTORE_EMULATOR_HOST is not None


# Singleton instance (lazy initialization)
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the client settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
