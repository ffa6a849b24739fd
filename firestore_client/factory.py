"""Composition root for the Firestore client.

This is the only place that builds the driver from settings or keeps a
process-wide instance. Everything else receives a FirestoreClient.
"""

from google.cloud import firestore  # type: ignore[attr-defined]

from firestore_client.adapters.firestore_client import FirestoreClient
from firestore_client.config.logging import configure_logging, get_logger
from firestore_client.config.settings import Settings, get_settings


def create_firestore_client(settings: Settings | None = None) -> FirestoreClient:
    """Build a FirestoreClient from settings.

    Also configures structlog from LOG_JSON and LOG_LEVEL. The driver
    connects to the emulator on its own when FIRESTORE_EMULATOR_HOST is set.

    Args:
        settings: Settings to use. Defaults to the global settings.

    Returns:
        A new FirestoreClient.
    """
    settings = settings or get_settings()
    configure_logging(json_logs=settings.LOG_JSON, level=settings.LOG_LEVEL)

    db = firestore.Client(
        project=settings.GCP_PROJECT_ID,
        database=settings.FIRESTORE_DATABASE,
    )

    get_logger(__name__).info(
        "firestore_client_created",
        project_id=settings.GCP_PROJECT_ID,
        database=settings.FIRESTORE_DATABASE,
        is_local=settings.is_local,
    )
    return FirestoreClient(
        db,
        watch_all_strategy=settings.WATCH_ALL_STRATEGY,
        poll_interval=settings.WATCH_POLL_INTERVAL_SECONDS,
        max_workers=settings.FETCH_ALL_MAX_WORKERS,
    )


# Singleton instance (lazy initialization)
_client: FirestoreClient | None = None


def get_firestore_client() -> FirestoreClient:
    """Get the process-wide FirestoreClient (singleton)."""
    global _client
    if _client is None:
        _client = create_firestore_client()
    return _client
