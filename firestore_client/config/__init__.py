"""Configuration module."""

from firestore_client.config.logging import configure_logging, get_logger
from firestore_client.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "configure_logging",
    "get_logger",
    "get_settings",
]
