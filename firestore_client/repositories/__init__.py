"""Repository layer for typed Firestore data access."""

from firestore_client.repositories.base import BaseRepository

__all__ = [
    "BaseRepository",
]
