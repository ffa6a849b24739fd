"""Firestore driver adapters."""

from firestore_client.adapters.firestore_client import (
    FirestoreClient,
    sub_collection_path,
)
from firestore_client.adapters.subscription import CombinedSubscription, Subscription

__all__ = [
    "CombinedSubscription",
    "FirestoreClient",
    "Subscription",
    "sub_collection_path",
]
