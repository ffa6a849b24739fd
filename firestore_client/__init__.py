"""Generic Firestore client: CRUD, queries, batches, transactions and watches."""

from firestore_client.adapters.firestore_client import (
    FirestoreClient,
    sub_collection_path,
)
from firestore_client.adapters.subscription import CombinedSubscription, Subscription
from firestore_client.exceptions import FirestoreError, translate_errors
from firestore_client.factory import create_firestore_client, get_firestore_client
from firestore_client.models.query_condition import (
    OrderBy,
    QueryCondition,
    QueryConditionBuilder,
)
from firestore_client.models.subscription import CombineStrategy, SubscriptionState

__all__ = [
    "CombineStrategy",
    "CombinedSubscription",
    "FirestoreClient",
    "FirestoreError",
    "OrderBy",
    "QueryCondition",
    "QueryConditionBuilder",
    "Subscription",
    "SubscriptionState",
    "create_firestore_client",
    "get_firestore_client",
    "sub_collection_path",
    "translate_errors",
]
