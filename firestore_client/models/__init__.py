"""Data models for the Firestore client."""

from firestore_client.models.query_condition import (
    FilterInput,
    FilterScalar,
    FilterValue,
    OrderBy,
    QueryCondition,
    QueryConditionBuilder,
)
from firestore_client.models.subscription import CombineStrategy, SubscriptionState

__all__ = [
    "CombineStrategy",
    "FilterInput",
    "FilterScalar",
    "FilterValue",
    "OrderBy",
    "QueryCondition",
    "QueryConditionBuilder",
    "SubscriptionState",
]
