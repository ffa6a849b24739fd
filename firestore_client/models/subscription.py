"""Subscription lifecycle and combination enums."""

from enum import Enum


class SubscriptionState(str, Enum):
    """구독 상태."""

    ACTIVE = "active"
    ERRED = "erred"
    CLOSED = "closed"


class CombineStrategy(str, Enum):
    """watch_all 결합 전략.

    LATEST: 모든 키가 한 번씩 도착한 뒤, 어느 키든 변경되면 최신 값 전체를 발행.
    SYNCHRONIZED: 모든 키에 아직 결합되지 않은 값이 있을 때만 키마다 하나씩 묶어 발행 (zip).
    """

    LATEST = "latest"
    SYNCHRONIZED = "synchronized"
