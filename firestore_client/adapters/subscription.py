"""Snapshot listener subscriptions.

The Firestore driver delivers ``on_snapshot`` callbacks on its own background
thread. A Subscription decodes each snapshot there, queues the result, and
hands values (or a terminal error) to the consumer through a blocking
iterator. Failures are never raised on the driver thread.
"""

import queue
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from functools import partial
from typing import Any, Generic, TypeVar

import structlog

from firestore_client.exceptions import FirestoreError
from firestore_client.models.subscription import CombineStrategy, SubscriptionState

logger = structlog.get_logger(__name__)

T = TypeVar("T")
V = TypeVar("V")

# Document snapshots of one driver callback -> published value
SnapshotTransform = Callable[[list[Any]], T]

_COMPLETED = object()


class _Failure:
    """Terminal error event."""

    __slots__ = ("error",)

    def __init__(self, error: FirestoreError) -> None:
        self.error = error


class Subscription(Generic[T]):
    """Blocking iterator over values produced by snapshot listeners.

    Owns every driver listener handle attached to it and releases them on
    close(). Use it as a context manager or call close() explicitly.

    The value buffer is unbounded: snapshots that arrive faster than the
    consumer reads them are kept in memory until read.

    Example:
        with client.watch("users", "user_123", from_json=User.model_validate) as sub:
            for user in sub:
                ...
    """

    def __init__(
        self,
        name: str,
        error_message: str = "Failed to watch document",
        poll_interval: float = 1.0,
    ) -> None:
        """Initialize an empty subscription.

        Args:
            name: Label used in logs (usually the watched path).
            error_message: Prefix for translated listener failures.
            poll_interval: Seconds between listener liveness checks while waiting.
        """
        self.name = name
        self.error_message = error_message
        self._poll_interval = poll_interval
        self._events: queue.Queue[Any] = queue.Queue()
        self._handles: list[Any] = []
        self._lock = threading.Lock()
        self._state = SubscriptionState.ACTIVE

    @classmethod
    def completed(cls, name: str, value: T) -> "Subscription[T]":
        """Subscription that yields a single value and then ends."""
        subscription: Subscription[T] = cls(name)
        subscription._publish(value)
        subscription._complete()
        return subscription

    @property
    def state(self) -> SubscriptionState:
        return self._state

    def listen(self, reference: Any, transform: SnapshotTransform[T]) -> None:
        """Attach a driver listener and publish every transformed snapshot.

        Args:
            reference: Driver document or query reference supporting on_snapshot.
            transform: Converts the callback's document snapshots into a value.
        """
        self._listen(reference, transform, self._publish)

    def fail(self, error: FirestoreError) -> None:
        """Move to ERRED and queue a terminal error for the consumer."""
        with self._lock:
            if self._state is not SubscriptionState.ACTIVE:
                return
            self._state = SubscriptionState.ERRED
            self._events.put(_Failure(error))
        logger.warning(
            "subscription_failed",
            subscription=self.name,
            error=error.message,
            code=error.code,
        )

    def get(self, timeout: float | None = None) -> T:
        """Wait for the next value.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            The next published value.

        Raises:
            FirestoreError: A listener failed. The subscription is closed.
            StopIteration: The subscription is closed or completed.
            TimeoutError: Nothing arrived within timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self._state is SubscriptionState.CLOSED:
                raise StopIteration

            wait = self._poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"No snapshot from {self.name} within {timeout}s"
                    )
                wait = min(wait, remaining)

            try:
                event = self._events.get(timeout=wait)
            except queue.Empty:
                self._check_listeners()
                continue

            if event is _COMPLETED:
                self.close()
                raise StopIteration
            if isinstance(event, _Failure):
                self.close()
                raise event.error
            return event

    def close(self) -> None:
        """Unsubscribe every listener. Safe to call more than once."""
        with self._lock:
            if self._state is SubscriptionState.CLOSED:
                return
            self._state = SubscriptionState.CLOSED
            handles, self._handles = self._handles, []
            # wake a consumer blocked in get()
            self._events.put(_COMPLETED)

        for handle in handles:
            self._unsubscribe(handle)
        logger.debug(
            "subscription_closed", subscription=self.name, listeners=len(handles)
        )

    def __iter__(self) -> "Subscription[T]":
        return self

    def __next__(self) -> T:
        return self.get()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _listen(
        self,
        reference: Any,
        transform: SnapshotTransform[V],
        sink: Callable[[V], None],
    ) -> None:
        def on_snapshot(snapshots: list[Any], changes: Any, read_time: Any) -> None:
            try:
                value = transform(snapshots)
            except Exception as e:
                self.fail(FirestoreError.from_exception(e, self.error_message))
                return
            sink(value)

        self._attach(reference.on_snapshot(on_snapshot))

    def _attach(self, handle: Any) -> None:
        with self._lock:
            if self._state is not SubscriptionState.CLOSED:
                self._handles.append(handle)
                return
        # closed while subscribing
        self._unsubscribe(handle)

    def _publish(self, value: T) -> None:
        with self._lock:
            if self._state is SubscriptionState.ACTIVE:
                self._events.put(value)

    def _complete(self) -> None:
        with self._lock:
            if self._state is SubscriptionState.ACTIVE:
                self._events.put(_COMPLETED)

    def _check_listeners(self) -> None:
        with self._lock:
            if self._state is not SubscriptionState.ACTIVE:
                return
            handles = list(self._handles)

        if any(not getattr(handle, "is_active", True) for handle in handles):
            self.fail(
                FirestoreError(
                    f"{self.error_message}: snapshot listener stopped",
                    code="WATCH_TERMINATED",
                )
            )

    def _unsubscribe(self, handle: Any) -> None:
        try:
            handle.unsubscribe()
        except Exception as e:
            logger.warning("unsubscribe_failed", subscription=self.name, error=str(e))


class CombinedSubscription(Subscription[dict[str, V | None]]):
    """One listener per key, combined into a {key: value} mapping stream.

    LATEST waits until every key has delivered its first snapshot, then
    publishes the full mapping on every change from any key.
    SYNCHRONIZED zips: it publishes only once every key holds a value not yet
    combined, consuming one value per key. Values from a key that runs ahead are
    queued per key without limit until every other key catches up.
    """

    def __init__(
        self,
        name: str,
        keys: Sequence[str],
        strategy: CombineStrategy = CombineStrategy.LATEST,
        error_message: str = "Failed to watch documents",
        poll_interval: float = 1.0,
    ) -> None:
        super().__init__(name, error_message=error_message, poll_interval=poll_interval)
        self.keys = list(dict.fromkeys(keys))
        self.strategy = strategy
        self._latest: dict[str, V | None] = {}
        self._pending: dict[str, deque[V | None]] = {key: deque() for key in self.keys}
        self._combine_lock = threading.Lock()

    def listen_key(
        self, key: str, reference: Any, transform: SnapshotTransform[V | None]
    ) -> None:
        """Attach the listener that feeds one key of the combined mapping."""
        self._listen(reference, transform, partial(self._update, key))

    def _update(self, key: str, value: V | None) -> None:
        with self._combine_lock:
            if self.strategy is CombineStrategy.SYNCHRONIZED:
                self._pending[key].append(value)
                if not all(self._pending.values()):
                    return
                combined = {k: self._pending[k].popleft() for k in self.keys}
            else:
                self._latest[key] = value
                if len(self._latest) < len(self.keys):
                    return
                combined = {k: self._latest[k] for k in self.keys}
            # publish under the combine lock so emissions keep update order
            self._publish(combined)
