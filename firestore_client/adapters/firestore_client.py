"""Firestore database client."""

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any, TypeVar

import structlog
from google.cloud import firestore  # type: ignore[attr-defined]
from google.cloud.firestore_v1.base_query import FieldFilter

from firestore_client.adapters.subscription import CombinedSubscription, Subscription
from firestore_client.exceptions import FirestoreError, translate_errors
from firestore_client.models.query_condition import OrderBy, QueryCondition
from firestore_client.models.subscription import CombineStrategy

logger = structlog.get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S", bound=Subscription[Any])

# Caller-supplied codecs
ToJson = Callable[[T], dict[str, Any]]
FromJson = Callable[[dict[str, Any]], T]


def sub_collection_path(
    parent_collection_path: str, parent_doc_id: str, sub_collection_name: str
) -> str:
    """Compose a sub-collection path (e.g. "users/user123/posts")."""
    return f"{parent_collection_path}/{parent_doc_id}/{sub_collection_name}"


class FirestoreClient:
    """Client for Firestore CRUD, query, batch, transaction and watch operations.

    Every operation takes explicit codec functions: ``to_json`` turns an
    application value into a Firestore map, ``from_json`` turns a map (with
    the document id merged in as ``"id"``) back into a value. Failures are
    raised as FirestoreError.
    """

    CREATED_AT_FIELD = "createdAt"
    UPDATED_AT_FIELD = "updatedAt"

    def __init__(
        self,
        db: firestore.Client,
        *,
        watch_all_strategy: CombineStrategy = CombineStrategy.LATEST,
        poll_interval: float = 1.0,
        max_workers: int = 8,
    ) -> None:
        """Initialize Firestore client.

        Args:
            db: Firestore driver client.
            watch_all_strategy: Default combination strategy for watch_all.
            poll_interval: Listener liveness check interval for subscriptions.
            max_workers: Upper bound on concurrent reads in fetch_all.
        """
        self._db = db
        self._watch_all_strategy = watch_all_strategy
        self._poll_interval = poll_interval
        self._max_workers = max_workers

    # -------------------------------------------------------------------------
    # CREATE
    # -------------------------------------------------------------------------
    def create(
        self,
        collection_path: str,
        data: T,
        to_json: ToJson[T],
        doc_id: str | None = None,
    ) -> str:
        """Create a document with createdAt/updatedAt server timestamps.

        Args:
            collection_path: Collection path (e.g. "users" or "users/u1/posts").
            data: Value to store.
            to_json: Codec producing the Firestore map.
            doc_id: Document ID. Auto-generated when omitted.

        Returns:
            The document ID.
        """
        with translate_errors(
            "Failed to create document", path=collection_path, doc_id=doc_id
        ):
            now = firestore.SERVER_TIMESTAMP
            payload = {
                **to_json(data),
                self.CREATED_AT_FIELD: now,
                self.UPDATED_AT_FIELD: now,
            }
            collection = self._db.collection(collection_path)
            if doc_id is not None:
                collection.document(doc_id).set(payload)
            else:
                _, doc_ref = collection.add(payload)
                doc_id = doc_ref.id

        logger.debug("document_created", path=collection_path, doc_id=doc_id)
        return doc_id

    def create_in_sub_collection(
        self,
        parent_collection_path: str,
        parent_doc_id: str,
        sub_collection_name: str,
        data: T,
        to_json: ToJson[T],
        doc_id: str | None = None,
    ) -> str:
        """Create a document under parent/parent_id/sub_collection."""
        path = sub_collection_path(
            parent_collection_path, parent_doc_id, sub_collection_name
        )
        return self.create(path, data, to_json, doc_id=doc_id)

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------
    def read(
        self, collection_path: str, doc_id: str, from_json: FromJson[T]
    ) -> T | None:
        """Read a document.

        Args:
            collection_path: Collection path.
            doc_id: Document ID.
            from_json: Codec decoding the Firestore map.

        Returns:
            Decoded value or None if the document doesn't exist.
        """
        with translate_errors(
            "Failed to read document", path=collection_path, doc_id=doc_id
        ):
            snapshot = self._db.collection(collection_path).document(doc_id).get()
            if not snapshot.exists:
                return None
            return self.from_snapshot(snapshot, from_json)

    def read_in_sub_collection(
        self,
        parent_collection_path: str,
        parent_doc_id: str,
        sub_collection_name: str,
        doc_id: str,
        from_json: FromJson[T],
    ) -> T | None:
        """Read a document under parent/parent_id/sub_collection."""
        path = sub_collection_path(
            parent_collection_path, parent_doc_id, sub_collection_name
        )
        return self.read(path, doc_id, from_json)

    def fetch_all(
        self,
        collection_path: str,
        doc_ids: Sequence[str],
        from_json: FromJson[T],
    ) -> dict[str, T | None]:
        """Read many documents concurrently.

        The first failing read cancels the reads still queued and fails the
        whole call.

        Args:
            collection_path: Collection path.
            doc_ids: Document IDs. Duplicates are read once.
            from_json: Codec decoding the Firestore map.

        Returns:
            Mapping of document ID to decoded value, or None when not found.
        """
        unique_ids = list(dict.fromkeys(doc_ids))
        if not unique_ids:
            return {}

        with translate_errors("Failed to fetch documents", path=collection_path):
            workers = max(1, min(self._max_workers, len(unique_ids)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures: dict[str, Future[T | None]] = {
                    doc_id: executor.submit(
                        self.read, collection_path, doc_id, from_json
                    )
                    for doc_id in unique_ids
                }
                done, pending = wait(futures.values(), return_when=FIRST_EXCEPTION)
                for future in pending:
                    future.cancel()
                for future in done:
                    error = future.exception()
                    if error is not None:
                        raise error

            return {doc_id: future.result() for doc_id, future in futures.items()}

    # -------------------------------------------------------------------------
    # UPDATE
    # -------------------------------------------------------------------------
    def update(
        self,
        collection_path: str,
        doc_id: str,
        data: T,
        to_json: ToJson[T],
    ) -> None:
        """Update a document, creating it if it doesn't exist.

        updatedAt is always set. createdAt is only set when the document is
        created here. The existence check and the write are separate calls,
        so two concurrent first updates may both set createdAt.

        Args:
            collection_path: Collection path.
            doc_id: Document ID.
            data: Value to store.
            to_json: Codec producing the Firestore map.
        """
        with translate_errors(
            "Failed to update document", path=collection_path, doc_id=doc_id
        ):
            doc_ref = self._db.collection(collection_path).document(doc_id)
            snapshot = doc_ref.get()
            now = firestore.SERVER_TIMESTAMP
            payload = {**to_json(data), self.UPDATED_AT_FIELD: now}

            # merge-set keeps dotted codec keys literal, like create()
            if snapshot.exists:
                doc_ref.set(payload, merge=True)
            else:
                doc_ref.set({**payload, self.CREATED_AT_FIELD: now}, merge=True)

        logger.debug(
            "document_updated",
            path=collection_path,
            doc_id=doc_id,
            created=not snapshot.exists,
        )

    def update_in_sub_collection(
        self,
        parent_collection_path: str,
        parent_doc_id: str,
        sub_collection_name: str,
        doc_id: str,
        data: T,
        to_json: ToJson[T],
    ) -> None:
        """Update (or create) a document under parent/parent_id/sub_collection."""
        path = sub_collection_path(
            parent_collection_path, parent_doc_id, sub_collection_name
        )
        self.update(path, doc_id, data, to_json)

    # -------------------------------------------------------------------------
    # DELETE
    # -------------------------------------------------------------------------
    def delete(self, collection_path: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error.

        Args:
            collection_path: Collection path.
            doc_id: Document ID.
        """
        with translate_errors(
            "Failed to delete document", path=collection_path, doc_id=doc_id
        ):
            self._db.collection(collection_path).document(doc_id).delete()

    def delete_in_sub_collection(
        self,
        parent_collection_path: str,
        parent_doc_id: str,
        sub_collection_name: str,
        doc_id: str,
    ) -> None:
        """Delete a document under parent/parent_id/sub_collection."""
        path = sub_collection_path(
            parent_collection_path, parent_doc_id, sub_collection_name
        )
        self.delete(path, doc_id)

    # -------------------------------------------------------------------------
    # QUERY
    # -------------------------------------------------------------------------
    def query(
        self,
        collection_path: str,
        conditions: Sequence[QueryCondition],
        from_json: FromJson[T],
        order_by: Sequence[OrderBy] | None = None,
    ) -> list[T]:
        """Query documents with conditions.

        Args:
            collection_path: Collection path.
            conditions: Conditions applied as conjunctive filters.
            from_json: Codec decoding each row.
            order_by: Optional order directives, applied in sequence.

        Returns:
            Decoded documents in driver order.
        """
        with translate_errors("Failed to query documents", path=collection_path):
            query = self._build_query(
                self._db.collection(collection_path), conditions, order_by
            )
            return [self.from_snapshot(doc, from_json) for doc in query.stream()]

    def collection_group_query(
        self,
        collection_group_name: str,
        conditions: Sequence[QueryCondition],
        from_json: FromJson[T],
        order_by: Sequence[OrderBy] | None = None,
    ) -> list[T]:
        """Query every collection named collection_group_name, at any depth.

        Args:
            collection_group_name: Collection ID shared by the target collections.
            conditions: Conditions applied as conjunctive filters.
            from_json: Codec decoding each row.
            order_by: Optional order directives, applied in sequence.

        Returns:
            Decoded documents in driver order.
        """
        with translate_errors(
            "Failed to collection group query documents", group=collection_group_name
        ):
            query = self._build_query(
                self._db.collection_group(collection_group_name), conditions, order_by
            )
            return [self.from_snapshot(doc, from_json) for doc in query.stream()]

    def count(
        self, collection_path: str, conditions: Sequence[QueryCondition]
    ) -> int | None:
        """Count matching documents with an aggregation query.

        Args:
            collection_path: Collection path.
            conditions: Conditions applied as conjunctive filters.

        Returns:
            Document count, or None if the driver returned no aggregation result.
        """
        with translate_errors("Failed to count documents", path=collection_path):
            query = self._build_query(self._db.collection(collection_path), conditions)
            aggregate = getattr(query, "count", None)
            if aggregate is None:
                logger.warning("count_aggregation_unsupported", path=collection_path)
                return None

            results = aggregate(alias="count").get()
            if not results or not results[0]:
                return None
            return int(results[0][0].value)

    # -------------------------------------------------------------------------
    # BATCH WRITE / TRANSACTION
    # -------------------------------------------------------------------------
    def batch_write(self, actions: Sequence[Callable[[Any], Any]]) -> None:
        """Apply write actions to one batch and commit it atomically.

        If any action raises, nothing is committed.

        Args:
            actions: Callables receiving the driver WriteBatch.
        """
        with translate_errors("Failed to execute batch write", actions=len(actions)):
            batch = self._db.batch()
            for action in actions:
                action(batch)
            batch.commit()

    def run_transaction(self, handler: Callable[[Any], T]) -> T:
        """Run handler inside a driver transaction.

        The driver retries the handler on contention; no retry is added here.

        Args:
            handler: Callable receiving the driver Transaction.

        Returns:
            The handler's return value.
        """
        with translate_errors("Failed to run transaction"):
            return firestore.transactional(handler)(self._db.transaction())

    # -------------------------------------------------------------------------
    # WATCH
    # -------------------------------------------------------------------------
    def watch(
        self, collection_path: str, doc_id: str, from_json: FromJson[T]
    ) -> Subscription[T | None]:
        """Watch a document.

        Emits the current value first, then one value per change. None is
        emitted while the document doesn't exist.

        Args:
            collection_path: Collection path.
            doc_id: Document ID.
            from_json: Codec decoding the Firestore map.

        Returns:
            Subscription yielding decoded values.
        """
        subscription: Subscription[T | None] = Subscription(
            f"{collection_path}/{doc_id}",
            error_message="Failed to watch document",
            poll_interval=self._poll_interval,
        )

        def register() -> None:
            reference = self._db.collection(collection_path).document(doc_id)
            subscription.listen(
                reference, lambda snapshots: self._decode_document(snapshots, from_json)
            )

        return self._open(subscription, register)

    def watch_in_sub_collection(
        self,
        parent_collection_path: str,
        parent_doc_id: str,
        sub_collection_name: str,
        doc_id: str,
        from_json: FromJson[T],
    ) -> Subscription[T | None]:
        """Watch a document under parent/parent_id/sub_collection."""
        path = sub_collection_path(
            parent_collection_path, parent_doc_id, sub_collection_name
        )
        return self.watch(path, doc_id, from_json)

    def watch_query(
        self,
        collection_path: str,
        conditions: Sequence[QueryCondition],
        from_json: FromJson[T],
        order_by: Sequence[OrderBy] | None = None,
    ) -> Subscription[list[T]]:
        """Watch a query. Every change emits the full current result list.

        Args:
            collection_path: Collection path.
            conditions: Conditions applied as conjunctive filters.
            from_json: Codec decoding each row.
            order_by: Optional order directives, applied in sequence.

        Returns:
            Subscription yielding decoded result lists.
        """
        subscription: Subscription[list[T]] = Subscription(
            f"{collection_path}?query",
            error_message="Failed to watch query",
            poll_interval=self._poll_interval,
        )

        def register() -> None:
            query = self._build_query(
                self._db.collection(collection_path), conditions, order_by
            )
            subscription.listen(
                query,
                lambda snapshots: [
                    self.from_snapshot(doc, from_json) for doc in snapshots
                ],
            )

        return self._open(subscription, register)

    def watch_all(
        self,
        collection_path: str,
        doc_ids: Sequence[str],
        from_json: FromJson[T],
        strategy: CombineStrategy | None = None,
    ) -> Subscription[dict[str, T | None]]:
        """Watch many documents as one stream of {doc_id: value} mappings.

        An empty doc_ids yields a single empty mapping without subscribing.

        Args:
            collection_path: Collection path.
            doc_ids: Document IDs. Duplicates are watched once.
            from_json: Codec decoding the Firestore map.
            strategy: Combination strategy. Defaults to the client's.

        Returns:
            Subscription yielding combined mappings.
        """
        keys = list(dict.fromkeys(doc_ids))
        if not keys:
            return Subscription.completed(collection_path, {})

        subscription: CombinedSubscription[T] = CombinedSubscription(
            f"{collection_path}[{len(keys)}]",
            keys,
            strategy=strategy or self._watch_all_strategy,
            poll_interval=self._poll_interval,
        )

        def register() -> None:
            collection = self._db.collection(collection_path)
            for doc_id in keys:
                subscription.listen_key(
                    doc_id,
                    collection.document(doc_id),
                    lambda snapshots: self._decode_document(snapshots, from_json),
                )

        return self._open(subscription, register)

    # -------------------------------------------------------------------------
    # HELPER METHODS
    # -------------------------------------------------------------------------
    def document_ref(self, collection_path: str, doc_id: str) -> Any:
        """Driver document reference, for use in batch and transaction actions."""
        return self._db.collection(collection_path).document(doc_id)

    def from_snapshot(self, snapshot: Any, from_json: FromJson[T]) -> T:
        """Decode a document snapshot, merging its ID into the data as "id".

        Raises:
            FirestoreError: If the snapshot has no data.
        """
        data = snapshot.to_dict()
        if data is None:
            raise FirestoreError("Document data is null")
        return from_json({**data, "id": snapshot.id})

    def apply_condition(self, query: Any, condition: QueryCondition) -> Any:
        """Apply every comparator set on condition as a where clause."""
        for field, op, value in condition.filters():
            query = query.where(filter=FieldFilter(field, op, value))
        return query

    def _build_query(
        self,
        query: Any,
        conditions: Sequence[QueryCondition],
        order_by: Sequence[OrderBy] | None = None,
    ) -> Any:
        for condition in conditions:
            query = self.apply_condition(query, condition)
        for order in order_by or []:
            direction = (
                firestore.Query.DESCENDING
                if order.descending
                else firestore.Query.ASCENDING
            )
            query = query.order_by(order.field, direction=direction)
        return query

    def _decode_document(
        self, snapshots: list[Any], from_json: FromJson[T]
    ) -> T | None:
        # a document listener reports an empty list for a missing document
        if not snapshots or not snapshots[0].exists:
            return None
        return self.from_snapshot(snapshots[0], from_json)

    def _open(self, subscription: S, register: Callable[[], None]) -> S:
        # Subscribe-time failures go to the consumer as the stream's terminal error
        try:
            register()
        except Exception as e:
            subscription.fail(
                FirestoreError.from_exception(e, subscription.error_message)
            )
        return subscription
