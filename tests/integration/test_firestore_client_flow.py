"""Integration tests for FirestoreClient.

Firestore 에뮬레이터와 함께 CRUD, 쿼리, 배치, 트랜잭션, 구독을 테스트합니다.
"""

import uuid
from datetime import datetime
from typing import Any

import pytest
from google.cloud import firestore  # type: ignore[attr-defined]
from pydantic import BaseModel

from firestore_client.adapters.firestore_client import FirestoreClient
from firestore_client.exceptions import FirestoreError
from firestore_client.models.query_condition import OrderBy, QueryCondition
from firestore_client.models.subscription import CombineStrategy
from firestore_client.repositories.base import BaseRepository
from tests.utils import is_emulator_available

# Firestore 에뮬레이터가 없으면 테스트 스킵
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not is_emulator_available(),
        reason="Firestore emulator not available at FIRESTORE_EMULATOR_HOST",
    ),
]


class User(BaseModel):
    """테스트용 사용자 모델."""

    id: str | None = None
    name: str
    age: int
    tags: list[str] = []


class UserRepository(BaseRepository[User]):
    """테스트용 사용자 Repository."""

    collection_name = "users"
    model_class = User


def user_to_json(user: User) -> dict[str, Any]:
    return user.model_dump(exclude={"id"})


def user_from_json(data: dict[str, Any]) -> User:
    return User.model_validate(data)


def identity(data: dict[str, Any]) -> dict[str, Any]:
    return data


class TestFirestoreClientIntegration:
    """FirestoreClient 통합 테스트."""

    @pytest.fixture
    def unique_project(self) -> str:
        """테스트별 고유 프로젝트 ID."""
        return f"test-project-{uuid.uuid4().hex[:8]}"

    @pytest.fixture
    def client(self, unique_project: str) -> FirestoreClient:
        """실제 Firestore 에뮬레이터 클라이언트 (테스트별 격리)."""
        return FirestoreClient(
            firestore.Client(project=unique_project), poll_interval=0.1
        )

    def test_create_and_read(self, client: FirestoreClient) -> None:
        """생성 후 조회 - id와 타임스탬프 포함."""
        doc_id = client.create(
            "users", User(name="Alice", age=30), user_to_json, doc_id="alice"
        )

        data = client.read("users", doc_id, identity)

        assert doc_id == "alice"
        assert data is not None
        assert data["id"] == "alice"
        assert data["name"] == "Alice"
        assert isinstance(data["createdAt"], datetime)
        assert isinstance(data["updatedAt"], datetime)

    def test_create_auto_id(self, client: FirestoreClient) -> None:
        """ID 없이 생성하면 자동 생성 ID."""
        doc_id = client.create("users", User(name="Anon", age=1), user_to_json)

        user = client.read("users", doc_id, user_from_json)

        assert doc_id
        assert user is not None
        assert user.id == doc_id

    def test_read_missing(self, client: FirestoreClient) -> None:
        """없는 문서는 None."""
        assert client.read("users", "ghost", user_from_json) is None

    def test_update_preserves_created_at(self, client: FirestoreClient) -> None:
        """기존 문서 업데이트 시 createdAt 유지."""
        client.create("users", User(name="Bob", age=20), user_to_json, doc_id="bob")
        before = client.read("users", "bob", identity)

        client.update("users", "bob", {"age": 21}, identity)
        after = client.read("users", "bob", identity)

        assert before is not None and after is not None
        assert after["age"] == 21
        assert after["name"] == "Bob"
        assert after["createdAt"] == before["createdAt"]
        assert after["updatedAt"] >= before["updatedAt"]

    def test_update_missing_creates(self, client: FirestoreClient) -> None:
        """없는 문서 업데이트는 생성 (createdAt 포함)."""
        client.update("users", "carol", {"name": "Carol", "age": 40}, identity)

        data = client.read("users", "carol", identity)

        assert data is not None
        assert data["name"] == "Carol"
        assert "createdAt" in data

    def test_delete_is_idempotent(self, client: FirestoreClient) -> None:
        """삭제 후 조회는 None, 다시 삭제해도 에러 없음."""
        client.create("users", User(name="Dan", age=50), user_to_json, doc_id="dan")

        client.delete("users", "dan")
        client.delete("users", "dan")

        assert client.read("users", "dan", identity) is None

    def test_sub_collection(self, client: FirestoreClient) -> None:
        """서브컬렉션 CRUD."""
        client.create_in_sub_collection(
            "users", "alice", "posts", {"title": "Hello"}, identity, doc_id="p1"
        )

        post = client.read_in_sub_collection("users", "alice", "posts", "p1", identity)
        assert post is not None
        assert post["title"] == "Hello"

        client.delete_in_sub_collection("users", "alice", "posts", "p1")
        assert client.read("users/alice/posts", "p1", identity) is None

    def test_fetch_all(self, client: FirestoreClient) -> None:
        """여러 문서 동시 조회 - 없는 문서는 None."""
        client.create("users", User(name="A", age=1), user_to_json, doc_id="a")
        client.create("users", User(name="B", age=2), user_to_json, doc_id="b")

        result = client.fetch_all("users", ["a", "missing", "b"], user_from_json)

        assert list(result) == ["a", "missing", "b"]
        assert result["a"] is not None and result["a"].name == "A"
        assert result["missing"] is None

    def test_query_conditions_and_order(self, client: FirestoreClient) -> None:
        """조건은 AND로 결합, 정렬 적용."""
        for name, age in [("A", 15), ("B", 25), ("C", 35), ("D", 28)]:
            client.create("users", User(name=name, age=age), user_to_json, doc_id=name)

        users = client.query(
            "users",
            [
                QueryCondition("age", is_greater_than=20),
                QueryCondition("age", is_less_than=30),
            ],
            user_from_json,
            order_by=[OrderBy("age", descending=True)],
        )

        assert [u.name for u in users] == ["D", "B"]

    def test_query_where_in_and_array_contains(self, client: FirestoreClient) -> None:
        """in / array_contains 연산자."""
        client.create(
            "users", User(name="A", age=1, tags=["admin"]), user_to_json, doc_id="a"
        )
        client.create("users", User(name="B", age=2), user_to_json, doc_id="b")

        by_name = client.query(
            "users", [QueryCondition("name", where_in=["B", "Z"])], user_from_json
        )
        admins = client.query(
            "users", [QueryCondition("tags", array_contains="admin")], user_from_json
        )

        assert [u.name for u in by_name] == ["B"]
        assert [u.name for u in admins] == ["A"]

    def test_collection_group_query(self, client: FirestoreClient) -> None:
        """모든 깊이의 같은 이름 컬렉션 조회."""
        client.create_in_sub_collection(
            "users", "a", "posts", {"status": "published"}, identity, doc_id="p1"
        )
        client.create_in_sub_collection(
            "users", "b", "posts", {"status": "published"}, identity, doc_id="p2"
        )
        client.create_in_sub_collection(
            "users", "b", "posts", {"status": "draft"}, identity, doc_id="p3"
        )

        posts = client.collection_group_query(
            "posts", [QueryCondition("status", is_equal_to="published")], identity
        )

        assert sorted(p["id"] for p in posts) == ["p1", "p2"]

    def test_count(self, client: FirestoreClient) -> None:
        """집계 쿼리로 카운트."""
        for name, age in [("A", 10), ("B", 20), ("C", 30)]:
            client.create("users", User(name=name, age=age), user_to_json, doc_id=name)

        assert client.count("users", []) == 3
        assert client.count("users", [QueryCondition("age", is_greater_than=15)]) == 2

    def test_batch_write_is_atomic(self, client: FirestoreClient) -> None:
        """액션 실패 시 아무것도 커밋되지 않음."""
        ref = client.document_ref("users", "batched")

        def failing(batch: Any) -> None:
            raise ValueError("abort")

        with pytest.raises(FirestoreError):
            client.batch_write([lambda b: b.set(ref, {"name": "X"}), failing])
        assert client.read("users", "batched", identity) is None

        client.batch_write([lambda b: b.set(ref, {"name": "X"})])
        data = client.read("users", "batched", identity)
        assert data == {"name": "X", "id": "batched"}

    def test_run_transaction(self, client: FirestoreClient) -> None:
        """트랜잭션 안에서 읽고 쓰기."""
        client.create("users", User(name="T", age=1), user_to_json, doc_id="t")
        ref = client.document_ref("users", "t")

        def increment(transaction: Any) -> int:
            snapshot = ref.get(transaction=transaction)
            age = snapshot.get("age") + 1
            transaction.update(ref, {"age": age})
            return age

        assert client.run_transaction(increment) == 2
        data = client.read("users", "t", identity)
        assert data is not None and data["age"] == 2

    def test_watch_document(self, client: FirestoreClient) -> None:
        """현재 값, 변경, 삭제(None) 순서로 발행."""
        client.create("users", User(name="W", age=1), user_to_json, doc_id="w")

        with client.watch("users", "w", user_from_json) as subscription:
            first = subscription.get(timeout=10)
            assert first is not None and first.age == 1

            client.update("users", "w", {"age": 2}, identity)
            changed = subscription.get(timeout=10)
            assert changed is not None and changed.age == 2

            client.delete("users", "w")
            assert subscription.get(timeout=10) is None

    def test_watch_query(self, client: FirestoreClient) -> None:
        """쿼리 구독은 변경마다 전체 결과 발행."""
        client.create("users", User(name="A", age=30), user_to_json, doc_id="a")

        with client.watch_query(
            "users", [QueryCondition("age", is_greater_than=20)], user_from_json
        ) as subscription:
            assert [u.name for u in subscription.get(timeout=10)] == ["A"]

            client.create("users", User(name="B", age=40), user_to_json, doc_id="b")
            assert sorted(u.name for u in subscription.get(timeout=10)) == ["A", "B"]

    def test_watch_all(self, client: FirestoreClient) -> None:
        """여러 문서 구독 결합 (LATEST)."""
        client.create("users", User(name="A", age=1), user_to_json, doc_id="a")

        with client.watch_all(
            "users", ["a", "b"], user_from_json, strategy=CombineStrategy.LATEST
        ) as subscription:
            combined = subscription.get(timeout=10)
            assert list(combined) == ["a", "b"]
            assert combined["a"] is not None and combined["a"].name == "A"
            assert combined["b"] is None

            client.create("users", User(name="B", age=2), user_to_json, doc_id="b")
            combined = subscription.get(timeout=10)
            assert combined["b"] is not None and combined["b"].name == "B"

    def test_repository_round_trip(self, client: FirestoreClient) -> None:
        """Repository를 통한 생성/조회/카운트."""
        repo = UserRepository(client)

        repo.create(User(id="r1", name="Repo", age=9))

        user = repo.get_by_id("r1")
        assert user is not None and user.name == "Repo"
        assert repo.exists("r1") is True
        assert repo.count([QueryCondition("name", is_equal_to="Repo")]) == 1
