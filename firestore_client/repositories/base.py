"""Base repository for typed Firestore data access.

Pydantic 모델을 FirestoreClient의 codec(to_json/from_json)으로 연결하는 기본 클래스.
"""

from datetime import date, datetime
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, HttpUrl

from firestore_client.adapters.firestore_client import FirestoreClient
from firestore_client.adapters.subscription import Subscription
from firestore_client.models.query_condition import OrderBy, QueryCondition
from firestore_client.models.subscription import CombineStrategy

# Pydantic 모델 타입 변수
T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Firestore Repository 기본 클래스.

    각 도메인 Repository는 이 클래스를 상속하고
    collection_name과 model_class를 정의해야 합니다.
    collection_name에는 서브컬렉션 경로(예: "users/u1/posts")도 사용할 수 있습니다.

    Example:
        class UserRepository(BaseRepository[User]):
            collection_name = "users"
            model_class = User
    """

    collection_name: ClassVar[str]
    model_class: ClassVar[type[BaseModel]]

    def __init__(self, firestore_client: FirestoreClient) -> None:
        """Initialize repository with Firestore client.

        Args:
            firestore_client: Firestore 클라이언트 인스턴스.
        """
        self._db = firestore_client

    def get_by_id(self, doc_id: str) -> T | None:
        """ID로 문서 조회.

        Args:
            doc_id: 문서 ID.

        Returns:
            모델 인스턴스 또는 None.
        """
        return self._db.read(self.collection_name, doc_id, self._from_json)

    def get_many(self, doc_ids: list[str]) -> dict[str, T | None]:
        """여러 ID로 문서 동시 조회.

        Args:
            doc_ids: 문서 ID 목록.

        Returns:
            ID별 모델 인스턴스 (없으면 None).
        """
        return self._db.fetch_all(self.collection_name, doc_ids, self._from_json)

    def create(self, model: T) -> str:
        """문서 생성.

        모델에 id가 있으면 그 값을 문서 ID로 사용하고, 없으면 자동 생성합니다.

        Args:
            model: 저장할 모델 인스턴스.

        Returns:
            생성된 문서 ID.
        """
        return self._db.create(
            self.collection_name,
            model,
            self._model_to_dict,
            doc_id=getattr(model, "id", None),
        )

    def update(self, model: T) -> None:
        """문서 업데이트 (없으면 생성).

        Args:
            model: 업데이트할 모델 인스턴스.
        """
        self._db.update(
            self.collection_name,
            model.id,  # type: ignore[attr-defined]
            model,
            self._model_to_dict,
        )

    def delete(self, doc_id: str) -> None:
        """문서 삭제.

        Args:
            doc_id: 삭제할 문서 ID.
        """
        self._db.delete(self.collection_name, doc_id)

    def find_by(
        self,
        conditions: list[QueryCondition],
        order_by: list[OrderBy] | None = None,
    ) -> list[T]:
        """조건으로 문서 조회.

        Args:
            conditions: 쿼리 조건 리스트.
            order_by: 정렬 조건 리스트.

        Returns:
            매칭되는 모델 인스턴스 리스트.
        """
        return self._db.query(
            self.collection_name, conditions, self._from_json, order_by=order_by
        )

    def find_all(self) -> list[T]:
        """전체 문서 조회.

        Returns:
            모든 모델 인스턴스 리스트.
        """
        return self.find_by([])

    def exists(self, doc_id: str) -> bool:
        """문서 존재 여부 확인.

        Args:
            doc_id: 확인할 문서 ID.

        Returns:
            존재하면 True.
        """
        data = self._db.read(self.collection_name, doc_id, lambda data: data)
        return data is not None

    def count(self, conditions: list[QueryCondition] | None = None) -> int | None:
        """문서 수 카운트 (집계 쿼리).

        Args:
            conditions: 선택적 쿼리 조건.

        Returns:
            매칭되는 문서 수. 집계를 지원하지 않으면 None.
        """
        return self._db.count(self.collection_name, conditions or [])

    def watch_by_id(self, doc_id: str) -> Subscription[T | None]:
        """문서 변경 구독.

        Args:
            doc_id: 문서 ID.

        Returns:
            모델 인스턴스(없으면 None)를 발행하는 구독.
        """
        return self._db.watch(self.collection_name, doc_id, self._from_json)

    def watch_many(
        self,
        doc_ids: list[str],
        strategy: CombineStrategy | None = None,
    ) -> Subscription[dict[str, T | None]]:
        """여러 문서 변경을 하나의 구독으로 결합.

        Args:
            doc_ids: 문서 ID 목록.
            strategy: 결합 전략 (기본값은 클라이언트 설정).

        Returns:
            ID별 모델 인스턴스 매핑을 발행하는 구독.
        """
        return self._db.watch_all(
            self.collection_name, doc_ids, self._from_json, strategy=strategy
        )

    def watch_by(
        self,
        conditions: list[QueryCondition],
        order_by: list[OrderBy] | None = None,
    ) -> Subscription[list[T]]:
        """쿼리 결과 변경 구독.

        Args:
            conditions: 쿼리 조건 리스트.
            order_by: 정렬 조건 리스트.

        Returns:
            변경마다 전체 결과 리스트를 발행하는 구독.
        """
        return self._db.watch_query(
            self.collection_name, conditions, self._from_json, order_by=order_by
        )

    def _from_json(self, data: dict[str, Any]) -> T:
        """Firestore 데이터(id 포함)를 모델로 변환."""
        return self.model_class.model_validate(data)  # type: ignore[return-value]

    def _model_to_dict(self, model: T) -> dict[str, Any]:
        """모델을 Firestore 저장용 dict로 변환.

        Args:
            model: 변환할 모델.

        Returns:
            Firestore에 저장할 dict.
        """
        # mode="python" preserves datetime objects for Firestore.
        # id is the document ID, not a stored field
        data = model.model_dump(mode="python", exclude={"id"})
        return self._serialize_for_firestore(data)

    def _serialize_for_firestore(self, data: Any) -> Any:
        """Firestore에 저장 가능한 형태로 직렬화.

        HttpUrl, date 등 Firestore에서 직접 지원하지 않는 타입을 변환합니다.

        Args:
            data: 변환할 데이터.

        Returns:
            Firestore에 저장 가능한 데이터.
        """
        if isinstance(data, HttpUrl):
            return str(data)
        elif isinstance(data, date) and not isinstance(data, datetime):
            # date를 datetime으로 변환 (Firestore는 date를 직접 지원하지 않음)
            return datetime.combine(data, datetime.min.time())
        elif isinstance(data, dict):
            return {k: self._serialize_for_firestore(v) for k, v in data.items()}
        elif isinstance(data, list | tuple):
            return [self._serialize_for_firestore(item) for item in data]
        return data
