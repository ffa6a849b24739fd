"""Query condition models.

Firestore where 절을 필드 단위로 표현하는 불변 조건과,
조건을 단계적으로 조립하기 위한 빌더를 제공합니다.
"""

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from google.cloud.firestore_v1 import GeoPoint
from google.cloud.firestore_v1.base_document import BaseDocumentReference
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Firestore가 필터 값으로 허용하는 스칼라 도메인
FilterScalar = (
    bool | int | float | str | bytes | datetime | GeoPoint | BaseDocumentReference
)

# 배열/맵 동등 비교까지 포함한 필터 값 (저장 시 tuple / 읽기 전용 매핑으로 고정)
FilterValue = FilterScalar | tuple[FilterScalar, ...] | Mapping[str, Any]

# 호출자가 넘길 수 있는 값 (list, dict 포함)
FilterInput = FilterValue | list[FilterScalar] | dict[str, Any]

# (속성명, Firestore 연산자) - 이 순서대로 where 절이 적용됩니다.
_COMPARATORS: tuple[tuple[str, str], ...] = (
    ("is_equal_to", "=="),
    ("is_not_equal_to", "!="),
    ("is_less_than", "<"),
    ("is_less_than_or_equal_to", "<="),
    ("is_greater_than", ">"),
    ("is_greater_than_or_equal_to", ">="),
    ("array_contains", "array_contains"),
    ("array_contains_any", "array_contains_any"),
    ("where_in", "in"),
    ("where_not_in", "not-in"),
)


class QueryCondition(BaseModel):
    """단일 필드에 대한 쿼리 조건.

    설정된(None이 아닌) 비교 연산자는 모두 AND 조건으로 적용됩니다.
    연산자 조합의 유효성은 검증하지 않으며, 허용 여부는 Firestore가 판단합니다.

    Example:
        QueryCondition("age", is_greater_than=20, is_less_than=30)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str = Field(..., min_length=1, description="필드 경로 (예: profile.age)")
    is_equal_to: FilterValue | None = None
    is_not_equal_to: FilterValue | None = None
    is_less_than: FilterValue | None = None
    is_less_than_or_equal_to: FilterValue | None = None
    is_greater_than: FilterValue | None = None
    is_greater_than_or_equal_to: FilterValue | None = None
    array_contains: FilterValue | None = None
    array_contains_any: tuple[FilterValue, ...] | None = None
    where_in: tuple[FilterValue, ...] | None = None
    where_not_in: tuple[FilterValue, ...] | None = None
    is_null: bool | None = Field(None, description="True면 null, False면 not null")

    def __init__(self, field: str, /, **comparators: Any) -> None:
        super().__init__(field=field, **comparators)

    @field_validator(*(attr for attr, _ in _COMPARATORS), mode="after")
    @classmethod
    def _freeze_value(cls, value: Any) -> Any:
        """list/dict 값을 tuple/읽기 전용 매핑으로 고정."""
        return _freeze(value)

    def filters(self) -> list[tuple[str, str, Any]]:
        """설정된 비교 연산자를 (field, operator, value) 튜플로 변환.

        Returns:
            고정된 연산자 순서의 필터 튜플 리스트.
        """
        clauses: list[tuple[str, str, Any]] = []
        for attr, op in _COMPARATORS:
            value = getattr(self, attr)
            if value is None:
                continue
            clauses.append((self.field, op, _thaw(value)))

        if self.is_null is not None:
            clauses.append((self.field, "==" if self.is_null else "!=", None))
        return clauses


class QueryConditionBuilder:
    """QueryCondition을 단계적으로 조립하는 빌더.

    Example:
        condition = QueryConditionBuilder("age").greater_than(20).build()
    """

    def __init__(self, field: str) -> None:
        self.field = field
        self._values: dict[str, Any] = {}

    def equal_to(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_equal_to"] = value
        return self

    def not_equal_to(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_not_equal_to"] = value
        return self

    def less_than(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_less_than"] = value
        return self

    def less_than_or_equal_to(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_less_than_or_equal_to"] = value
        return self

    def greater_than(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_greater_than"] = value
        return self

    def greater_than_or_equal_to(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["is_greater_than_or_equal_to"] = value
        return self

    def array_contains(self, value: FilterInput) -> "QueryConditionBuilder":
        self._values["array_contains"] = value
        return self

    def array_contains_any(self, values: list[FilterInput]) -> "QueryConditionBuilder":
        self._values["array_contains_any"] = values
        return self

    def where_in(self, values: list[FilterInput]) -> "QueryConditionBuilder":
        self._values["where_in"] = values
        return self

    def where_not_in(self, values: list[FilterInput]) -> "QueryConditionBuilder":
        self._values["where_not_in"] = values
        return self

    def is_null(self, value: bool = True) -> "QueryConditionBuilder":
        self._values["is_null"] = value
        return self

    def build(self) -> QueryCondition:
        """현재 상태의 불변 스냅샷 생성.

        Returns:
            새 QueryCondition 인스턴스.
        """
        return QueryCondition(self.field, **self._values)


class OrderBy(BaseModel):
    """정렬 조건."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="정렬 필드")
    descending: bool = Field(False, description="내림차순 여부")

    def __init__(self, field: str, /, **options: Any) -> None:
        super().__init__(field=field, **options)


def _freeze(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


def _thaw(value: Any) -> Any:
    # driver expects plain list / dict values
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    return value
