"""Test utilities shared across test modules."""

import os
import socket
from typing import Any
from unittest.mock import MagicMock


def is_emulator_available() -> bool:
    """Firestore 에뮬레이터 사용 가능 여부 확인.

    환경변수 FIRESTORE_EMULATOR_HOST에서 호스트/포트를 읽어
    연결 가능 여부를 확인합니다.

    Returns:
        에뮬레이터 연결 가능 여부.
    """
    host = os.environ.get("FIRESTORE_EMULATOR_HOST", "localhost:8086")
    hostname, _, port = host.partition(":")

    try:
        with socket.create_connection((hostname, int(port or 8086)), timeout=1):
            return True
    except (OSError, ValueError):
        return False


def make_snapshot(doc_id: str, data: dict[str, Any] | None) -> MagicMock:
    """DocumentSnapshot 더블. data가 None이면 존재하지 않는 문서."""
    return MagicMock(
        id=doc_id,
        exists=data is not None,
        to_dict=MagicMock(return_value=data),
    )


class ListenerRecorder:
    """on_snapshot 콜백을 기록해 테스트에서 스냅샷을 직접 밀어 넣습니다."""

    def __init__(self) -> None:
        self.callbacks: list[Any] = []
        self.handles: list[MagicMock] = []

    def __call__(self, callback: Any) -> MagicMock:
        handle = MagicMock(is_active=True)
        self.callbacks.append(callback)
        self.handles.append(handle)
        return handle

    def push(self, index: int, snapshots: list[Any]) -> None:
        """index번째 리스너에 스냅샷 전달 (드라이버 콜백 시그니처와 동일)."""
        self.callbacks[index](snapshots, [], None)
