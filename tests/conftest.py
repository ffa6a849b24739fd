"""Pytest configuration and shared fixtures."""

import os
from typing import Any
from unittest.mock import MagicMock

import pytest

from tests.utils import make_snapshot


@pytest.fixture(autouse=True)
def set_test_env() -> None:
    """Set test environment variables."""
    os.environ.setdefault("GCP_PROJECT_ID", "test-project")
    os.environ.setdefault("FIRESTORE_EMULATOR_HOST", "localhost:8086")


@pytest.fixture
def mock_firestore_db() -> MagicMock:
    """Mock Firestore driver client."""
    mock_db = MagicMock()
    mock_doc = MagicMock()
    mock_doc.get.return_value = make_snapshot("doc_id", {"field": "value"})
    mock_db.collection.return_value.document.return_value = mock_doc
    return mock_db


@pytest.fixture
def sample_user() -> dict[str, Any]:
    """Sample user data for testing."""
    return {
        "id": "user_123",
        "name": "John Doe",
        "age": 30,
        "tags": ["admin"],
    }
