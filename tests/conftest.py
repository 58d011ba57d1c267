"""Pytest fixtures for the verification backend."""
from __future__ import annotations

import os
import tempfile

import pytest

# Must be set before app.db creates the engine
_DB_DIR = tempfile.mkdtemp(prefix="kyc_tests_")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/test.db")
os.environ.setdefault("TESTING", "1")

from app.services import metrics  # noqa: E402


@pytest.fixture(autouse=True)
def reset_metrics():
    """Each test starts with empty in-memory counters."""
    metrics.reset()
    yield
    metrics.reset()
