"""
Shared fixtures for vector index tests.
"""

import pytest


@pytest.fixture
def db_path(tmp_path):
    """Path for a fresh SQLite vector database."""
    return str(tmp_path / "vectors.db")


@pytest.fixture
def fake_clock():
    """Millisecond clock that advances one tick per call."""
    state = {"now": 1_000}

    def clock():
        state["now"] += 1
        return state["now"]

    return clock
