"""Pytest configuration shared by the store, flow and API tests."""

from __future__ import annotations

import os

import pytest

# Keep import-time settings away from the developer's real database.
os.environ.setdefault("LEXMORA_DB_PATH", ":memory:")

from lexmora.store import InMemoryWordBackend, SQLiteWordBackend, WordStore  # noqa: E402
from tests.helpers import FakeClock  # noqa: E402


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sqlite"])
def backend(request: pytest.FixtureRequest, tmp_path):
    if request.param == "memory":
        return InMemoryWordBackend()
    return SQLiteWordBackend(str(tmp_path / "words.sqlite3"))


@pytest.fixture()
def make_store(backend, clock):
    """Return a factory so each test opens/closes the store inside its own event loop."""

    def _make() -> WordStore:
        return WordStore(backend, clock=clock)

    return _make
