"""
Pytest configuration for Calendar Vibes tests

Provides an isolated SQLite cache per test, in-memory collaborators for the
engine and a small event factory. No test talks to Gemini.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

import pytest

from calvibes.analysis.models import MetaCategory, RawEvent

# Monday
BASE_DAY = datetime(2024, 3, 4, tzinfo=timezone.utc)


class StubClassifier:
    """Returns a fixed mapping (or raises) and records every batch it saw."""

    def __init__(self, mapping: dict[str, str] | None = None, error: Exception | None = None):
        self.mapping = mapping or {}
        self.error = error
        self.calls: list[list[str]] = []

    def classify(self, display_names: Sequence[str]) -> dict[str, str]:
        self.calls.append(list(display_names))
        if self.error is not None:
            raise self.error
        return {name: label for name, label in self.mapping.items() if name in display_names}


class InMemoryCache:
    """Dict-backed CategoryCache with failure switches."""

    def __init__(self, entries: dict[str, dict[str, MetaCategory]] | None = None):
        self.entries = entries or {}
        self.writes: list[tuple[str, list]] = []
        self.reads = 0
        self.fail_read = False
        self.fail_write = False

    def read_all(self, user_id: str) -> dict[str, MetaCategory]:
        self.reads += 1
        if self.fail_read:
            raise RuntimeError("cache offline")
        return dict(self.entries.get(user_id, {}))

    def upsert_many(self, user_id: str, entries: Iterable) -> int:
        batch = list(entries)
        if self.fail_write:
            raise RuntimeError("cache read-only")
        self.writes.append((user_id, batch))
        owned = self.entries.setdefault(user_id, {})
        for entry in batch:
            owned[entry.canonical_key] = entry.meta
        return len(batch)


@pytest.fixture(autouse=True)
def reset_telemetry():
    """Counters are process-global; start every test from zero."""
    from calvibes.observability import telemetry

    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture(autouse=True)
def reset_llm_budget():
    from calvibes.infrastructure.llm_budget import reset_budgets

    reset_budgets()
    yield
    reset_budgets()


@pytest.fixture(autouse=True)
def llm_disabled(monkeypatch):
    """Never reach Gemini from tests unless a test opts back in."""
    monkeypatch.setenv("CALVIBES_USE_LLM", "false")


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh category_cache database in tmp_path."""
    from calvibes.infrastructure import database

    db_path = tmp_path / "calvibes.db"
    monkeypatch.setenv("CALVIBES_DB_PATH", str(db_path))
    database.reset_pool()
    database.init_database()
    yield db_path
    database.reset_pool()


@pytest.fixture
def make_event():
    """make_event("Gym", day=0, hour=9, minute=30, minutes=45) on the week of BASE_DAY."""

    def _make(
        title: str,
        day: int = 0,
        hour: int = 9,
        minute: int = 0,
        minutes: float = 60,
        tz: timezone = timezone.utc,
    ) -> RawEvent:
        start = (BASE_DAY + timedelta(days=day)).replace(hour=hour, minute=minute, tzinfo=tz)
        return RawEvent(title=title, start=start, end=start + timedelta(minutes=minutes))

    return _make


@pytest.fixture
def memory_cache():
    return InMemoryCache()


@pytest.fixture
def stub_classifier():
    """Factory: stub_classifier({"Gym": "RECOVERY"}) or stub_classifier(error=...)."""
    return StubClassifier
