from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from care_docs_api.dependencies import get_optimizer, get_registry
from care_docs_api.main import app
from care_docs_api.sessions import SessionRegistry
from care_docs_api.storage import EntryStore, get_engine, reset_storage
from lifecycle_fakes import FakeOptimizer, FakeStore


@pytest.fixture(autouse=True)
def allow_storage_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOW_STORAGE_RESET", "1")


@pytest.fixture(autouse=True)
def database_url(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> str:
    url = f"sqlite:///{tmp_path / 'care_docs.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("MAX_TEXT_LENGTH", "5000")
    return url


@pytest.fixture()
def store(database_url: str) -> EntryStore:
    reset_storage(database_url)
    return EntryStore(get_engine(database_url))


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def fake_optimizer() -> FakeOptimizer:
    return FakeOptimizer()


@pytest.fixture()
def client(store: EntryStore, fake_optimizer: FakeOptimizer) -> Iterator[TestClient]:
    registry = SessionRegistry()
    app.dependency_overrides[get_optimizer] = lambda: fake_optimizer
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()
