from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator

import pytest
from sqlalchemy import inspect
from sqlmodel import SQLModel

import care_docs_api.storage as storage
from care_docs_api.storage import TABLE_NAME, EntryStore, get_engine, reset_storage
from care_shared.models import EntryMode, OptimizationLevel, build_entry, build_result


def _clock(*values: datetime) -> Iterator[datetime]:
    return iter(values)


def _at(hour: int) -> datetime:
    return datetime(2026, 1, 15, hour, 0, tzinfo=timezone.utc)


class TestSchema:
    def test_table_name(self, store: EntryStore, database_url: str) -> None:
        assert TABLE_NAME == "documentation_entries"
        assert inspect(get_engine(database_url)).has_table("documentation_entries")

    def test_reset_requires_opt_in(
        self, monkeypatch: pytest.MonkeyPatch, database_url: str
    ) -> None:
        monkeypatch.delenv("ALLOW_STORAGE_RESET")

        with pytest.raises(RuntimeError, match="ALLOW_STORAGE_RESET"):
            reset_storage(database_url)


class TestCreate:
    def test_create_inserts_draft(self, store: EntryStore) -> None:
        entry = build_entry(
            mode=EntryMode.dictation, optimization_level=OptimizationLevel.extended
        )

        record = store.create(entry, build_result())

        assert record is not None
        assert record.id.startswith("entry-")
        assert record.status == "draft"
        assert record.patient_name == "Meier"
        assert record.mode == "dictation"
        assert record.optimization_level == "extended"
        assert record.original_text == "Hat heute gut gegessen und war mobil."
        assert record.optimized_text == "Patient zeigte gute Nahrungsaufnahme und Mobilität."
        assert record.value_before == 10
        assert record.value_after == 25
        assert record.mappings == [{"key": "Mobilität", "value": "gut"}]
        assert record.created_at == record.updated_at
        assert record.finalized_at is None

    def test_ids_are_unique(self, store: EntryStore) -> None:
        first = store.create(build_entry(), build_result())
        second = store.create(build_entry(), build_result())

        assert first is not None and second is not None
        assert first.id != second.id


class TestUpdate:
    def test_update_replaces_text(self, store: EntryStore) -> None:
        record = store.create(build_entry(), build_result())
        assert record is not None

        updated = store.update(record.id, "Korrigierter Text")

        assert updated is not None
        assert updated.optimized_text == "Korrigierter Text"
        assert updated.status == "draft"
        assert updated.updated_at >= record.updated_at
        fetched = store.get_by_id(record.id)
        assert fetched is not None
        assert fetched.optimized_text == "Korrigierter Text"

    def test_updated_at_never_moves_backwards(
        self, store: EntryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = _clock(_at(10), _at(9))
        monkeypatch.setattr(storage, "_utcnow", lambda: next(clock))
        record = store.create(build_entry(), build_result())
        assert record is not None

        updated = store.update(record.id, "Neu")

        assert updated is not None
        assert updated.updated_at.replace(tzinfo=None) == datetime(2026, 1, 15, 10, 0)

    def test_update_missing_entry_returns_none(self, store: EntryStore) -> None:
        assert store.update("entry-missing", "Text") is None


class TestFinalize:
    def test_finalize_freezes_entry(self, store: EntryStore) -> None:
        record = store.create(build_entry(), build_result())
        assert record is not None

        final = store.finalize(record.id, "Endgültiger Text")

        assert final is not None
        assert final.status == "final"
        assert final.is_final
        assert final.optimized_text == "Endgültiger Text"
        assert final.finalized_at is not None
        assert final.finalized_at == final.updated_at

    def test_final_entry_rejects_update(self, store: EntryStore) -> None:
        record = store.create(build_entry(), build_result())
        assert record is not None
        store.finalize(record.id, "Endgültig")

        assert store.update(record.id, "Nachträglich") is None
        fetched = store.get_by_id(record.id)
        assert fetched is not None
        assert fetched.optimized_text == "Endgültig"

    def test_final_entry_rejects_second_finalize(self, store: EntryStore) -> None:
        record = store.create(build_entry(), build_result())
        assert record is not None
        store.finalize(record.id, "Endgültig")

        assert store.finalize(record.id, "Nochmals") is None

    def test_finalize_missing_entry_returns_none(self, store: EntryStore) -> None:
        assert store.finalize("entry-missing", "Text") is None


class TestQueries:
    def test_list_is_newest_first(
        self, store: EntryStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = _clock(_at(8), _at(9), _at(7))
        monkeypatch.setattr(storage, "_utcnow", lambda: next(clock))
        names = ["Meier", "Huber", "Keller"]
        for name in names:
            store.create(build_entry(patient_name=name), build_result())

        entries = store.list_entries()

        assert [e.patient_name for e in entries] == ["Huber", "Meier", "Keller"]

    def test_list_empty(self, store: EntryStore) -> None:
        assert store.list_entries() == []

    def test_get_missing_returns_none(self, store: EntryStore) -> None:
        assert store.get_by_id("entry-missing") is None


class TestBackendFailure:
    def test_operations_return_absence_without_raising(
        self, store: EntryStore, database_url: str
    ) -> None:
        record = store.create(build_entry(), build_result())
        assert record is not None
        SQLModel.metadata.drop_all(get_engine(database_url))

        assert store.create(build_entry(), build_result()) is None
        assert store.update(record.id, "Text") is None
        assert store.finalize(record.id, "Text") is None
        assert store.get_by_id(record.id) is None
        assert store.list_entries() == []
