"""Entry table store for the API service.

Every operation returns the resulting record or an absence signal (``None``
or an empty list). Not-found and backend failures look the same to callers;
the cause is only visible in the logs.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from sqlalchemy import JSON, Column
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from care_shared.config import AppConfig
from care_shared.models import DocumentationEntry, EntryStatus, OptimizationResult

logger = logging.getLogger(__name__)

TABLE_NAME = "documentation_entries"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StoredEntry(SQLModel, table=True):
    """Documentation entry persisted in the remote table."""

    __tablename__ = TABLE_NAME  # type: ignore[assignment]

    id: str = Field(primary_key=True)
    patient_name: str
    mode: str
    original_text: str
    optimized_text: str
    optimization_level: str
    value_before: float
    value_after: float
    mappings: list[dict[str, str]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    # draft, final
    status: str = Field(default=EntryStatus.draft.value, index=True)
    created_at: datetime = Field(default_factory=_utcnow, index=True)
    updated_at: datetime = Field(default_factory=_utcnow)
    finalized_at: datetime | None = None

    @property
    def is_final(self) -> bool:
        return self.status == EntryStatus.final.value


def _sqlite_path(database_url: str) -> Path | None:
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        return None
    raw_path = database_url[len(prefix):]
    if not raw_path or raw_path == ":memory:":
        return None
    return Path(raw_path)


@lru_cache
def _engine_for(database_url: str) -> Engine:
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        db_path = _sqlite_path(database_url)
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def get_engine(database_url: str | None = None) -> Engine:
    """Create or return the cached engine for ``database_url``.

    Falls back to the URL from the environment when none is given.
    """
    return _engine_for(database_url or AppConfig.from_env().database_url)


def init_db(engine: Engine | None = None) -> None:
    """Initialize the entries table."""
    _ = StoredEntry
    try:
        SQLModel.metadata.create_all(engine or get_engine())
    except OperationalError:
        # Table may already exist (parallel workers or tests)
        pass


def reset_storage(database_url: str | None = None) -> None:
    """Clear all stored entries (used for tests and demos)."""
    if os.getenv("ALLOW_STORAGE_RESET") != "1":
        raise RuntimeError(
            "reset_storage() requires ALLOW_STORAGE_RESET=1 environment variable. "
            "This function destroys all data and should only be used in tests."
        )
    _ = StoredEntry
    _engine_for.cache_clear()
    engine = get_engine(database_url)
    try:
        SQLModel.metadata.drop_all(engine)
    except OperationalError:
        pass
    init_db(engine)


def _generate_id() -> str:
    """Generate an opaque entry identifier.

    Examples:
        >>> _generate_id()  # doctest: +SKIP
        'entry-550e8400e29b41d4a716446655440000'
    """
    return f"entry-{uuid.uuid4().hex}"


class EntryStore:
    """Repository wrapper around SQLModel sessions for documentation entries."""

    def __init__(self, engine: Engine) -> None:
        """Initialize the store with a database engine."""
        self._engine = engine

    @classmethod
    def from_config(cls, config: AppConfig) -> "EntryStore":
        return cls(get_engine(config.database_url))

    def create(
        self, entry: DocumentationEntry, result: OptimizationResult
    ) -> StoredEntry | None:
        """Persist a new draft from the submitted entry and optimizer result."""
        try:
            with Session(self._engine) as session:
                now = _utcnow()
                record = StoredEntry(
                    id=_generate_id(),
                    patient_name=entry.patient_name,
                    mode=entry.mode.value,
                    original_text=entry.original_text,
                    optimized_text=result.optimized_text,
                    optimization_level=entry.optimization_level.value,
                    value_before=result.value_estimate.value_before,
                    value_after=result.value_estimate.value_after,
                    mappings=result.mappings_as_dicts(),
                    status=EntryStatus.draft.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except SQLAlchemyError as exc:
            logger.error("Error creating entry: %s", exc)
            return None

    def update(self, entry_id: str, optimized_text: str) -> StoredEntry | None:
        """Replace the optimized text of a draft entry."""
        try:
            with Session(self._engine) as session:
                record = session.get(StoredEntry, entry_id)
                if record is None:
                    logger.error("Error updating entry: %s not found", entry_id)
                    return None
                if record.is_final:
                    logger.warning("Refusing to update finalized entry %s", entry_id)
                    return None
                record.optimized_text = optimized_text
                record.updated_at = self._next_timestamp(record)
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except SQLAlchemyError as exc:
            logger.error("Error updating entry: %s", exc)
            return None

    def finalize(self, entry_id: str, final_text: str) -> StoredEntry | None:
        """Freeze a draft entry with its final text."""
        try:
            with Session(self._engine) as session:
                record = session.get(StoredEntry, entry_id)
                if record is None:
                    logger.error("Error finalizing entry: %s not found", entry_id)
                    return None
                if record.is_final:
                    logger.warning("Entry %s is already finalized", entry_id)
                    return None
                now = self._next_timestamp(record)
                record.optimized_text = final_text
                record.status = EntryStatus.final.value
                record.finalized_at = now
                record.updated_at = now
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except SQLAlchemyError as exc:
            logger.error("Error finalizing entry: %s", exc)
            return None

    def list_entries(self) -> list[StoredEntry]:
        """List all entries, newest first."""
        try:
            with Session(self._engine) as session:
                statement = select(StoredEntry).order_by(
                    cast(Any, StoredEntry.created_at).desc()
                )
                return list(session.exec(statement))
        except SQLAlchemyError as exc:
            logger.error("Error fetching entries: %s", exc)
            return []

    def get_by_id(self, entry_id: str) -> StoredEntry | None:
        """Fetch an entry by ID."""
        try:
            with Session(self._engine) as session:
                return session.get(StoredEntry, entry_id)
        except SQLAlchemyError as exc:
            logger.error("Error fetching entry: %s", exc)
            return None

    @staticmethod
    def _next_timestamp(record: StoredEntry) -> datetime:
        return max(_utcnow(), _as_utc(record.updated_at))
