"""API service for caregiver documentation entries."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, NoReturn

from dotenv import find_dotenv, load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from care_shared.models import EntryMode, OptimizationLevel
from optimizer_client.client import OptimizerClient

from care_docs_api.dependencies import (
    close_optimizer,
    get_config,
    get_optimizer,
    get_registry,
    get_store,
)
from care_docs_api.export import export_filename, format_de_ch, preview, render_export
from care_docs_api.lifecycle import (
    EntryLifecycle,
    LifecycleError,
    LifecycleErrorKind,
    LifecycleState,
)
from care_docs_api.sessions import SessionRegistry
from care_docs_api.storage import EntryStore, StoredEntry, get_engine, init_db

# Load .env from repo root (find_dotenv walks up to find it)
load_dotenv(find_dotenv())

log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_str, logging.INFO)
if not isinstance(log_level, int):
    log_level = logging.INFO

# Override any existing configuration (including uvicorn's)
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
)

logging.getLogger("care_docs_api").setLevel(log_level)
logging.getLogger("care_shared").setLevel(log_level)
logging.getLogger("optimizer_client").setLevel(log_level)
logging.getLogger("uvicorn").setLevel(log_level)
logging.getLogger("uvicorn.access").setLevel(log_level)
logging.getLogger("uvicorn.error").setLevel(log_level)

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[LifecycleErrorKind, int] = {
    LifecycleErrorKind.empty_name: 422,
    LifecycleErrorKind.too_short: 422,
    LifecycleErrorKind.busy: 409,
    LifecycleErrorKind.already_finalized: 409,
    LifecycleErrorKind.no_entry: 409,
    LifecycleErrorKind.timeout: 504,
    LifecycleErrorKind.transport: 502,
    LifecycleErrorKind.remote: 502,
    LifecycleErrorKind.unexpected: 502,
    LifecycleErrorKind.store: 503,
}


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncIterator[None]:
    """Initialize and teardown app state for the lifespan scope."""
    config = get_config()
    if config.uses_default_database:
        logger.info("Using local SQLite store: %s", config.database_url)
    init_db(get_engine(config.database_url))
    yield
    await close_optimizer()
    logger.info("Shutdown complete")


app = FastAPI(title="Care Docs API", version="0.1.0", lifespan=lifespan)

# Defaults support local Vite dev servers. Override with comma-separated origins in env.
_cors_origins_env = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
allow_origins = (
    [o.strip() for o in _cors_origins_env.split(",") if o.strip()]
    if _cors_origins_env
    else ["http://localhost:5173", "http://localhost:3000"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class OptimizeRequest(BaseModel):
    """Form input submitted for optimization."""

    model_config = ConfigDict(populate_by_name=True)

    patient_name: str = Field(alias="patientName")
    mode: EntryMode = EntryMode.manual
    original_text: str = Field(alias="originalText")
    optimization_level: OptimizationLevel = Field(
        default=OptimizationLevel.standard, alias="optimizationLevel"
    )


class SaveTextRequest(BaseModel):
    """Edited optimized text."""

    model_config = ConfigDict(populate_by_name=True)

    optimized_text: str = Field(alias="optimizedText")


class FinalizeRequest(BaseModel):
    """Optional last edit applied when finalizing."""

    model_config = ConfigDict(populate_by_name=True)

    optimized_text: str | None = Field(default=None, alias="optimizedText")


class MappingResponse(BaseModel):
    key: str
    value: str


class ResultResponse(BaseModel):
    """Optimizer result as held by the session."""

    original_text: str
    optimized_text: str
    value_before: float
    value_after: float
    value_increase: float
    mappings: List[MappingResponse]


class ErrorResponse(BaseModel):
    kind: str
    message: str
    status_code: int | None = None


class SessionResponse(BaseModel):
    """Snapshot of an editing session."""

    session_id: str
    state: LifecycleState
    is_loading: bool
    entry_id: str | None
    result: ResultResponse | None
    text_exceeds_max_length: bool
    export_ready: bool
    error: ErrorResponse | None


class EntryResponse(BaseModel):
    """Stored entry detail."""

    id: str
    patient_name: str
    mode: str
    original_text: str
    optimized_text: str
    optimization_level: str
    value_before: float
    value_after: float
    mappings: List[MappingResponse]
    status: str
    created_at: datetime
    updated_at: datetime
    finalized_at: datetime | None


class EntryListItem(BaseModel):
    """History row."""

    id: str
    created_at: datetime
    created_at_display: str
    patient_name: str
    preview: str
    status: str


class EntryListResponse(BaseModel):
    entries: List[EntryListItem]
    total: int


def _session_response(session_id: str, lifecycle: EntryLifecycle) -> SessionResponse:
    result = lifecycle.result
    error = lifecycle.error
    return SessionResponse(
        session_id=session_id,
        state=lifecycle.state,
        is_loading=lifecycle.is_loading,
        entry_id=lifecycle.entry_id,
        result=(
            ResultResponse(
                original_text=result.original_text,
                optimized_text=result.optimized_text,
                value_before=result.value_estimate.value_before,
                value_after=result.value_estimate.value_after,
                value_increase=result.value_increase,
                mappings=[MappingResponse(key=m.key, value=m.value) for m in result.mappings],
            )
            if result is not None
            else None
        ),
        text_exceeds_max_length=lifecycle.text_exceeds_max_length,
        export_ready=lifecycle.export_ready,
        error=(
            ErrorResponse(
                kind=error.kind.value,
                message=error.message,
                status_code=error.status_code,
            )
            if error is not None
            else None
        ),
    )


def _entry_response(entry: StoredEntry) -> EntryResponse:
    return EntryResponse(
        id=entry.id,
        patient_name=entry.patient_name,
        mode=entry.mode,
        original_text=entry.original_text,
        optimized_text=entry.optimized_text,
        optimization_level=entry.optimization_level,
        value_before=entry.value_before,
        value_after=entry.value_after,
        mappings=[MappingResponse(**m) for m in entry.mappings],
        status=entry.status,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
        finalized_at=entry.finalized_at,
    )


def _raise_for(error: LifecycleError) -> NoReturn:
    raise HTTPException(status_code=_ERROR_STATUS[error.kind], detail=error.message)


def _get_lifecycle(registry: SessionRegistry, session_id: str) -> EntryLifecycle:
    try:
        return registry.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/v1/sessions")
def create_session(
    optimizer: OptimizerClient = Depends(get_optimizer),
    store: EntryStore = Depends(get_store),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Open a new editing session in the idle state."""
    lifecycle = EntryLifecycle(
        optimizer, store, max_text_length=get_config().max_text_length
    )
    session_id = registry.create(lifecycle)
    logger.info("Opened session %s", session_id)
    return _session_response(session_id, lifecycle)


@app.get("/v1/sessions/{session_id}")
async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Return the current state of an editing session."""
    return _session_response(session_id, _get_lifecycle(registry, session_id))


@app.post("/v1/sessions/{session_id}/optimize")
async def optimize_entry(
    session_id: str,
    payload: OptimizeRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Validate the form, call the optimizer and persist a draft.

    A failed persistence after a successful optimization is reported in the
    session's ``error`` while the result is still returned.
    """
    lifecycle = _get_lifecycle(registry, session_id)
    error = await lifecycle.submit(
        payload.patient_name,
        payload.mode,
        payload.original_text,
        payload.optimization_level,
    )
    if error is not None and error.kind is not LifecycleErrorKind.store:
        _raise_for(error)
    return _session_response(session_id, lifecycle)


@app.put("/v1/sessions/{session_id}/text")
async def save_text(
    session_id: str,
    payload: SaveTextRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Save an edit of the optimized text to the draft."""
    lifecycle = _get_lifecycle(registry, session_id)
    error = await lifecycle.save(payload.optimized_text)
    if error is not None:
        _raise_for(error)
    return _session_response(session_id, lifecycle)


@app.post("/v1/sessions/{session_id}/finalize")
async def finalize_entry(
    session_id: str,
    payload: FinalizeRequest | None = None,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Finalize the session's entry; it is then ready for export."""
    lifecycle = _get_lifecycle(registry, session_id)
    error = await lifecycle.finalize(payload.optimized_text if payload else None)
    if error is not None:
        _raise_for(error)
    return _session_response(session_id, lifecycle)


@app.post("/v1/sessions/{session_id}/reset")
async def reset_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Go back to the input form, discarding the in-memory result."""
    lifecycle = _get_lifecycle(registry, session_id)
    error = lifecycle.back_to_input()
    if error is not None:
        _raise_for(error)
    return _session_response(session_id, lifecycle)


@app.delete("/v1/sessions/{session_id}", status_code=204)
def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    if not registry.discard(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@app.get("/v1/entries")
def list_entries(store: EntryStore = Depends(get_store)) -> EntryListResponse:
    """List stored entries, newest first."""
    entries = store.list_entries()
    return EntryListResponse(
        entries=[
            EntryListItem(
                id=entry.id,
                created_at=entry.created_at,
                created_at_display=format_de_ch(entry.created_at),
                patient_name=entry.patient_name,
                preview=preview(entry.optimized_text),
                status=entry.status,
            )
            for entry in entries
        ],
        total=len(entries),
    )


@app.get("/v1/entries/{entry_id}")
def get_entry(entry_id: str, store: EntryStore = Depends(get_store)) -> EntryResponse:
    entry = store.get_by_id(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    return _entry_response(entry)


@app.get("/v1/entries/{entry_id}/export")
def export_entry(entry_id: str, store: EntryStore = Depends(get_store)) -> Response:
    """Download a finalized entry as a plain-text document."""
    entry = store.get_by_id(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    if not entry.is_final:
        raise HTTPException(status_code=409, detail="Entry is not finalized")
    return Response(
        content=render_export(entry),
        media_type="text/plain; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(entry)}"'
        },
    )
