"""FastAPI dependencies for shared resources."""

from __future__ import annotations

from fastapi import HTTPException

from care_shared.config import AppConfig
from optimizer_client.client import OptimizerClient

from .sessions import SessionRegistry
from .storage import EntryStore

_optimizer: OptimizerClient | None = None
_registry = SessionRegistry()


def get_config() -> AppConfig:
    """Get the current application configuration."""
    return AppConfig.from_env()


def get_store() -> EntryStore:
    """Provide an entry store for request handlers."""
    return EntryStore.from_config(get_config())


def get_optimizer() -> OptimizerClient:
    """Provide the shared optimizer client, creating it on first use."""
    global _optimizer
    if _optimizer is None:
        config = get_config()
        if not config.endpoint_url:
            raise HTTPException(status_code=503, detail="Optimizer not configured")
        _optimizer = OptimizerClient(config)
    return _optimizer


def get_registry() -> SessionRegistry:
    return _registry


async def close_optimizer() -> None:
    global _optimizer
    if _optimizer is not None:
        await _optimizer.aclose()
        _optimizer = None
