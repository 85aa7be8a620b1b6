"""Configuration for the optimizer webhook and the entry store.

This module is shared across components to keep env var semantics consistent.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TIMEOUT_MS = 20000
DEFAULT_MAX_TEXT_LENGTH = 5000
DEFAULT_DB_PATH = Path(__file__).resolve().parents[2] / ".data" / "care_docs.db"


def _positive_int(raw_value: str | None, default: int) -> int:
    try:
        value = int(raw_value) if raw_value else default
    except ValueError:
        value = default
    if value <= 0:
        value = default
    return value


@dataclass(frozen=True)
class AppConfig:
    """Runtime configuration passed to the optimizer client and the store.

    Attributes:
        endpoint_url: Optimization webhook URL.
        auth_token: Bearer token sent to the webhook.
        timeout_ms: Wall-clock budget for one optimization call.
        max_text_length: Advisory maximum for documentation text.
        database_url: SQLAlchemy URL of the entry table store.
    """

    endpoint_url: str = ""
    auth_token: str = ""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH
    database_url: str = ""

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        database_url = (
            os.getenv("DATABASE_URL")
            or os.getenv("CARE_DOCS_DB_URL")
            or f"sqlite:///{DEFAULT_DB_PATH}"
        )
        return cls(
            endpoint_url=os.getenv("OPTIMIZER_WEBHOOK_URL", "").strip(),
            auth_token=os.getenv("OPTIMIZER_API_TOKEN", ""),
            timeout_ms=_positive_int(
                os.getenv("OPTIMIZER_TIMEOUT_MS"), DEFAULT_TIMEOUT_MS
            ),
            max_text_length=_positive_int(
                os.getenv("MAX_TEXT_LENGTH"), DEFAULT_MAX_TEXT_LENGTH
            ),
            database_url=database_url,
        )

    @property
    def uses_default_database(self) -> bool:
        return self.database_url == f"sqlite:///{DEFAULT_DB_PATH}"
