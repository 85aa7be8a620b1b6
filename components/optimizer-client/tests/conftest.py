from __future__ import annotations

from typing import Any

import pytest

from care_shared.config import AppConfig

WEBHOOK_URL = "https://hooks.example.test/optimize"


@pytest.fixture()
def optimizer_config() -> AppConfig:
    return AppConfig(
        endpoint_url=WEBHOOK_URL,
        auth_token="test-token",
        timeout_ms=2000,
    )


@pytest.fixture()
def optimizer_body() -> dict[str, Any]:
    return {
        "originalText": "Hat heute gut gegessen und war mobil.",
        "optimizedText": "Patient zeigte gute Nahrungsaufnahme und Mobilität.",
        "valueEstimate": {"value_before": 10, "value_after": 25},
        "mappings": [
            {"key": "Mobilität", "value": "gut"},
            {"key": "Ernährung", "value": "selbstständig"},
        ],
    }
