from __future__ import annotations

import pytest

from care_shared import models


@pytest.fixture()
def sample_entry() -> models.DocumentationEntry:
    return models.build_entry()


@pytest.fixture()
def sample_result() -> models.OptimizationResult:
    return models.build_result()
