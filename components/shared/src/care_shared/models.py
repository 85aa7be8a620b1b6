"""Shared data models for the optimizer client and the API service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class EntryMode(str, Enum):
    """How the documentation text was captured."""

    manual = "manual"
    dictation = "dictation"


class OptimizationLevel(str, Enum):
    """Optimization intensity forwarded opaquely to the optimizer."""

    standard = "standard"
    extended = "extended"
    maximum = "maximum"


class EntryStatus(str, Enum):
    """Persistence status of a stored entry."""

    draft = "draft"
    final = "final"


@dataclass
class DocumentationEntry:
    """Caregiver input assembled for one optimization request.

    Args:
        patient_name: Resident/patient name (trimmed, non-empty).
        mode: Capture mode (manual or dictation).
        original_text: Documentation text as entered (trimmed).
        optimization_level: Requested optimization tier.

    Examples:
        >>> DocumentationEntry(
        ...     patient_name="Meier",
        ...     mode=EntryMode.manual,
        ...     original_text="Hat heute gut gegessen und war mobil.",
        ...     optimization_level=OptimizationLevel.standard,
        ... ).to_payload()["patientName"]
        'Meier'
    """

    patient_name: str
    mode: EntryMode
    original_text: str
    optimization_level: OptimizationLevel

    def to_payload(self) -> dict[str, str]:
        """Serialize to the webhook request body."""
        return {
            "patientName": self.patient_name,
            "mode": self.mode.value,
            "originalText": self.original_text,
            "optimizationLevel": self.optimization_level.value,
        }


@dataclass
class ValueEstimate:
    """Assessed value before and after optimization (display only).

    Args:
        value_before: Amount before optimization.
        value_after: Amount after optimization.
    """

    value_before: float
    value_after: float

    @property
    def increase(self) -> float:
        """Difference shown to the caregiver as the gained value."""
        return self.value_after - self.value_before


@dataclass
class Mapping:
    """Category assignment returned by the optimizer."""

    key: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "value": self.value}


@dataclass
class OptimizationResult:
    """Optimizer output owned by an editing session until it is saved.

    Args:
        original_text: Echo of the submitted text.
        optimized_text: Optimized text; editable while the entry is a draft.
        value_estimate: Before/after value amounts.
        mappings: Category assignments in display order.

    Notes:
        Numeric ranges are not validated; the optimizer's values are kept as
        received.
    """

    original_text: str
    optimized_text: str
    value_estimate: ValueEstimate
    mappings: List[Mapping] = field(default_factory=list)

    @property
    def value_increase(self) -> float:
        return self.value_estimate.increase

    def mappings_as_dicts(self) -> list[dict[str, str]]:
        return [mapping.to_dict() for mapping in self.mappings]


def build_entry(
    *,
    patient_name: str = "Meier",
    mode: EntryMode = EntryMode.manual,
    original_text: str = "Hat heute gut gegessen und war mobil.",
    optimization_level: OptimizationLevel = OptimizationLevel.standard,
) -> DocumentationEntry:
    """Create a DocumentationEntry instance with defaults for tests and examples."""
    return DocumentationEntry(
        patient_name=patient_name,
        mode=mode,
        original_text=original_text,
        optimization_level=optimization_level,
    )


def build_result(
    *,
    original_text: str = "Hat heute gut gegessen und war mobil.",
    optimized_text: str = "Patient zeigte gute Nahrungsaufnahme und Mobilität.",
    value_before: float = 10,
    value_after: float = 25,
    mappings: List[Mapping] | None = None,
) -> OptimizationResult:
    """Create an OptimizationResult instance with defaults for tests and examples."""
    return OptimizationResult(
        original_text=original_text,
        optimized_text=optimized_text,
        value_estimate=ValueEstimate(value_before=value_before, value_after=value_after),
        mappings=mappings if mappings is not None else [Mapping(key="Mobilität", value="gut")],
    )
