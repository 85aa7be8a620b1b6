"""Pre-flight checks on caregiver input.

Both checks work on trimmed input and never touch the network. Empty or
trivial text is rejected; overly long text is only flagged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from care_shared.config import DEFAULT_MAX_TEXT_LENGTH

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 8

EMPTY_NAME_MESSAGE = "Bitte gib einen Bewohnernamen ein."
TOO_SHORT_MESSAGE = "Bitte beschreibe kurz, was du für den Bewohner gemacht hast."


class ValidationErrorKind(str, Enum):
    empty_name = "EmptyName"
    too_short = "TooShort"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single validation check.

    Args:
        error: Failure kind, or None when the input passes.
        message: User-facing message for the failure.
        exceeds_max_length: Advisory flag for over-long text (input still passes).
    """

    error: ValidationErrorKind | None = None
    message: str | None = None
    exceeds_max_length: bool = False

    @property
    def is_valid(self) -> bool:
        return self.error is None


def validate_patient_name(name: str) -> ValidationResult:
    if not name.strip():
        return ValidationResult(
            error=ValidationErrorKind.empty_name, message=EMPTY_NAME_MESSAGE
        )
    return ValidationResult()


def validate_documentation_text(
    text: str, max_length: int = DEFAULT_MAX_TEXT_LENGTH
) -> ValidationResult:
    """Reject empty or trivial text; flag text above ``max_length``.

    Args:
        text: Raw documentation text.
        max_length: Configured advisory maximum.

    Returns:
        A passing result (possibly flagged) or a ``TooShort`` failure.
    """
    trimmed = text.strip()
    if len(trimmed) < MIN_TEXT_LENGTH:
        return ValidationResult(
            error=ValidationErrorKind.too_short, message=TOO_SHORT_MESSAGE
        )
    if len(trimmed) > max_length:
        logger.warning(
            "Text exceeds maximum length of %d characters (%d)",
            max_length,
            len(trimmed),
        )
        return ValidationResult(exceeds_max_length=True)
    return ValidationResult()
