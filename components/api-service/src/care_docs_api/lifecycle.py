"""Editing-session state machine for one documentation entry.

States move idle -> submitting -> reviewing -> finalized. A failed optimizer
call returns the session to idle; a failed save or finalize leaves it in
reviewing with the in-memory edits intact. Finalized is terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol as TypingProtocol, cast

from anyio import to_thread

from care_shared.config import DEFAULT_MAX_TEXT_LENGTH
from care_shared.models import (
    DocumentationEntry,
    EntryMode,
    OptimizationLevel,
    OptimizationResult,
)
from care_shared.validation import (
    ValidationErrorKind,
    validate_documentation_text,
    validate_patient_name,
)
from optimizer_client.client import (
    CallRemoteError,
    CallResult,
    CallSuccess,
    CallTimeoutError,
    CallTransportError,
    CallUnexpectedError,
)

from care_docs_api.storage import StoredEntry

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Der Dienst braucht länger als erwartet. Bitte erneut versuchen."
UNEXPECTED_MESSAGE = "Ein unerwarteter Fehler ist aufgetreten."
NO_ENTRY_MESSAGE = "Kein Eintrag vorhanden."
CREATE_FAILED_MESSAGE = "Fehler beim Speichern des Eintrags."
UPDATE_FAILED_MESSAGE = "Fehler beim Speichern der Änderungen."
FINALIZE_FAILED_MESSAGE = "Fehler beim Finalisieren des Eintrags."
BUSY_MESSAGE = "Analyse läuft bereits."
ALREADY_FINALIZED_MESSAGE = "Der Eintrag ist bereits finalisiert."


class Optimizer(TypingProtocol):
    """Anything that turns an entry into an optimizer call result."""

    async def optimize(self, entry: DocumentationEntry) -> CallResult: ...


class EntryRepository(TypingProtocol):
    """Store operations the lifecycle depends on."""

    def create(
        self, entry: DocumentationEntry, result: OptimizationResult
    ) -> StoredEntry | None: ...

    def update(self, entry_id: str, optimized_text: str) -> StoredEntry | None: ...

    def finalize(self, entry_id: str, final_text: str) -> StoredEntry | None: ...


class LifecycleState(str, Enum):
    idle = "idle"
    submitting = "submitting"
    reviewing = "reviewing"
    finalized = "finalized"


class LifecycleErrorKind(str, Enum):
    empty_name = ValidationErrorKind.empty_name.value
    too_short = ValidationErrorKind.too_short.value
    timeout = "TimeoutError"
    transport = "TransportError"
    remote = "RemoteError"
    unexpected = "UnexpectedError"
    store = "StoreError"
    no_entry = "NoEntryError"
    busy = "Busy"
    already_finalized = "AlreadyFinalized"


@dataclass(frozen=True)
class LifecycleError:
    """Error surfaced to the caregiver.

    Args:
        kind: Error category.
        message: User-facing message.
        status_code: Remote HTTP status for ``RemoteError``.
    """

    kind: LifecycleErrorKind
    message: str
    status_code: int | None = None


def _validation_error(
    kind: ValidationErrorKind, message: str | None
) -> LifecycleError:
    return LifecycleError(LifecycleErrorKind(kind.value), message or "")


def error_for_call_failure(outcome: CallResult) -> LifecycleError:
    """Map a failed optimizer call to the message shown to the caregiver."""
    if isinstance(outcome, CallTimeoutError):
        return LifecycleError(LifecycleErrorKind.timeout, TIMEOUT_MESSAGE)
    if isinstance(outcome, CallRemoteError):
        return LifecycleError(
            LifecycleErrorKind.remote,
            f"API request failed: {outcome.status_text}",
            status_code=outcome.status_code,
        )
    if isinstance(outcome, CallTransportError):
        return LifecycleError(LifecycleErrorKind.transport, UNEXPECTED_MESSAGE)
    if isinstance(outcome, CallUnexpectedError):
        return LifecycleError(LifecycleErrorKind.unexpected, UNEXPECTED_MESSAGE)
    raise TypeError(f"Not a call failure: {outcome!r}")


class EntryLifecycle:
    """Orchestrate validation, the optimizer call and persistence for one entry.

    Args:
        optimizer: Optimizer client (``OptimizerClient`` in production).
        store: Entry store (``EntryStore`` in production).
        max_text_length: Advisory maximum passed to text validation.
    """

    def __init__(
        self,
        optimizer: Optimizer,
        store: EntryRepository,
        *,
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
    ) -> None:
        self._optimizer = optimizer
        self._store = store
        self._max_text_length = max_text_length
        self.state = LifecycleState.idle
        self.entry: DocumentationEntry | None = None
        self.result: OptimizationResult | None = None
        self.entry_id: str | None = None
        self.finalized_entry: StoredEntry | None = None
        self.error: LifecycleError | None = None
        self.text_exceeds_max_length = False
        self.is_loading = False

    @property
    def value_increase(self) -> float | None:
        return self.result.value_increase if self.result is not None else None

    @property
    def export_ready(self) -> bool:
        return self.state is LifecycleState.finalized

    def _fail(self, error: LifecycleError) -> LifecycleError:
        self.error = error
        return error

    async def submit(
        self,
        patient_name: str,
        mode: EntryMode,
        text: str,
        optimization_level: OptimizationLevel,
    ) -> LifecycleError | None:
        """Validate, optimize and persist a new draft.

        Returns:
            None on success, otherwise the surfaced error. A store failure
            after a successful optimization still moves to reviewing.
        """
        if self.is_loading:
            return self._fail(LifecycleError(LifecycleErrorKind.busy, BUSY_MESSAGE))
        if self.state is LifecycleState.finalized:
            return self._fail(
                LifecycleError(
                    LifecycleErrorKind.already_finalized, ALREADY_FINALIZED_MESSAGE
                )
            )
        self.error = None

        name_check = validate_patient_name(patient_name)
        if name_check.error is not None:
            return self._fail(_validation_error(name_check.error, name_check.message))
        text_check = validate_documentation_text(text, self._max_text_length)
        if text_check.error is not None:
            return self._fail(_validation_error(text_check.error, text_check.message))
        self.text_exceeds_max_length = text_check.exceeds_max_length

        entry = DocumentationEntry(
            patient_name=patient_name.strip(),
            mode=mode,
            original_text=text.strip(),
            optimization_level=optimization_level,
        )
        self.state = LifecycleState.submitting
        self.is_loading = True
        record: StoredEntry | None = None
        try:
            outcome = await self._optimizer.optimize(entry)
            if isinstance(outcome, CallSuccess):
                record = await to_thread.run_sync(
                    self._store.create, entry, outcome.value
                )
        finally:
            self.is_loading = False

        if not isinstance(outcome, CallSuccess):
            self.state = LifecycleState.idle
            self.entry = None
            self.result = None
            self.entry_id = None
            return self._fail(error_for_call_failure(outcome))

        # Session fields change only once the create step has returned.
        result: OptimizationResult = outcome.value
        self.entry = entry
        self.result = result
        self.entry_id = record.id if record is not None else None
        self.state = LifecycleState.reviewing
        if record is None:
            logger.warning(
                "Optimization for %s shown but not persisted", entry.patient_name
            )
            return self._fail(
                LifecycleError(LifecycleErrorKind.store, CREATE_FAILED_MESSAGE)
            )
        self.error = None
        logger.info("Created draft entry %s", record.id)
        return None

    def _check_editable(self) -> LifecycleError | None:
        if self.is_loading:
            return self._fail(LifecycleError(LifecycleErrorKind.busy, BUSY_MESSAGE))
        if self.state is LifecycleState.finalized:
            return self._fail(
                LifecycleError(
                    LifecycleErrorKind.already_finalized, ALREADY_FINALIZED_MESSAGE
                )
            )
        if self.state is not LifecycleState.reviewing or self.result is None:
            return self._fail(LifecycleError(LifecycleErrorKind.no_entry, NO_ENTRY_MESSAGE))
        return None

    async def save(self, edited_text: str) -> LifecycleError | None:
        """Keep ``edited_text`` in memory and persist it to the draft.

        The in-memory edit survives a failed update; the stored copy is then
        stale until the next successful save.
        """
        error = self._check_editable()
        if error is not None:
            return error
        result = cast(OptimizationResult, self.result)

        result.optimized_text = edited_text
        if self.entry_id is None:
            return self._fail(LifecycleError(LifecycleErrorKind.no_entry, NO_ENTRY_MESSAGE))

        self.is_loading = True
        try:
            record = await to_thread.run_sync(
                self._store.update, self.entry_id, edited_text
            )
        finally:
            self.is_loading = False
        if record is None:
            return self._fail(
                LifecycleError(LifecycleErrorKind.store, UPDATE_FAILED_MESSAGE)
            )
        self.error = None
        return None

    async def finalize(self, final_text: str | None = None) -> LifecycleError | None:
        """Freeze the entry, optionally with a last edit of the text."""
        error = self._check_editable()
        if error is not None:
            return error
        result = cast(OptimizationResult, self.result)

        if final_text is not None:
            result.optimized_text = final_text
        if self.entry_id is None:
            return self._fail(LifecycleError(LifecycleErrorKind.no_entry, NO_ENTRY_MESSAGE))

        self.is_loading = True
        try:
            record = await to_thread.run_sync(
                self._store.finalize, self.entry_id, result.optimized_text
            )
        finally:
            self.is_loading = False
        if record is None:
            return self._fail(
                LifecycleError(LifecycleErrorKind.store, FINALIZE_FAILED_MESSAGE)
            )
        self.finalized_entry = record
        self.state = LifecycleState.finalized
        self.error = None
        logger.info("Finalized entry %s", record.id)
        return None

    def back_to_input(self) -> LifecycleError | None:
        """Discard the in-memory result and return to idle."""
        if self.is_loading:
            return self._fail(LifecycleError(LifecycleErrorKind.busy, BUSY_MESSAGE))
        self.state = LifecycleState.idle
        self.entry = None
        self.result = None
        self.entry_id = None
        self.finalized_entry = None
        self.error = None
        self.text_exceeds_max_length = False
        return None
