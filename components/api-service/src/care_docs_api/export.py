"""Plain-text export and display helpers for stored entries."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from care_docs_api.storage import StoredEntry

DISPLAY_TIMEZONE = ZoneInfo("Europe/Zurich")
PREVIEW_LENGTH = 80

_MODE_LABELS = {"manual": "Manuelle Eingabe", "dictation": "Diktat"}
_LEVEL_LABELS = {"standard": "Standard", "extended": "Erweitert", "maximum": "Maximum"}


def _local(value: datetime) -> datetime:
    # Stored timestamps are UTC; SQLite returns them naive.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(DISPLAY_TIMEZONE)


def format_de_ch(value: datetime) -> str:
    """Format a timestamp like the history table (``19.10.2026, 14:05``)."""
    return _local(value).strftime("%d.%m.%Y, %H:%M")


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text[:length] + "..." if len(text) > length else text


def format_chf(amount: float) -> str:
    return f"{amount:.2f} CHF"


def export_filename(entry: StoredEntry) -> str:
    stamp = _local(entry.finalized_at or entry.created_at).strftime("%Y%m%d-%H%M")
    safe_name = "".join(
        ch if ch.isascii() and ch.isalnum() else "_" for ch in entry.patient_name
    ).strip("_")
    return f"dokumentation-{safe_name or 'eintrag'}-{stamp}.txt"


def render_export(entry: StoredEntry) -> str:
    """Render a finalized entry as a plain-text document.

    Args:
        entry: Stored entry with status ``final``.

    Returns:
        The document text, newline-terminated.

    Raises:
        ValueError: If the entry is still a draft.
    """
    if not entry.is_final or entry.finalized_at is None:
        raise ValueError(f"Entry {entry.id} is not finalized")

    increase = entry.value_after - entry.value_before
    level = _LEVEL_LABELS.get(entry.optimization_level, entry.optimization_level)
    lines = [
        "Pflegedokumentation",
        "",
        f"Bewohner/Patient: {entry.patient_name}",
        f"Erstellt: {format_de_ch(entry.created_at)}",
        f"Finalisiert: {format_de_ch(entry.finalized_at)}",
        f"Eingabemodus: {_MODE_LABELS.get(entry.mode, entry.mode)}",
        f"Optimierungslevel: {level}",
        "",
        "Dokumentation:",
        entry.optimized_text,
    ]
    if entry.mappings:
        lines += ["", "Zugeordnete Kategorien:"]
        lines += [f"- {m.get('key', '')}: {m.get('value', '')}" for m in entry.mappings]
    lines += [
        "",
        f"Vorher: {format_chf(entry.value_before)}",
        f"Nachher: {format_chf(entry.value_after)} ({increase:+.2f} CHF)",
    ]
    return "\n".join(lines) + "\n"
