"""
Design (transfer.py)
- Purpose: Export the settings document to a user-chosen file and import one back; export
           the latency history as CSV.
- Inputs: File paths (from a save/open dialog), SettingsFile, SettingsStore, EndpointResolver.
- Outputs: None on export; the re-resolved SettingsView on import.
- Side effects: Writes the export file; import overwrites settings.json.
- Thread-safety: Import persists through SettingsStore (locked, atomic).

Import order matters: read -> parse JSON -> schema gate -> build SettingsFile -> save.
Anything rejected before save leaves settings.json untouched.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Union

import pydantic

from .errors import EmptyHistoryError, ParseError, StorageIOError
from .history import LatencyHistory
from .models import SettingsFile, SettingsView
from .resolver import EndpointResolver
from .storage import SettingsStore
from .validation import ensure_valid

log = logging.getLogger(__name__)


def write_text(path: Union[str, Path], content: str) -> None:
    """Write text (e.g. a CSV export) to `path`."""
    try:
        Path(path).write_text(content, encoding="utf-8")
    except OSError as exc:
        raise StorageIOError(f"Failed to write file: {exc}") from exc


def export_settings(path: Union[str, Path], settings: SettingsFile) -> None:
    write_text(path, settings.to_json())
    log.info(f"Exported settings to {path}")


def import_settings(path: Union[str, Path], store: SettingsStore, resolver: EndpointResolver) -> SettingsView:
    """
    Purpose: Replace settings.json with a validated external document.
    Outputs: Settings + endpoints resolved for the imported mode.
    Raises: StorageIOError (read), ParseError (not JSON), ValidationError (schema).
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"File is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise StorageIOError(f"Failed to read file: {exc}") from exc
    try:
        document = json.loads(content)
    except ValueError as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc

    ensure_valid(document)
    try:
        settings = SettingsFile.model_validate(document)
    except pydantic.ValidationError as exc:
        raise ParseError(f"Failed to parse settings: {exc}") from exc

    store.save(settings)
    log.info(f"Imported settings from {path}")
    return resolver.resolve_settings()


CSV_BOM = "\ufeff"
CSV_HEADER = ("Endpoint ID", "Endpoint Name", "Timestamp", "Latency (ms)")


def csv_field(value: str) -> str:
    """Quote a field holding a comma, quote or newline; embedded quotes are doubled."""
    if any(ch in value for ch in ',"\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_timestamp(ts: datetime) -> str:
    """UTC ISO-8601 with milliseconds: 2024-01-15T10:30:00.000Z"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def format_latency(latency: float) -> str:
    return str(int(latency)) if float(latency).is_integer() else str(latency)


def history_to_csv(history: LatencyHistory, endpoint_ids: Iterable[str] = ()) -> str:
    """
    Purpose: Render the recorded latency history as CSV.
    Inputs: history; endpoint_ids restricts the export to those ids (empty = all).
    Outputs: BOM-prefixed text (so spreadsheet apps detect UTF-8), one row per measurement,
             grouped per endpoint, oldest first.
    Raises: EmptyHistoryError when nothing would be exported.
    """
    wanted = set(endpoint_ids)
    rows = []
    for endpoint_id, name, entries in history.snapshot():
        if wanted and endpoint_id not in wanted:
            continue
        for entry in entries:
            rows.append(",".join((
                csv_field(endpoint_id),
                csv_field(name),
                format_timestamp(entry.timestamp),
                format_latency(entry.latency_ms),
            )))
    if not rows:
        raise EmptyHistoryError("No history data to export")
    return CSV_BOM + "\n".join([",".join(CSV_HEADER)] + rows)


def export_history(path: Union[str, Path], history: LatencyHistory) -> int:
    """Write the CSV export to `path`; returns the number of data rows written."""
    content = history_to_csv(history)
    write_text(path, content)
    count = content.count("\n")
    log.info(f"Exported {count} history entries to {path}")
    return count
