"""
Design (errors.py)
- Purpose: Error taxonomy shared by the settings, catalog and resolution layers.
- Outputs: Exception classes; every one derives from MonitorError so callers can
           catch the whole family at the UI boundary.
- Thread-safety: N/A.
"""

from typing import List, Tuple


class MonitorError(Exception):
    """Base class for all errors raised by avdhealth."""


class NotFoundError(MonitorError):
    """A settings/catalog file or bundled resource is missing after the full search."""


class ParseError(MonitorError):
    """A persisted JSON document is malformed or does not fit the expected model."""


class ValidationError(MonitorError):
    """
    An external settings document was rejected by the schema gate.
    errors: list of (path, message) pairs, path in JSON-pointer form ("/config/mode").
    """

    def __init__(self, errors: List[Tuple[str, str]]):
        self.errors = list(errors)
        lines = "\n".join(f"  - {path}: {message}" for path, message in self.errors)
        super().__init__(f"Settings validation failed:\n{lines}")


class TraversalBlockedError(MonitorError):
    """A path could not be resolved or escapes its allowed base directory."""


class StorageIOError(MonitorError, OSError):
    """Generic filesystem failure (permissions, disk, ...)."""


class ProbeError(MonitorError):
    """A reachability probe failed (refused, timed out, unresolvable)."""


class EmptyHistoryError(MonitorError):
    """A history export was requested before any measurement was recorded."""
