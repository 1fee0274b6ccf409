"""
Design (storage.py)
- Purpose: Locate the settings directory and load/save settings.json (version, app config,
           custom endpoints, FSLogix path mute states).
- Inputs: Settings directory (resolved once per process unless injected), SettingsFile on save.
- Outputs: SettingsFile on load; None on save.
- Side effects: Reads/writes files. A missing settings file is created with defaults.
           Malformed JSON raises ParseError; OS failures raise StorageIOError. Nothing is
           silently defaulted.
- Thread-safety: Every persisted file has one lock (see file_lock). Saves and
           read-modify-write helpers hold it; saves go through a temp file + os.replace so a
           reader never sees a partial document.
"""

import logging
import os
import tempfile
import threading
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Type, TypeVar

import platformdirs
import pydantic

from .config import (
    APP_NAME,
    INSTALL_ROOT_MARKERS,
    PORTABLE_PROBE_FILENAME,
    SETTINGS_FILENAME,
)
from .errors import ParseError, StorageIOError
from .models import CustomEndpoint, PathState, SettingsFile, _Document
from .utils import exe_dir, is_frozen

if TYPE_CHECKING:
    from .catalog import EndpointCatalogLoader

log = logging.getLogger(__name__)

DocT = TypeVar("DocT", bound=_Document)

_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def file_lock(path: Path) -> threading.RLock:
    """
    Purpose: Return the single lock serializing writes to `path`.
    Thread-safety: Registry access is guarded; the same resolved path always maps to the
                   same RLock (re-entrant so a read-modify-write can call save()).
    """
    key = os.path.normcase(str(Path(path).resolve()))
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.RLock()
        return lock


# ---------- raw JSON document I/O (shared with the catalog loader) ----------

def read_document(path: Path, model: Type[DocT]) -> DocT:
    """
    Purpose: Read and parse one JSON document into `model`.
    Raises: FileNotFoundError if absent (callers decide), StorageIOError on other OS
            errors, ParseError if the text is not UTF-8 or not valid JSON for `model`.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except UnicodeDecodeError as exc:
        raise ParseError(f"'{path}' is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise StorageIOError(f"Failed to read '{path}': {exc}") from exc
    try:
        return model.model_validate_json(text)
    except pydantic.ValidationError as exc:
        raise ParseError(f"Malformed JSON in '{path}': {exc}") from exc


def write_document(path: Path, doc: _Document) -> None:
    """
    Purpose: Serialize the whole document and replace `path` with it.
    Side effects: Creates the parent directory; writes a temp sibling then os.replace().
    Raises: StorageIOError on any OS failure (the original file is left untouched).
    """
    text = doc.to_json()
    with file_lock(path):
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise StorageIOError(f"Failed to write '{path}': {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


# ---------- settings directory ----------

def is_portable(directory: Path) -> bool:
    """
    Purpose: Decide whether settings live next to the executable.
    Rules (first hit wins):
        1) settings.json already exists there -> portable
        2) directory is under an install root ("Program Files") -> installed
        3) a write probe succeeds -> portable
    """
    if (directory / SETTINGS_FILENAME).exists():
        return True
    lowered = str(directory).lower()
    if any(marker in lowered for marker in INSTALL_ROOT_MARKERS):
        return False
    probe = directory / PORTABLE_PROBE_FILENAME
    try:
        probe.write_text("test", encoding="utf-8")
    except OSError:
        return False
    try:
        probe.unlink()
    except OSError:
        pass
    return True


def user_config_dir() -> Path:
    """Platform user-config root, e.g. %APPDATA%\\AVDHealthMonitor or ~/.config/AVDHealthMonitor."""
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False, roaming=True))


@lru_cache(maxsize=None)
def settings_dir() -> Path:
    """
    Purpose: Resolve the settings directory once per process.
    Outputs: Executable directory for a portable frozen build; otherwise the user config root.
    Side effects: Creates the directory.
    """
    if is_frozen() and is_portable(exe_dir()):
        base = exe_dir()
    else:
        base = user_config_dir()
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageIOError(f"Cannot create settings directory '{base}': {exc}") from exc
    log.info(f"Settings directory: {base}")
    return base


# ---------- settings store ----------

class SettingsStore:
    """
    Design (SettingsStore)
    - State: directory (Path) holding settings.json.
    - Public methods:
        load(): SettingsFile (creates defaults on first run)
        save(doc): full rewrite
        add_custom_endpoint()/remove_custom_endpoint()/set_path_muted(): locked read-modify-write
    """

    def __init__(self, directory: Optional[Path] = None):
        self._directory = Path(directory) if directory is not None else None

    @property
    def directory(self) -> Path:
        if self._directory is None:
            self._directory = settings_dir()
        return self._directory

    @property
    def path(self) -> Path:
        return self.directory / SETTINGS_FILENAME

    def load(self) -> SettingsFile:
        """
        Purpose: Load settings.json, creating and persisting defaults when missing.
        Raises: ParseError (malformed), StorageIOError (OS failure).
        """
        with file_lock(self.path):
            try:
                doc = read_document(self.path, SettingsFile)
            except FileNotFoundError:
                log.info(f"Creating default settings file at {self.path}")
                doc = SettingsFile()
                self.save(doc)
                return doc
        if not doc.config.thresholds.is_ordered():
            t = doc.config.thresholds
            log.warning(
                f"Latency thresholds are not ascending (excellent={t.excellent}, "
                f"good={t.good}, warning={t.warning}); the first matching tier wins"
            )
        return doc

    def save(self, doc: SettingsFile) -> None:
        write_document(self.path, doc)

    def ensure_exists(self) -> bool:
        """Create the default settings file if missing. Returns True when it was created."""
        with file_lock(self.path):
            if self.path.exists():
                return False
            log.info(f"Creating default settings file at {self.path}")
            self.save(SettingsFile())
            return True

    def initialize(self, loader: "EndpointCatalogLoader") -> List[str]:
        """
        Purpose: First-run bootstrap. Creates settings.json with defaults and copies every
                 missing bundled catalog into the settings directory.
        Outputs: Catalog file names that could not be found (already logged as warnings).
        Raises: ParseError if an existing settings.json is unreadable; StorageIOError.
        """
        self.ensure_exists()
        self.load()
        return loader.bootstrap()

    def update(self, mutate: Callable[[SettingsFile], None]) -> SettingsFile:
        """
        Purpose: Locked load -> mutate -> save cycle.
        Inputs: mutate(doc) edits the document in place.
        Outputs: The saved document.
        """
        with file_lock(self.path):
            doc = self.load()
            mutate(doc)
            self.save(doc)
            return doc

    def add_custom_endpoint(self, endpoint: CustomEndpoint) -> SettingsFile:
        """Append a custom endpoint; an existing entry with the same id is replaced in place."""
        def _mutate(doc: SettingsFile) -> None:
            for i, existing in enumerate(doc.custom_endpoints):
                if existing.id == endpoint.id:
                    doc.custom_endpoints[i] = endpoint
                    return
            doc.custom_endpoints.append(endpoint)

        return self.update(_mutate)

    def remove_custom_endpoint(self, endpoint_id: str) -> SettingsFile:
        def _mutate(doc: SettingsFile) -> None:
            doc.custom_endpoints = [e for e in doc.custom_endpoints if e.id != endpoint_id]

        return self.update(_mutate)

    def set_path_muted(self, path_id: str, muted: bool) -> SettingsFile:
        """Update the mute state for `path_id`, appending a new record if none exists."""
        def _mutate(doc: SettingsFile) -> None:
            for state in doc.fslogix_path_states:
                if state.id == path_id:
                    state.muted = muted
                    return
            doc.fslogix_path_states.append(PathState(id=path_id, muted=muted))

        return self.update(_mutate)


def default_store() -> SettingsStore:
    """Store bound to the process-wide settings directory."""
    return SettingsStore(settings_dir())

