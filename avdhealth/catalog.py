"""
Design (catalog.py)
- Purpose: Load/save the bundled, mode-specific endpoint catalogs and apply per-endpoint
           overrides (enabled, muted, name, url, port) to them.
- Inputs: AppMode; settings directory; ordered list of candidate resource directories.
- Outputs: EndpointCatalog documents.
- Side effects: On first use copies the bundled catalog into the settings directory; the
           updater rewrites the catalog file.
- Thread-safety: Catalog writes and the updater's read-modify-write hold the file's lock.

Bootstrap: packaging tools put bundled files in different places, so the loader tries a
list of directories in order and copies the first match. The list is plain data so tests
can inject fake roots.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ENDUSER_ENDPOINTS_FILENAME, RESOURCES_SUBDIR, SESSIONHOST_ENDPOINTS_FILENAME
from .errors import NotFoundError
from .models import AppMode, EndpointCatalog
from .storage import file_lock, read_document, settings_dir, write_document
from .utils import exe_dir, resource_dir

log = logging.getLogger(__name__)

CATALOG_FILENAMES = {
    AppMode.SESSION_HOST: SESSIONHOST_ENDPOINTS_FILENAME,
    AppMode.END_USER: ENDUSER_ENDPOINTS_FILENAME,
}


def catalog_filename(mode: AppMode) -> str:
    return CATALOG_FILENAMES[AppMode.parse(mode)]


def default_resource_candidates() -> List[Path]:
    """
    Ordered directories searched for bundled catalogs:
        1) packaged resource dir   2) its resources/ subfolder
        3) executable dir          4) its resources/ subfolder
    """
    res, exe = resource_dir(), exe_dir()
    return [res, res / RESOURCES_SUBDIR, exe, exe / RESOURCES_SUBDIR]


class EndpointCatalogLoader:
    """
    Design (EndpointCatalogLoader)
    - State:
        directory: settings directory holding the writable catalog copies
        candidates: ordered bundled-resource directories (bootstrap sources)
    - Public methods:
        load(mode), save(mode, catalog), catalog_path(mode), bootstrap()
    """

    def __init__(self, directory: Optional[Path] = None, candidates: Optional[Sequence[Path]] = None):
        self._directory = Path(directory) if directory is not None else None
        self.candidates = list(candidates) if candidates is not None else default_resource_candidates()

    @property
    def directory(self) -> Path:
        if self._directory is None:
            self._directory = settings_dir()
        return self._directory

    def catalog_path(self, mode: AppMode) -> Path:
        return self.directory / catalog_filename(mode)

    def _copy_bundled(self, filename: str, target: Path) -> bool:
        """Copy the first bundled match to `target`. A failed copy falls through to the next candidate."""
        for directory in self.candidates:
            source = Path(directory) / filename
            if not source.is_file():
                continue
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, target)
            except OSError as exc:
                log.error(f"Failed to copy {source} to {target}: {exc}")
                continue
            log.info(f"Copied bundled {filename} from {source}")
            return True
        return False

    def load(self, mode: AppMode) -> EndpointCatalog:
        """
        Purpose: Return the catalog for `mode`, bootstrapping it from bundled resources.
        Raises: NotFoundError (no bundled copy anywhere), ParseError, StorageIOError.
        """
        filename = catalog_filename(mode)
        path = self.directory / filename
        with file_lock(path):
            if not path.exists() and not self._copy_bundled(filename, path):
                searched = ", ".join(str(c) for c in self.candidates)
                raise NotFoundError(f"Endpoint file not found: {path} (searched: {searched})")
            try:
                return read_document(path, EndpointCatalog)
            except FileNotFoundError as exc:
                raise NotFoundError(f"Endpoint file not found: {path}") from exc

    def save(self, mode: AppMode, catalog: EndpointCatalog) -> None:
        write_document(self.catalog_path(mode), catalog)

    def bootstrap(self) -> List[str]:
        """
        Purpose: First-run copy of every mode's catalog that is not yet in the settings dir.
        Outputs: File names that could not be found (logged as warnings, not raised).
        """
        missing = []
        log.info(f"Searching for resources in: {[str(c) for c in self.candidates]}")
        for mode in AppMode:
            filename = catalog_filename(mode)
            target = self.directory / filename
            with file_lock(target):
                if target.exists():
                    log.debug(f"File already exists: {target}")
                    continue
                if not self._copy_bundled(filename, target):
                    log.warning(f"Could not find resource file: {filename}")
                    missing.append(filename)
        return missing


class EndpointStateUpdater:
    """Mutates one catalog definition's override fields, identified by id."""

    def __init__(self, loader: EndpointCatalogLoader):
        self.loader = loader

    def update(
        self,
        mode: AppMode,
        endpoint_id: str,
        enabled: Optional[bool] = None,
        muted: Optional[bool] = None,
        name: Optional[str] = None,
        url: Optional[str] = None,
        port: Optional[int] = None,
    ) -> bool:
        """
        Purpose: Overwrite only the provided fields of the FIRST definition whose id matches.
                 The scan stops at that match; a duplicate id later in the catalog is never
                 touched. No match is a silent no-op (best effort), but the catalog is still
                 rewritten in full.
        Outputs: True if a definition was updated.
        Raises: Whatever load()/save() raise (NotFoundError, ParseError, StorageIOError).
        """
        mode = AppMode.parse(mode)
        path = self.loader.catalog_path(mode)
        with file_lock(path):
            catalog = self.loader.load(mode)
            found = False
            for category in catalog.categories:
                for definition in category.endpoints:
                    if definition.id != endpoint_id:
                        continue
                    if enabled is not None:
                        definition.enabled = enabled
                    if muted is not None:
                        definition.muted = muted
                    if name is not None:
                        definition.name = name
                    if url is not None:
                        definition.url = url
                    if port is not None:
                        definition.port = port
                    found = True
                    break
                if found:
                    break
            if not found:
                log.debug(f"No endpoint with id '{endpoint_id}' in {mode.value} catalog; nothing updated")
            self.loader.save(mode, catalog)
        return found

