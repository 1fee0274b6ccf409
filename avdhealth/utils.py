"""
Design (utils.py)
- Purpose: Reusable helpers: resource/executable directory detection (PyInstaller vs source),
           desktop notifications, and opening a settings/catalog file in the OS editor.
- Inputs: Various helper parameters (title/body, paths).
- Outputs: Helper results (paths, bools).
- Side effects: notify() shows an OS notification; open_in_editor() spawns a process.
- Thread-safety: Stateless; safe to call from any thread.
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import Union

from plyer import notification

from .config import APP_TITLE
from .path_safety import validate_path_in_dir

log = logging.getLogger(__name__)


def is_frozen() -> bool:
    return bool(getattr(sys, "frozen", False))


def resource_dir() -> Path:
    """
    Purpose: Directory holding bundled resources for both dev (script) and PyInstaller runs.
    Outputs: sys._MEIPASS when frozen; otherwise this package directory (catalogs are in
             its "resources" subfolder).
    """
    if is_frozen() and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS)  # type: ignore[attr-defined]
    return Path(__file__).resolve().parent


def exe_dir() -> Path:
    """Directory of the running executable; project root when running from source."""
    if is_frozen():
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def notify(title: str, body: str) -> bool:
    """
    Purpose: Show a desktop notification.
    Outputs: True if the notification backend accepted it, False otherwise (logged).
    """
    try:
        notification.notify(title=title, message=body, app_name=APP_TITLE, timeout=5)
        return True
    except Exception as exc:
        # plyer raises backend-specific errors (NotImplementedError, dbus errors, ...)
        log.warning(f"Notification failed: {exc}")
        return False


def open_in_editor(path: Union[str, Path], allowed_base: Union[str, Path]) -> Path:
    """
    Purpose: Open a text file with the platform editor after the traversal check.
    Outputs: The canonical path that was opened.
    Raises: TraversalBlockedError from the path check; OSError if the launcher fails.
    """
    safe_path = validate_path_in_dir(path, allowed_base)
    if sys.platform == "win32":
        subprocess.Popen(["notepad", str(safe_path)])
    elif sys.platform == "darwin":
        subprocess.Popen(["open", "-t", str(safe_path)])
    else:
        subprocess.Popen(["xdg-open", str(safe_path)])
    log.info(f"Opened {safe_path} in editor")
    return safe_path
