"""
AVD Health Monitor entry point.

Startup order:
    1) logging
    2) settings.json (created with defaults on first run; a corrupt file aborts startup
       rather than being silently replaced)
    3) bundled endpoint catalogs copied next to settings.json when missing
    4) dashboard + background monitor
"""

import logging
import sys
import tkinter as tk
from tkinter import messagebox

from avdhealth.catalog import EndpointCatalogLoader, EndpointStateUpdater
from avdhealth.config import APP_TITLE
from avdhealth.errors import MonitorError, ParseError
from avdhealth.health import StatusIndicator
from avdhealth.monitor import EndpointMonitor
from avdhealth.resolver import EndpointResolver
from avdhealth.storage import default_store
from avdhealth.ui import AppUI

log = logging.getLogger(__name__)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    store = default_store()
    try:
        loader = EndpointCatalogLoader(store.directory)
        missing = store.initialize(loader)
    except ParseError as exc:
        log.error(f"Settings file is corrupt: {exc}")
        root = tk.Tk()
        root.withdraw()
        messagebox.showerror(
            APP_TITLE,
            f"The settings file could not be read:\n{store.path}\n\n{exc}\n\n"
            "Fix or delete the file and start the monitor again.",
        )
        root.destroy()
        return 1
    except MonitorError as exc:
        log.error(f"Failed to initialise settings: {exc}")
        return 1

    if missing:
        log.warning(f"Endpoint catalogs not available: {', '.join(missing)}")

    resolver = EndpointResolver(loader, store)
    indicator = StatusIndicator()
    monitor = EndpointMonitor(resolver, indicator)

    root = tk.Tk()
    app = AppUI(root, resolver, store, EndpointStateUpdater(loader), monitor)
    monitor.on_result = app.on_result
    monitor.on_error = app.on_error
    indicator.attach(app)

    monitor.start()
    try:
        root.mainloop()
    finally:
        monitor.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
