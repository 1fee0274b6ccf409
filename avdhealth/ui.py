"""
Design (ui.py)
- Purpose: Build and manage the Tkinter dashboard (endpoint Treeview, status dot, dialogs,
           logs panel) for the resolved endpoint set.
- Inputs: EndpointResolver, SettingsStore, EndpointStateUpdater, EndpointMonitor.
- Outputs: None (renders UI; writes overrides through the updater/store).
- Side effects: Creates windows; opens settings/catalog files in the OS editor; writes
           settings and history exports.
- Thread-safety: UI code runs on the main thread; monitor callbacks (on_result, on_error,
           set_status) re-post themselves with Tk.after().
"""

import logging
import tkinter as tk
import uuid
from datetime import datetime
from tkinter import filedialog, messagebox, ttk
from typing import Dict, List, Optional

from .catalog import EndpointStateUpdater
from .config import APP_TITLE, DEFAULT_PORT, HISTORY_FILENAME_PREFIX, LOG_MAX_LINES
from .errors import MonitorError
from .fslogix import is_storage_endpoint, storage_paths, to_endpoint
from .models import AppMode, CustomEndpoint, Endpoint, IconStatus
from .monitor import EndpointMonitor, EndpointResult
from .resolver import EndpointResolver, definition_id
from .storage import SettingsStore
from .transfer import export_history, export_settings, import_settings
from .utils import open_in_editor

log = logging.getLogger(__name__)

STATUS_COLORS = {
    IconStatus.EXCELLENT: "#22C55E",
    IconStatus.GOOD: "#EAB308",
    IconStatus.WARNING: "#F97316",
    IconStatus.CRITICAL: "#EF4444",
    IconStatus.UNKNOWN: "#9CA3AF",
}

BG = "#1e1e1e"
FIELD_BG = "#2b2b2b"


class AppUI:
    """
    Design (AppUI)
    - Purpose: Encapsulate all UI creation and behavior.
    - Public attributes:
        show_logs (tk.BooleanVar): toggles visibility of the logs panel (probe events)
        notifications (tk.BooleanVar): mirrors config.notificationsEnabled
    - Public methods:
        set_status(): StatusIndicator handle, paints the status dot
        on_result()/on_error(): thread-safe adapters for the monitor
        refresh_ui(): re-resolve endpoints and repaint the tree
        export_history(): save the monitor's latency history as CSV
    """

    def __init__(self, root: tk.Tk, resolver: EndpointResolver, store: SettingsStore,
                 updater: EndpointStateUpdater, monitor: EndpointMonitor):
        self.root = root
        self.resolver = resolver
        self.store = store
        self.updater = updater
        self.monitor = monitor

        self.endpoints: List[Endpoint] = []
        self.mode = AppMode.SESSION_HOST
        # hours covered by the Average column (config.graph_time_range)
        self.graph_hours = 1
        # last probe result per resolved endpoint id
        self._results: Dict[str, EndpointResult] = {}

        self.show_logs = tk.BooleanVar(value=False)
        self.notifications = tk.BooleanVar(value=True)
        self.status_text = tk.StringVar(value="Waiting for first test...")
        self.mode_text = tk.StringVar(value="")

        # Window
        self.root.title(APP_TITLE)
        self.root.rowconfigure(1, weight=1)
        self.root.columnconfigure(0, weight=1)
        self.root.configure(bg=BG)

        style = ttk.Style(self.root)
        style.theme_use("default")
        style.configure("Treeview", background=FIELD_BG, foreground="#f0f0f0",
                        fieldbackground=FIELD_BG, rowheight=24, font=("Segoe UI", 10))
        style.configure("Treeview.Heading", background=BG, foreground="#ffffff",
                        font=("Segoe UI", 10, "bold"))
        style.map("Treeview", background=[("selected", "#444")], foreground=[])

        # Header: status dot + mode + status line
        header = tk.Frame(self.root, bg=BG)
        header.grid(row=0, column=0, sticky="ew", padx=10, pady=(10, 0))
        self.dot = tk.Canvas(header, width=20, height=20, bg=BG, highlightthickness=0)
        self.dot.pack(side=tk.LEFT)
        self._dot_item = self.dot.create_oval(2, 2, 18, 18, fill=STATUS_COLORS[IconStatus.UNKNOWN], outline="white")
        tk.Label(header, textvariable=self.mode_text, fg="white", bg=BG,
                 font=("Segoe UI", 10, "bold")).pack(side=tk.LEFT, padx=8)
        tk.Label(header, textvariable=self.status_text, fg="#cccccc", bg=BG).pack(side=tk.LEFT, padx=8)

        # Treeview
        self.columns = ("name", "url", "category", "status", "latency", "average", "flags")
        self.tree = ttk.Treeview(self.root, columns=self.columns, show="headings")
        self.tree.grid(row=1, column=0, sticky="nsew", padx=10, pady=(10, 5))
        headers = {
            "name": "Endpoint", "url": "Host", "category": "Category",
            "status": "Status", "latency": "Latency", "average": "Average", "flags": "Flags",
        }
        for col in self.columns:
            self.tree.heading(col, text=headers[col])
        for status, color in STATUS_COLORS.items():
            self.tree.tag_configure(status.name, foreground=color)
        self.tree.tag_configure("disabled", foreground="#666666")

        # Buttons & toggles
        button_frame = tk.Frame(self.root, bg=BG)
        button_frame.grid(row=2, column=0, sticky="ew", padx=10, pady=(0, 5))
        ttk.Button(button_frame, text="Test Now", command=self.monitor.trigger).pack(side=tk.LEFT, padx=5)
        self.pause_button = ttk.Button(button_frame, text="Pause", command=self.toggle_pause)
        self.pause_button.pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Toggle Mute", command=self.toggle_muted).pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Toggle Enabled", command=self.toggle_enabled).pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Switch Mode", command=self.switch_mode).pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Add Custom", command=self.add_custom).pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Remove Custom", command=self.remove_custom).pack(side=tk.LEFT, padx=5)

        file_frame = tk.Frame(self.root, bg=BG)
        file_frame.grid(row=3, column=0, sticky="ew", padx=10, pady=(0, 10))
        ttk.Button(file_frame, text="Open Settings File", command=self.open_settings_file).pack(side=tk.LEFT, padx=5)
        ttk.Button(file_frame, text="Edit Endpoints File", command=self.open_catalog_file).pack(side=tk.LEFT, padx=5)
        ttk.Button(file_frame, text="Export...", command=self.export_settings).pack(side=tk.LEFT, padx=5)
        ttk.Button(file_frame, text="Import...", command=self.import_settings).pack(side=tk.LEFT, padx=5)
        ttk.Button(file_frame, text="Export History...", command=self.export_history).pack(side=tk.LEFT, padx=5)
        tk.Checkbutton(file_frame, text="Enable Notifications", variable=self.notifications,
                       command=self.toggle_notifications, fg="white", bg=BG, selectcolor=FIELD_BG,
                       activebackground=BG, activeforeground="white").pack(side=tk.LEFT, padx=5)
        tk.Checkbutton(file_frame, text="Show Logs", variable=self.show_logs, command=self.toggle_logs,
                       fg="white", bg=BG, selectcolor=FIELD_BG,
                       activebackground=BG, activeforeground="white").pack(side=tk.LEFT, padx=5)

        self.logs_box = tk.Text(self.root, height=8, bg="#1b1b1b", fg="#dddddd", wrap="none")
        self.logs_box.configure(state="disabled")

        self.refresh_ui()

    # ---------- StatusIndicator handle & monitor hooks (any thread) ----------

    def set_status(self, status: IconStatus, latency_ms: Optional[float]) -> None:
        self.root.after(0, lambda: self._paint_dot(status, latency_ms))

    def on_result(self, result: EndpointResult) -> None:
        self.root.after(0, lambda: self._apply_result(result))

    def on_error(self, exc: Exception) -> None:
        self.root.after(0, lambda: self.status_text.set(f"Error: {exc}"))

    # ---------- painting ----------

    def _paint_dot(self, status: IconStatus, latency_ms: Optional[float]) -> None:
        self.dot.itemconfigure(self._dot_item, fill=STATUS_COLORS[status])
        if latency_ms is None:
            self.status_text.set(status.label)
        else:
            stamp = datetime.now().strftime("%H:%M:%S")
            self.status_text.set(f"{status.label} - average {latency_ms:.1f} ms (at {stamp})")

    def _apply_result(self, result: EndpointResult) -> None:
        self._results[result.endpoint.id] = result
        if self.tree.exists(result.endpoint.id):
            self.tree.item(result.endpoint.id, values=self._row_values(result.endpoint),
                           tags=(self._row_tag(result.endpoint),))
        latency = f"{result.latency_ms:.1f} ms" if result.success else f"failed ({result.error})"
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._append_log(f"[{stamp}] {result.endpoint.url}:{result.endpoint.port} -> {result.status.label} ({latency})\n")

    def _row_values(self, ep: Endpoint) -> tuple:
        result = self._results.get(ep.id)
        if not ep.enabled:
            status, latency = "Disabled", ""
        elif result is None:
            status, latency = IconStatus.UNKNOWN.label, ""
        else:
            status = result.status.label
            latency = f"{result.latency_ms:.0f} ms" if result.success else "unreachable"
        flags = []
        if ep.muted:
            flags.append("muted")
        if ep.required:
            flags.append("required")
        if ep.latency_critical is False:
            flags.append("reachability only")
        summary = self.monitor.history.summary(ep.id, self.graph_hours)
        average = f"{summary[0]:.0f} ms" if summary else ""
        return (ep.name, f"{ep.url}:{ep.port or DEFAULT_PORT}", ep.category or "", status, latency, average,
                ", ".join(flags))

    def _row_tag(self, ep: Endpoint) -> str:
        if not ep.enabled:
            return "disabled"
        result = self._results.get(ep.id)
        return (result.status if result else IconStatus.UNKNOWN).name

    def refresh_ui(self) -> None:
        """
        Purpose: Re-resolve settings + endpoints and rebuild the Tree rows.
        Thread-safety: Main thread only.
        """
        try:
            view = self.resolver.resolve_settings()
            storage = storage_paths(self.store) if view.config.mode == AppMode.SESSION_HOST else []
        except MonitorError as exc:
            log.error(f"Failed to resolve endpoints: {exc}")
            self.status_text.set(f"Error: {exc}")
            return
        self.mode = view.config.mode
        self.graph_hours = view.config.graph_time_range
        self.endpoints = list(view.endpoints)
        self.endpoints.extend(to_endpoint(p) for p in storage)
        self.notifications.set(view.config.notifications_enabled)
        self.mode_text.set(f"{view.mode_info.name} mode")

        self.tree.delete(*self.tree.get_children())
        for ep in self.endpoints:
            if self.tree.exists(ep.id):
                log.warning(f"Duplicate endpoint id '{ep.id}'; only the first is shown")
                continue
            self.tree.insert("", "end", iid=ep.id, values=self._row_values(ep), tags=(self._row_tag(ep),))

    # ---------- actions ----------

    def _selected(self) -> Optional[Endpoint]:
        selected = self.tree.selection()
        if not selected:
            messagebox.showinfo(APP_TITLE, "Select an endpoint first.")
            return None
        return next((ep for ep in self.endpoints if ep.id == selected[0]), None)

    def _run(self, action, *args, **kwargs) -> bool:
        """Run a store/catalog action, report MonitorError in a dialog, refresh on success."""
        try:
            action(*args, **kwargs)
        except MonitorError as exc:
            log.error(f"{getattr(action, '__name__', 'action')} failed: {exc}")
            messagebox.showerror(APP_TITLE, str(exc))
            return False
        self.refresh_ui()
        return True

    def toggle_pause(self) -> None:
        if self.monitor.paused:
            self.monitor.resume()
            self.pause_button.configure(text="Pause")
        else:
            self.monitor.pause()
            self.pause_button.configure(text="Resume")

    def toggle_muted(self) -> None:
        ep = self._selected()
        if ep is None:
            return
        if is_storage_endpoint(ep):
            self._run(self.store.set_path_muted, ep.id, not bool(ep.muted))
            return
        if self._is_custom(ep):
            messagebox.showinfo(APP_TITLE, "Custom endpoints cannot be muted; disable them instead.")
            return
        self._run(self.updater.update, self.mode, definition_id(ep), muted=not bool(ep.muted))

    def toggle_enabled(self) -> None:
        ep = self._selected()
        if ep is None:
            return
        if is_storage_endpoint(ep):
            messagebox.showinfo(APP_TITLE, "FSLogix storage paths come from the registry; mute them instead.")
            return
        if self._is_custom(ep):
            def _mutate(doc):
                for custom in doc.custom_endpoints:
                    if custom.id == ep.id:
                        custom.enabled = not custom.enabled
            self._run(self.store.update, _mutate)
        else:
            self._run(self.updater.update, self.mode, definition_id(ep), enabled=not ep.enabled)

    def _is_custom(self, ep: Endpoint) -> bool:
        try:
            return any(c.id == ep.id for c in self.store.load().custom_endpoints)
        except MonitorError:
            return False

    def _restart_measurements(self) -> None:
        """After a mode switch or import: forget old results, grey the dot, test right away."""
        self._results.clear()
        self.monitor.indicator.reset()
        self.monitor.trigger()

    def switch_mode(self) -> None:
        new_mode = AppMode.END_USER if self.mode == AppMode.SESSION_HOST else AppMode.SESSION_HOST

        def _mutate(doc):
            doc.config.mode = new_mode
        if self._run(self.store.update, _mutate):
            self._restart_measurements()

    def toggle_notifications(self) -> None:
        enabled = self.notifications.get()

        def _mutate(doc):
            doc.config.notifications_enabled = enabled
        self._run(self.store.update, _mutate)

    def add_custom(self) -> None:
        popup = tk.Toplevel(self.root)
        popup.title("Add Custom Endpoint")
        popup.configure(bg=BG)

        entries = {}
        for row, (label, default) in enumerate((("Name", ""), ("Host", ""), ("Port", str(DEFAULT_PORT)))):
            tk.Label(popup, text=label, fg="white", bg=BG).grid(row=row, column=0, sticky="e", padx=5, pady=5)
            entry = tk.Entry(popup)
            entry.insert(0, default)
            entry.grid(row=row, column=1, padx=5, pady=5)
            entries[label] = entry

        tk.Label(popup, text="Protocol", fg="white", bg=BG).grid(row=3, column=0, sticky="e", padx=5, pady=5)
        protocol_var = tk.StringVar(value="tcp")
        ttk.Combobox(popup, textvariable=protocol_var, values=["tcp", "http", "https"],
                     state="readonly").grid(row=3, column=1, padx=5, pady=5)

        def save():
            name = entries["Name"].get().strip()
            host = entries["Host"].get().strip()
            try:
                port = int(entries["Port"].get().strip() or DEFAULT_PORT)
            except ValueError:
                messagebox.showerror(APP_TITLE, "Port must be a number.", parent=popup)
                return
            if not name or not host or not 0 < port < 65536:
                messagebox.showerror(APP_TITLE, "Name, host and a valid port are required.", parent=popup)
                return
            protocol = protocol_var.get()
            custom = CustomEndpoint(
                id=f"custom-{uuid.uuid4().hex[:8]}",
                name=name,
                url=host,
                port=port,
                protocol=None if protocol == "tcp" else protocol,
            )
            if self._run(self.store.add_custom_endpoint, custom):
                popup.destroy()

        ttk.Button(popup, text="Save", command=save).grid(row=4, column=0, columnspan=2, pady=10)

    def remove_custom(self) -> None:
        ep = self._selected()
        if ep is None:
            return
        if not self._is_custom(ep):
            messagebox.showinfo(APP_TITLE, "Only custom endpoints can be removed.")
            return
        if messagebox.askyesno(APP_TITLE, f"Remove custom endpoint '{ep.name}'?"):
            self._run(self.store.remove_custom_endpoint, ep.id)

    def open_settings_file(self) -> None:
        try:
            open_in_editor(self.store.path, self.store.directory)
        except (MonitorError, OSError) as exc:
            messagebox.showerror(APP_TITLE, str(exc))

    def open_catalog_file(self) -> None:
        loader = self.resolver.loader
        try:
            loader.load(self.mode)  # bootstraps the file if it is not there yet
            open_in_editor(loader.catalog_path(self.mode), loader.directory)
        except (MonitorError, OSError) as exc:
            messagebox.showerror(APP_TITLE, str(exc))

    def export_settings(self) -> None:
        path = filedialog.asksaveasfilename(defaultextension=".json", filetypes=[("JSON", "*.json")])
        if not path:
            return
        try:
            export_settings(path, self.store.load())
        except MonitorError as exc:
            messagebox.showerror(APP_TITLE, str(exc))

    def import_settings(self) -> None:
        path = filedialog.askopenfilename(filetypes=[("JSON", "*.json")])
        if not path:
            return
        if self._run(import_settings, path, self.store, self.resolver):
            self._restart_measurements()

    def export_history(self) -> None:
        default = f"{HISTORY_FILENAME_PREFIX}-{datetime.now():%Y-%m-%d}.csv"
        path = filedialog.asksaveasfilename(defaultextension=".csv", initialfile=default,
                                            filetypes=[("CSV", "*.csv")])
        if not path:
            return
        try:
            count = export_history(path, self.monitor.history)
        except MonitorError as exc:
            messagebox.showerror(APP_TITLE, str(exc))
            return
        self.status_text.set(f"Exported {count} history entries")

    # ---------- logs ----------

    def toggle_logs(self) -> None:
        if self.show_logs.get():
            self.root.rowconfigure(4, weight=1)
            self.logs_box.grid(row=4, column=0, sticky="nsew", padx=10, pady=(0, 10))
        else:
            self.logs_box.grid_remove()
            self.root.rowconfigure(4, weight=0)

    def _append_log(self, text: str) -> None:
        """
        Purpose: Append one line to the Logs panel and trim to LOG_MAX_LINES.
        Thread-safety: Main thread only (called via after()).
        """
        self.logs_box.configure(state="normal")
        self.logs_box.insert("end", text)
        self.logs_box.see("end")
        total_lines = int(self.logs_box.index("end-1c").split(".")[0])
        if total_lines > LOG_MAX_LINES:
            remove = total_lines - LOG_MAX_LINES
            self.logs_box.delete("1.0", f"{remove + 1}.0")
        self.logs_box.configure(state="disabled")
