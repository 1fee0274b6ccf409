"""
Design (health.py)
- Purpose: Map a latency measurement to a health tier, and forward tier changes to whatever
           status indicator (tray/window dot) the application has attached.
- Inputs: latency in ms, LatencyThresholds.
- Outputs: IconStatus.
- Side effects: StatusIndicator.update() calls the attached handle, if any.
- Thread-safety: classify() is pure. StatusIndicator guards its handle with a lock; the
           handle itself must marshal to its UI thread.
"""

import threading
from typing import Optional, Protocol

from .models import IconStatus, LatencyThresholds


def classify(latency_ms: float, thresholds: LatencyThresholds) -> IconStatus:
    """
    Boundaries belong to the better tier: latency == excellent is EXCELLENT.
    Never returns UNKNOWN (that is the caller's "no data yet" state). Inverted thresholds
    are not rejected; the first comparison that holds wins.
    """
    if latency_ms <= thresholds.excellent:
        return IconStatus.EXCELLENT
    if latency_ms <= thresholds.good:
        return IconStatus.GOOD
    if latency_ms <= thresholds.warning:
        return IconStatus.WARNING
    return IconStatus.CRITICAL


class StatusHandle(Protocol):
    def set_status(self, status: IconStatus, latency_ms: Optional[float]) -> None:
        ...


class StatusIndicator:
    """
    Design (StatusIndicator)
    - Purpose: Explicitly owned replacement for a process-wide tray handle. The app attaches
               the handle once it exists; updates before that are skipped silently.
    - State: handle (optional), last status.
    """

    def __init__(self, handle: Optional[StatusHandle] = None):
        self._lock = threading.Lock()
        self._handle = handle
        self.status = IconStatus.UNKNOWN

    def attach(self, handle: Optional[StatusHandle]) -> None:
        with self._lock:
            self._handle = handle

    def update(self, latency_ms: float, thresholds: LatencyThresholds) -> IconStatus:
        status = classify(latency_ms, thresholds)
        self._push(status, latency_ms)
        return status

    def reset(self) -> None:
        self._push(IconStatus.UNKNOWN, None)

    def _push(self, status: IconStatus, latency_ms: Optional[float]) -> None:
        with self._lock:
            self.status = status
            handle = self._handle
        if handle is None:
            return
        handle.set_status(status, latency_ms)
