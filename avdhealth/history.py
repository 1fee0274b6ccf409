"""
Design (history.py)
- Purpose: Keep the recent latency measurements of every endpoint in memory so the dashboard
           can show per-endpoint averages over the graph range and export them as CSV.
- Inputs: EndpointResult objects from the monitor; AppConfig.retention_days and
           graph_time_range.
- Outputs: HistoryEntry lists, (avg, min, max) summaries.
- Side effects: None (nothing is persisted).
- Thread-safety: The monitor thread records while the UI thread reads; every access holds
           one lock.

Only successful measurements are recorded. Each endpoint keeps at most HISTORY_MAX_ENTRIES
entries; older ones are dropped first, and so is anything older than retention_days.
"""

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .config import HISTORY_MAX_ENTRIES


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: datetime
    latency_ms: float


class LatencyHistory:
    """
    Design (LatencyHistory)
    - State:
        _entries: endpoint id -> deque of HistoryEntry (oldest first, bounded)
        _names: endpoint id -> last seen display name (for exports)
    - Public methods:
        record(result), prune(retention_days), entries(id), window(id, hours),
        summary(id, hours), snapshot(), clear()
    """

    def __init__(self, max_entries: int = HISTORY_MAX_ENTRIES, clock: Callable[[], datetime] = utc_now):
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Deque[HistoryEntry]] = {}
        self._names: Dict[str, str] = {}

    def record(self, result) -> Optional[HistoryEntry]:
        """Append a successful EndpointResult; failures are not part of the history."""
        if not result.success:
            return None
        entry = HistoryEntry(timestamp=self._clock(), latency_ms=result.latency_ms)
        endpoint = result.endpoint
        with self._lock:
            entries = self._entries.get(endpoint.id)
            if entries is None:
                entries = self._entries[endpoint.id] = deque(maxlen=self.max_entries)
            entries.append(entry)
            self._names[endpoint.id] = endpoint.name
        return entry

    def prune(self, retention_days: int) -> int:
        """
        Purpose: Drop entries older than `retention_days`. A value <= 0 disables time-based
                 pruning (the per-endpoint cap still applies).
        Outputs: Number of entries removed.
        """
        if retention_days <= 0:
            return 0
        cutoff = self._clock() - timedelta(days=retention_days)
        removed = 0
        with self._lock:
            for endpoint_id in list(self._entries):
                entries = self._entries[endpoint_id]
                while entries and entries[0].timestamp <= cutoff:
                    entries.popleft()
                    removed += 1
                if not entries:
                    del self._entries[endpoint_id]
                    self._names.pop(endpoint_id, None)
        return removed

    def entries(self, endpoint_id: str) -> List[HistoryEntry]:
        with self._lock:
            return list(self._entries.get(endpoint_id, ()))

    def window(self, endpoint_id: str, hours: int) -> List[HistoryEntry]:
        """Entries measured within the last `hours` hours (the dashboard's graph range)."""
        cutoff = self._clock() - timedelta(hours=hours)
        return [e for e in self.entries(endpoint_id) if e.timestamp >= cutoff]

    def summary(self, endpoint_id: str, hours: int) -> Optional[Tuple[float, float, float]]:
        """(average, minimum, maximum) latency over the window, None without data."""
        values = [e.latency_ms for e in self.window(endpoint_id, hours)]
        if not values:
            return None
        return sum(values) / len(values), min(values), max(values)

    def snapshot(self) -> List[Tuple[str, str, List[HistoryEntry]]]:
        """(endpoint id, name, entries) per endpoint in first-recorded order."""
        with self._lock:
            return [
                (endpoint_id, self._names.get(endpoint_id, endpoint_id), list(entries))
                for endpoint_id, entries in self._entries.items()
            ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._names.clear()
