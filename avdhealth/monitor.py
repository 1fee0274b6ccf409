"""
Background monitoring worker.

Design:
- Runs in its own thread so the UI stays responsive.
- Every cycle:
    1) Resolve the endpoint set for the configured mode (settings are re-read each cycle,
       so edits made in the UI or by hand apply on the next cycle). SessionHost mode also
       probes the FSLogix storage hosts on SMB.
    2) Probe each enabled endpoint and classify the latency.
    3) Emit a per-endpoint result so the UI can update rows and append to Logs.
    4) Push the average latency of latency-critical, unmuted endpoints to the status indicator.
    5) Let the AlertPolicy decide whether a notification is due (threshold + cooldown).
    6) Record successful latencies in the LatencyHistory and prune it to retention_days.
 - Methods:
    start(): begin the daemon thread
    stop(): signal the thread to stop
    pause()/resume(): skip probing while paused
    trigger(): run the next cycle now ("Test Now")
- Thread-safety: Callbacks run on the monitor thread; the UI must marshal them to Tk.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import DEFAULT_TEST_INTERVAL_SEC
from .errors import MonitorError
from .fslogix import StoragePath, storage_paths, to_endpoint
from .health import StatusIndicator, classify
from .history import LatencyHistory
from .models import AppConfig, AppMode, Endpoint, IconStatus
from .probe import probe
from .resolver import EndpointResolver
from .storage import SettingsStore
from .utils import notify

log = logging.getLogger(__name__)

ProbeFn = Callable[[str, Optional[int], Optional[str]], float]
NotifyFn = Callable[[str, str], bool]
StorageFn = Callable[[SettingsStore], List[StoragePath]]


@dataclass(frozen=True)
class EndpointResult:
    endpoint: Endpoint
    status: IconStatus
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.latency_ms is not None


def is_alert_candidate(result: EndpointResult) -> bool:
    """Muted endpoints and endpoints flagged non-latency-critical never raise alerts."""
    ep = result.endpoint
    if ep.muted is True or ep.latency_critical is False:
        return False
    return result.status in (IconStatus.WARNING, IconStatus.CRITICAL)


def average_latency(results: List[EndpointResult]) -> Optional[float]:
    values = [
        r.latency_ms for r in results
        if r.success and r.endpoint.muted is not True and r.endpoint.latency_critical is not False
    ]
    if not values:
        return None
    return sum(values) / len(values)


class AlertPolicy:
    """
    Design (AlertPolicy)
    - Purpose: Decide when a cycle's results deserve a desktop notification.
    - State:
        consecutive: number of consecutive cycles with at least one alerting endpoint
        last_sent: monotonic time of the last delivered notification (None = never)
    - Rules:
        * counter increments on each alerting cycle, resets on a clean cycle
        * notify when counter >= alert_threshold and alert_cooldown minutes have elapsed
        * counter resets only after a notification was actually delivered
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.consecutive = 0
        self.last_sent: Optional[float] = None

    def evaluate(self, results: List[EndpointResult], config: AppConfig) -> Optional[Tuple[str, str]]:
        """Return (title, body) when a notification is due, else None."""
        if not config.notifications_enabled or not results:
            return None
        alerting = [r for r in results if is_alert_candidate(r)]
        if not alerting:
            self.consecutive = 0
            return None

        self.consecutive += 1
        log.info(f"High latency detected. Consecutive count: {self.consecutive}/{config.alert_threshold}")
        if self.consecutive < config.alert_threshold:
            return None
        now = self._clock()
        if self.last_sent is not None and now - self.last_sent < config.alert_cooldown * 60:
            return None
        return self._message(results, alerting, config)

    def mark_sent(self) -> None:
        self.last_sent = self._clock()
        self.consecutive = 0

    @staticmethod
    def _message(results: List[EndpointResult], alerting: List[EndpointResult], config: AppConfig) -> Tuple[str, str]:
        critical = [r for r in alerting if r.status == IconStatus.CRITICAL]
        warning = [r for r in alerting if r.status == IconStatus.WARNING]
        title = "Critical Latency Detected" if critical else "High Latency Warning"

        def fmt(r: EndpointResult) -> str:
            return f"{r.endpoint.name}: {r.latency_ms:.0f}ms" if r.success else f"{r.endpoint.name}: unreachable"

        lines = []
        avg = average_latency(results)
        if avg is not None:
            lines.append(f"Average: {avg:.1f}ms [{classify(avg, config.thresholds).label}]")
        if critical:
            lines.append("Critical: " + ", ".join(fmt(r) for r in critical))
        if warning:
            lines.append("Warning: " + ", ".join(fmt(r) for r in warning))
        return title, "\n".join(lines)


class EndpointMonitor:
    def __init__(
        self,
        resolver: EndpointResolver,
        indicator: Optional[StatusIndicator] = None,
        probe_fn: ProbeFn = probe,
        notify_fn: NotifyFn = notify,
        on_result: Optional[Callable[[EndpointResult], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        policy: Optional[AlertPolicy] = None,
        storage_fn: StorageFn = storage_paths,
        history: Optional[LatencyHistory] = None,
    ):
        self.resolver = resolver
        self.indicator = indicator or StatusIndicator()
        self.probe_fn = probe_fn
        self.notify_fn = notify_fn
        self.on_result = on_result
        self.on_error = on_error
        self.policy = policy or AlertPolicy()
        self.storage_fn = storage_fn
        self.history = history or LatencyHistory()
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._paused = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="endpoint-monitor", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._wake.set()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()
        self._wake.set()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def trigger(self) -> None:
        """Run the next cycle immediately."""
        self._wake.set()

    def probe_endpoint(self, endpoint: Endpoint, config: AppConfig) -> EndpointResult:
        try:
            latency = self.probe_fn(endpoint.url, endpoint.port, endpoint.protocol)
        except Exception as exc:
            # probe collaborators raise ProbeError, but a broken custom probe must not kill the loop
            log.warning(f"Probe failed for {endpoint.id} ({endpoint.url}): {exc}")
            return EndpointResult(endpoint=endpoint, status=IconStatus.CRITICAL, error=str(exc))
        return EndpointResult(
            endpoint=endpoint,
            status=classify(latency, config.thresholds),
            latency_ms=latency,
        )

    def run_cycle(self) -> List[EndpointResult]:
        """
        Purpose: One synchronous resolve -> probe -> classify -> indicate -> alert pass.
        Outputs: Results for the enabled endpoints, in resolution order.
        Raises: MonitorError from resolution (settings/catalog problems).
        """
        view = self.resolver.resolve_settings()
        config = view.config
        endpoints = list(view.endpoints)
        if config.mode == AppMode.SESSION_HOST:
            endpoints.extend(to_endpoint(p) for p in self.storage_fn(self.resolver.store))
        results = []
        for endpoint in endpoints:
            if not endpoint.enabled:
                continue
            result = self.probe_endpoint(endpoint, config)
            results.append(result)
            self.history.record(result)
            self._emit(result)

        self.history.prune(config.retention_days)

        avg = average_latency(results)
        if avg is not None:
            self.indicator.update(avg, config.thresholds)

        message = self.policy.evaluate(results, config)
        if message is not None:
            title, body = message
            log.info(f"Sending notification: {title}")
            if self.notify_fn(title, body):
                self.policy.mark_sent()
        return results

    def _emit(self, result: EndpointResult) -> None:
        if self.on_result is None:
            return
        try:
            self.on_result(result)
        except Exception:
            log.exception("on_result callback failed")

    def _report(self, exc: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(exc)
        except Exception:
            log.exception("on_error callback failed")

    def _interval(self) -> float:
        try:
            return max(1, self.resolver.store.load().config.test_interval)
        except MonitorError:
            return DEFAULT_TEST_INTERVAL_SEC

    def _loop(self) -> None:
        while not self._stop.is_set():
            if not self._paused.is_set():
                try:
                    self.run_cycle()
                except MonitorError as exc:
                    log.error(f"Monitoring cycle failed: {exc}")
                    self._report(exc)
                except Exception as exc:
                    # one bad cycle must not end monitoring for the session
                    log.exception("Unexpected error in monitoring cycle")
                    self._report(exc)
            self._wake.wait(self._interval())
            self._wake.clear()
