"""
test_monitor.py: Unit tests for avdhealth/monitor.py

Probes, notifications and the clock are faked; no network access.
"""

import json
import threading
import time

from avdhealth.config import SESSIONHOST_ENDPOINTS_FILENAME
from avdhealth.errors import ParseError, ProbeError
from avdhealth.fslogix import StoragePath
from avdhealth.health import StatusIndicator
from avdhealth.models import AppConfig, AppMode, Endpoint, IconStatus
from avdhealth.monitor import AlertPolicy, EndpointMonitor, EndpointResult, average_latency

from conftest import sessionhost_catalog


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class RecordingHandle:
    def __init__(self):
        self.calls = []

    def set_status(self, status, latency_ms):
        self.calls.append((status, latency_ms))


def _result(name, status, latency=None, muted=None, latency_critical=None):
    ep = Endpoint(id=name, name=name, url=f"{name}.example.com", muted=muted, latency_critical=latency_critical)
    return EndpointResult(endpoint=ep, status=status, latency_ms=latency)


def _config(**overrides):
    values = {"alert_threshold": 2, "alert_cooldown": 5}
    values.update(overrides)
    return AppConfig(**values)


def _fixed_latency(table):
    def probe(host, port, protocol):
        value = table[host]
        if isinstance(value, Exception):
            raise value
        return value
    return probe


class TestAverageLatency:
    def test_ignores_failed_muted_and_non_critical(self):
        results = [
            _result("a", IconStatus.GOOD, 50),
            _result("b", IconStatus.EXCELLENT, 10),
            _result("c", IconStatus.CRITICAL),
            _result("d", IconStatus.CRITICAL, 900, muted=True),
            _result("e", IconStatus.CRITICAL, 900, latency_critical=False),
        ]
        assert average_latency(results) == 30

    def test_none_when_nothing_measured(self):
        assert average_latency([_result("a", IconStatus.CRITICAL)]) is None


class TestAlertPolicy:
    def test_threshold_consecutive_cycles(self):
        policy = AlertPolicy(clock=FakeClock())
        bad = [_result("a", IconStatus.WARNING, 120)]
        assert policy.evaluate(bad, _config()) is None
        title, body = policy.evaluate(bad, _config())
        assert title == "High Latency Warning"
        assert "a: 120ms" in body

    def test_clean_cycle_resets_counter(self):
        policy = AlertPolicy(clock=FakeClock())
        bad = [_result("a", IconStatus.WARNING, 120)]
        good = [_result("a", IconStatus.EXCELLENT, 10)]
        policy.evaluate(bad, _config())
        policy.evaluate(good, _config())
        assert policy.consecutive == 0
        assert policy.evaluate(bad, _config()) is None

    def test_cooldown_blocks_repeat(self):
        clock = FakeClock()
        policy = AlertPolicy(clock=clock)
        bad = [_result("a", IconStatus.CRITICAL, 500)]
        config = _config(alert_threshold=1, alert_cooldown=5)

        assert policy.evaluate(bad, config)[0] == "Critical Latency Detected"
        policy.mark_sent()
        clock.now += 60
        assert policy.evaluate(bad, config) is None
        clock.now += 5 * 60
        assert policy.evaluate(bad, config) is not None

    def test_muted_and_non_critical_never_alert(self):
        policy = AlertPolicy(clock=FakeClock())
        results = [
            _result("m", IconStatus.CRITICAL, 900, muted=True),
            _result("n", IconStatus.CRITICAL, 900, latency_critical=False),
        ]
        config = _config(alert_threshold=1)
        assert policy.evaluate(results, config) is None
        assert policy.consecutive == 0

    def test_failed_probe_counts_as_critical(self):
        policy = AlertPolicy(clock=FakeClock())
        title, body = policy.evaluate([_result("a", IconStatus.CRITICAL)], _config(alert_threshold=1))
        assert title == "Critical Latency Detected"
        assert "a: unreachable" in body

    def test_disabled_notifications(self):
        policy = AlertPolicy(clock=FakeClock())
        config = _config(alert_threshold=1, notifications_enabled=False)
        assert policy.evaluate([_result("a", IconStatus.CRITICAL, 900)], config) is None


class TestEndpointMonitor:
    def _monitor(self, resolver, latencies, **kwargs):
        kwargs.setdefault("storage_fn", lambda store: [])
        kwargs.setdefault("notify_fn", lambda title, body: True)
        return EndpointMonitor(resolver, probe_fn=_fixed_latency(latencies), **kwargs)

    def test_cycle_probes_enabled_endpoints_in_order(self, resolver, updater):
        updater.update(AppMode.SESSION_HOST, "kms", enabled=False)
        seen = []
        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": 20.0,
            "rdbroker.wvd.microsoft.com": 40.0,
            "rdweb.wvd.microsoft.com": 60.0,
        }, on_result=seen.append)

        results = monitor.run_cycle()
        assert [r.endpoint.id for r in results] == ["login", "wvd-rdbroker", "wvd-rdweb"]
        assert [r.status for r in results] == [IconStatus.EXCELLENT, IconStatus.GOOD, IconStatus.GOOD]
        assert seen == results

    def test_indicator_gets_average(self, resolver):
        handle = RecordingHandle()
        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": 20.0,
            "rdbroker.wvd.microsoft.com": 40.0,
            "rdweb.wvd.microsoft.com": 60.0,
            "azkms.core.windows.net": 999.0,  # latencyCritical false, excluded
        }, indicator=StatusIndicator(handle))
        monitor.run_cycle()
        assert handle.calls == [(IconStatus.GOOD, 40.0)]

    def test_probe_failure_is_critical_result(self, resolver):
        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": ProbeError("refused"),
            "rdbroker.wvd.microsoft.com": 10.0,
            "rdweb.wvd.microsoft.com": 10.0,
            "azkms.core.windows.net": 10.0,
        })
        results = monitor.run_cycle()
        assert results[0].status == IconStatus.CRITICAL
        assert results[0].success is False
        assert results[0].error == "refused"

    def test_notification_sent_after_threshold(self, resolver, store):
        store.update(lambda doc: setattr(doc.config, "alert_threshold", 1))
        sent = []
        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": 500.0,
            "rdbroker.wvd.microsoft.com": 10.0,
            "rdweb.wvd.microsoft.com": 10.0,
            "azkms.core.windows.net": 10.0,
        }, notify_fn=lambda title, body: sent.append(title) or True)
        monitor.run_cycle()
        monitor.run_cycle()
        # second cycle is inside the cooldown window
        assert sent == ["Critical Latency Detected"]

    def test_failed_delivery_is_retried(self, resolver, store):
        store.update(lambda doc: setattr(doc.config, "alert_threshold", 1))
        attempts = []
        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": 500.0,
            "rdbroker.wvd.microsoft.com": 10.0,
            "rdweb.wvd.microsoft.com": 10.0,
            "azkms.core.windows.net": 10.0,
        }, notify_fn=lambda title, body: attempts.append(title) and False)
        monitor.run_cycle()
        monitor.run_cycle()
        assert len(attempts) == 2

    def test_callback_exception_does_not_stop_cycle(self, resolver):
        def broken(result):
            raise RuntimeError("ui gone")

        monitor = self._monitor(resolver, {
            "login.microsoftonline.com": 1.0,
            "rdbroker.wvd.microsoft.com": 1.0,
            "rdweb.wvd.microsoft.com": 1.0,
            "azkms.core.windows.net": 1.0,
        }, on_result=broken)
        assert len(monitor.run_cycle()) == 4

    def test_sessionhost_probes_fslogix_storage(self, resolver):
        paths = [StoragePath(id="fslogix-profile-0", type="profile", path=r"\\files\profiles", hostname="files")]
        calls = []

        def probe(host, port, protocol):
            calls.append((host, port))
            return 5.0

        monitor = EndpointMonitor(resolver, probe_fn=probe, notify_fn=lambda t, b: True,
                                  storage_fn=lambda store: paths)
        results = monitor.run_cycle()
        assert results[-1].endpoint.id == "fslogix-profile-0"
        assert calls[-1] == ("files", 445)

    def test_enduser_skips_fslogix_storage(self, resolver, store):
        store.update(lambda doc: setattr(doc.config, "mode", AppMode.END_USER))

        def storage_fn(store):
            raise AssertionError("storage paths are SessionHost-only")

        monitor = self._monitor(resolver, {"login.microsoftonline.com": 5.0}, storage_fn=storage_fn)
        assert [r.endpoint.id for r in monitor.run_cycle()] == ["eu-login"]

    def test_pause_resume_flags(self, resolver):
        monitor = self._monitor(resolver, {})
        assert monitor.paused is False
        monitor.pause()
        assert monitor.paused is True
        monitor.resume()
        assert monitor.paused is False


class TestMonitorThread:
    def test_parse_error_reported_and_thread_keeps_running(self, resolver, settings_dir):
        """A catalog that is not UTF-8 reaches on_error; the worker stays alive."""
        (settings_dir / SESSIONHOST_ENDPOINTS_FILENAME).write_bytes(
            json.dumps(sessionhost_catalog()).replace("Login", "L\xf6gin").encode("latin-1")
        )
        reported = []
        seen = threading.Event()

        def on_error(exc):
            reported.append(exc)
            seen.set()

        monitor = EndpointMonitor(resolver, probe_fn=lambda h, p, pr: 1.0, notify_fn=lambda t, b: True,
                                  storage_fn=lambda store: [], on_error=on_error)
        monitor.start()
        try:
            assert seen.wait(5)
            assert isinstance(reported[0], ParseError)
            assert monitor._thread.is_alive()
        finally:
            monitor.stop()
            monitor._thread.join(timeout=5)

    def test_unexpected_exception_does_not_end_loop(self, resolver):
        calls = []
        second_cycle = threading.Event()

        class FlakyResolver:
            store = resolver.store

            def resolve_settings(self):
                calls.append(1)
                if len(calls) == 1:
                    raise RuntimeError("boom")
                second_cycle.set()
                return resolver.resolve_settings()

        reported = []
        monitor = EndpointMonitor(FlakyResolver(), probe_fn=lambda h, p, pr: 1.0, notify_fn=lambda t, b: True,
                                  storage_fn=lambda store: [], on_error=reported.append)
        monitor.start()
        try:
            deadline = time.monotonic() + 5
            while not reported and time.monotonic() < deadline:
                time.sleep(0.01)
            monitor.trigger()
            assert second_cycle.wait(5)
            assert isinstance(reported[0], RuntimeError)
        finally:
            monitor.stop()
            monitor._thread.join(timeout=5)

    def test_failing_error_callback_is_contained(self, resolver, caplog):
        def on_error(exc):
            raise RuntimeError("dialog gone")

        monitor = EndpointMonitor(resolver, on_error=on_error)
        monitor._report(ParseError("bad"))
        assert "on_error callback failed" in caplog.text
