"""
Design (probe.py)
- Purpose: Measure reachability latency to one endpoint (TCP connect or HTTP GET).
- Inputs: host, port, protocol ("tcp" default, "http", "https").
- Outputs: Latency in milliseconds (float).
- Side effects: Opens a network connection; each call is bounded by its own timeout.
- Thread-safety: Stateless; safe to call from any thread.
"""

import socket
import time
from typing import Optional

import requests

from .config import DEFAULT_PORT, HTTP_TIMEOUT_SEC, TCP_TIMEOUT_SEC
from .errors import ProbeError


def tcp_latency(host: str, port: int, timeout: float = TCP_TIMEOUT_SEC) -> float:
    """Time a TCP connect (name resolution excluded)."""
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise ProbeError(f"Cannot resolve {host}: {exc}") from exc
    if not infos:
        raise ProbeError(f"No addresses found for {host}")
    address = infos[0][4][:2]

    t0 = time.perf_counter()
    try:
        with socket.create_connection(address, timeout=timeout):
            elapsed_ms = (time.perf_counter() - t0) * 1000.0
    except socket.timeout as exc:
        raise ProbeError(f"Connection timeout to {host}:{port}") from exc
    except OSError as exc:
        raise ProbeError(f"Connection to {host}:{port} failed: {exc}") from exc
    return elapsed_ms


def http_latency(url: str, timeout: float = HTTP_TIMEOUT_SEC) -> float:
    """
    Time an HTTP GET. Any response status counts as reachable: this measures the network
    path, not the application (some endpoints answer 404 and are still healthy).
    """
    t0 = time.perf_counter()
    try:
        with requests.get(url, timeout=timeout, stream=True):
            return (time.perf_counter() - t0) * 1000.0
    except requests.RequestException as exc:
        raise ProbeError(f"HTTP request to {url} failed: {exc}") from exc


def probe(host: str, port: Optional[int] = None, protocol: Optional[str] = None) -> float:
    """Dispatch on protocol; anything other than http/https is a TCP connect test."""
    port = port or DEFAULT_PORT
    protocol = (protocol or "tcp").lower()
    if protocol in ("http", "https"):
        return http_latency(f"{protocol}://{host}:{port}")
    return tcp_latency(host, port)
