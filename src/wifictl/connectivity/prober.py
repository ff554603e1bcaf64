"""
Internet connectivity prober.
Runs a TCP reachability check and a DNS resolution check concurrently,
each with its own timeout, under an overall ceiling. A check still
pending at its deadline counts as failed and is abandoned.
"""

import logging
import socket
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import yaml

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / 'data'

TCP_TIMEOUT_SECONDS = 5.0
DNS_TIMEOUT_SECONDS = 5.0
# Slightly looser than either check to absorb scheduling jitter.
OVERALL_TIMEOUT_SECONDS = 6.0


def load_tcp_endpoints(path: Optional[Path] = None) -> List[Tuple[str, int]]:
    """Load (host, port) pairs from the endpoints YAML file."""
    path = Path(path) if path else DATA_DIR / 'tcp_test_endpoints.yaml'
    with open(path, 'r', encoding='utf-8') as fh:
        data = yaml.safe_load(fh) or {}
    return [(entry['host'], int(entry['port'])) for entry in data.get('endpoints', [])]


def load_dns_domains(path: Optional[Path] = None) -> List[str]:
    """Load hostnames from the DNS domains YAML file."""
    path = Path(path) if path else DATA_DIR / 'dns_test_domains.yaml'
    with open(path, 'r', encoding='utf-8') as fh:
        data = yaml.safe_load(fh) or {}
    return [entry['domain'] for entry in data.get('domains', [])]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one combined probe."""
    tcp_ok: bool
    dns_ok: bool
    duration: float = 0.0

    @property
    def internet(self) -> bool:
        return self.tcp_ok and self.dns_ok


class TcpCheck:
    """Opens a TCP connection to the first reachable endpoint."""

    def __init__(self, endpoints: Sequence[Tuple[str, int]],
                 timeout_seconds: float = TCP_TIMEOUT_SECONDS):
        self.endpoints = list(endpoints)
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._open_sockets: List[socket.socket] = []

    def __call__(self) -> bool:
        deadline = time.monotonic() + self.timeout_seconds
        for host, port in self.endpoints:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if self._try_endpoint(host, port, remaining):
                logger.debug(f"TCP connection to {host}:{port} succeeded")
                return True
        return False

    def _try_endpoint(self, host: str, port: int, timeout: float) -> bool:
        try:
            family, kind, proto, _, address = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM)[0]
        except OSError as e:
            logger.debug(f"Could not resolve {host}: {e}")
            return False
        sock = socket.socket(family, kind, proto)
        with self._lock:
            self._open_sockets.append(sock)
        try:
            sock.settimeout(timeout)
            sock.connect(address)
            return True
        except OSError as e:
            logger.debug(f"TCP connection to {host}:{port} failed: {e}")
            return False
        finally:
            with self._lock:
                if sock in self._open_sockets:
                    self._open_sockets.remove(sock)
            sock.close()

    def abort(self) -> None:
        """Close any socket still connecting so the worker returns."""
        with self._lock:
            sockets, self._open_sockets = self._open_sockets, []
        for sock in sockets:
            sock.close()


class DnsCheck:
    """Resolves the first resolvable hostname."""

    def __init__(self, domains: Sequence[str]):
        self.domains = list(domains)

    def __call__(self) -> bool:
        for domain in self.domains:
            try:
                socket.getaddrinfo(domain, None)
                logger.debug(f"Resolved {domain}")
                return True
            except OSError as e:
                logger.debug(f"Could not resolve {domain}: {e}")
        return False


def run_in_background(name: str, check: Callable[[], bool]) -> Future:
    """
    Run a check on its own daemon thread and return a Future for its result.

    The thread is never joined, by the caller or at interpreter exit.
    """
    future: Future = Future()

    def worker() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(check())
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=worker, name=f"wifictl-probe-{name}", daemon=True).start()
    return future


class ConnectivityProber:
    """
    Combined TCP + DNS internet check.

    Both checks start together on daemon threads; the call returns
    once both finish or their deadlines pass, never later than the
    overall ceiling.
    """

    def __init__(
            self,
            tcp_endpoints: Optional[Sequence[Tuple[str, int]]] = None,
            dns_domains: Optional[Sequence[str]] = None,
            tcp_timeout_seconds: float = TCP_TIMEOUT_SECONDS,
            dns_timeout_seconds: float = DNS_TIMEOUT_SECONDS,
            overall_timeout_seconds: float = OVERALL_TIMEOUT_SECONDS,
            tcp_check: Optional[Callable[[], bool]] = None,
            dns_check: Optional[Callable[[], bool]] = None):
        """
        Args:
            tcp_endpoints: (host, port) pairs; defaults to the packaged list
            dns_domains: Hostnames to resolve; defaults to the packaged list
            tcp_timeout_seconds: TCP check budget
            dns_timeout_seconds: DNS check budget
            overall_timeout_seconds: Ceiling for the combined call
            tcp_check: Replace the TCP check (testing)
            dns_check: Replace the DNS check (testing)
        """
        self.tcp_timeout_seconds = tcp_timeout_seconds
        self.dns_timeout_seconds = dns_timeout_seconds
        self.overall_timeout_seconds = overall_timeout_seconds
        self.tcp_check = tcp_check or TcpCheck(
            tcp_endpoints if tcp_endpoints is not None else load_tcp_endpoints(),
            tcp_timeout_seconds)
        self.dns_check = dns_check or DnsCheck(
            dns_domains if dns_domains is not None else load_dns_domains())

    @classmethod
    def from_config(cls, connectivity_config: dict) -> 'ConnectivityProber':
        """Build from the 'connectivity' config section."""
        endpoints = connectivity_config.get('tcp_endpoints')
        if endpoints is not None:
            endpoints = [(e['host'], int(e['port'])) for e in endpoints]
        return cls(
            tcp_endpoints=endpoints,
            dns_domains=connectivity_config.get('dns_domains'),
            tcp_timeout_seconds=connectivity_config.get('tcp_timeout', TCP_TIMEOUT_SECONDS),
            dns_timeout_seconds=connectivity_config.get('dns_timeout', DNS_TIMEOUT_SECONDS),
            overall_timeout_seconds=connectivity_config.get(
                'overall_timeout', OVERALL_TIMEOUT_SECONDS),
        )

    def probe(self) -> ProbeResult:
        """Run both checks concurrently and combine them."""
        start = time.monotonic()
        ceiling = start + self.overall_timeout_seconds
        tcp_future = run_in_background('tcp', self.tcp_check)
        dns_future = run_in_background('dns', self.dns_check)
        tcp_ok = self._await(
            'tcp', tcp_future, self.tcp_check,
            min(start + self.tcp_timeout_seconds, ceiling))
        dns_ok = self._await(
            'dns', dns_future, self.dns_check,
            min(start + self.dns_timeout_seconds, ceiling))

        result = ProbeResult(tcp_ok, dns_ok, time.monotonic() - start)
        logger.debug(
            f"Probe: tcp={tcp_ok} dns={dns_ok} internet={result.internet} "
            f"in {result.duration:.2f}s")
        return result

    @staticmethod
    def _await(name: str, future: Future, check: Callable, deadline: float) -> bool:
        try:
            return bool(future.result(timeout=max(0.0, deadline - time.monotonic())))
        except FutureTimeoutError:
            logger.warning(f"{name} check did not finish in time; treating as failed")
            abort = getattr(check, 'abort', None)
            if abort is not None:
                abort()
            return False
        except Exception as e:
            logger.warning(f"{name} check raised {type(e).__name__}: {e}")
            return False

    def tcp_ok(self) -> bool:
        return self.probe().tcp_ok

    def dns_ok(self) -> bool:
        return self.probe().dns_ok

    def internet_available(self) -> bool:
        return self.probe().internet
