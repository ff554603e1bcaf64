"""
Network state capture and restore around disruptive operations.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from wifictl.connection.orchestrator import ConnectionOrchestrator
from wifictl.errors import WifiError
from wifictl.wifi.adapter import CLEAR_DNS, WifiAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateSnapshot:
    """Radio state, connected network and DNS servers at one point in time."""
    radio_on: bool
    network: Optional[str]
    dns_servers: Tuple[str, ...] = ()
    interface: Optional[str] = None
    captured_at: datetime = field(default_factory=datetime.now, compare=False)


@dataclass
class RestoreReport:
    """Steps of a restore that failed, with their error messages."""
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def record(self, step: str, error: Exception) -> None:
        self.failures.append((step, str(error)))


class StateSnapshotManager:
    """
    Captures and restores network state.

    Restore is best-effort: each step (radio, reconnect, DNS) runs even
    when an earlier one failed, and failures are reported as warnings.
    """

    def __init__(self, adapter: WifiAdapter,
                 orchestrator: Optional[ConnectionOrchestrator] = None):
        self.adapter = adapter
        self.orchestrator = orchestrator or ConnectionOrchestrator(adapter)

    def capture(self) -> StateSnapshot:
        radio_on = self.adapter.radio_on()
        snapshot = StateSnapshot(
            radio_on=radio_on,
            network=self.adapter.connected_network() if radio_on else None,
            dns_servers=tuple(self.adapter.dns_servers()),
            interface=self.adapter.interface,
        )
        logger.debug(f"Captured network state: {snapshot}")
        return snapshot

    def restore(self, snapshot: Optional[StateSnapshot]) -> RestoreReport:
        """
        Re-apply a captured state.

        Returns:
            RestoreReport listing the steps that could not be restored
        """
        report = RestoreReport()
        if snapshot is None:
            return report
        logger.info(f"Restoring network state: {snapshot}")

        if snapshot.radio_on:
            self._step(report, 'radio', lambda: self.adapter.set_radio(True))
            if snapshot.network:
                self._step(report, 'network', lambda: self._reconnect(snapshot.network))

        self._step(report, 'dns', lambda: self._restore_dns(snapshot.dns_servers))

        if not snapshot.radio_on:
            self._step(report, 'radio', lambda: self.adapter.set_radio(False))

        if not report.ok and snapshot.network:
            logger.warning(f"You may need to manually reconnect to: {snapshot.network}")
        return report

    @contextmanager
    def preserved(self) -> Iterator[StateSnapshot]:
        """Capture state, run the block, then restore it."""
        snapshot = self.capture()
        try:
            yield snapshot
        finally:
            self.restore(snapshot)

    def _step(self, report: RestoreReport, name: str, action) -> None:
        try:
            action()
        except WifiError as e:
            logger.warning(f"Could not restore {name}: {e}")
            report.record(name, e)

    def _reconnect(self, network: str) -> None:
        if self.adapter.connected_network() == network:
            return
        # May prompt for keychain access on macOS.
        password = self.adapter.profile_password(network)
        self.orchestrator.connect(network, password)

    def _restore_dns(self, servers: Tuple[str, ...]) -> None:
        if tuple(self.adapter.dns_servers()) == tuple(servers):
            return
        self.adapter.set_dns_servers(list(servers) if servers else CLEAR_DNS)
