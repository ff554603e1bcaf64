"""
Polling status monitor.
Takes a snapshot each tick, diffs it against the previous one and
dispatches the resulting events to every sink.
"""

import logging
import sys
import threading
from datetime import datetime
from typing import Iterable, List, Optional

from wifictl.config import load_config
from wifictl.connectivity.prober import ConnectivityProber
from wifictl.errors import WifiError
from wifictl.logging import configure_from_config
from wifictl.monitor.events import ConnectivitySnapshot, Event, detect_events
from wifictl.monitor.sinks import EventSink, build_sinks
from wifictl.system.platforms import create_adapter
from wifictl.wifi.adapter import WifiAdapter

logger = logging.getLogger(__name__)


class StatusMonitor:
    """
    Change-driven WiFi/internet event monitor.

    Lifecycle:
    1. First tick: emit one monitoring-started event describing the state
    2. Later ticks: emit one event per changed field, none when unchanged
    3. stop() ends the loop before the next tick; a tick is never interrupted
    """

    DEFAULT_INTERVAL_SECONDS = 5.0

    def __init__(
            self,
            adapter: WifiAdapter,
            prober: ConnectivityProber,
            sinks: Iterable[EventSink] = (),
            interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        self.adapter = adapter
        self.prober = prober
        self.sinks: List[EventSink] = list(sinks)
        self.interval_seconds = interval_seconds
        self.previous: Optional[ConnectivitySnapshot] = None
        self._stop = threading.Event()

    def take_snapshot(self) -> ConnectivitySnapshot:
        radio_on = self.adapter.radio_on()
        if not radio_on:
            # Probing with the radio off can hang; nothing is reachable anyway.
            return ConnectivitySnapshot(radio_on=False)
        network = self.adapter.connected_network()
        result = self.prober.probe()
        return ConnectivitySnapshot(
            radio_on=True,
            network=network,
            tcp_ok=result.tcp_ok,
            dns_ok=result.dns_ok
        )

    def observe(self, snapshot: ConnectivitySnapshot) -> List[Event]:
        """Diff a snapshot against the previous one and dispatch its events."""
        events = detect_events(self.previous, snapshot, datetime.now())
        for event in events:
            self._dispatch(event)
        self.previous = snapshot
        return events

    def tick(self) -> List[Event]:
        return self.observe(self.take_snapshot())

    def _dispatch(self, event: Event) -> None:
        logger.info(event.details)
        for sink in self.sinks:
            sink.handle(event)

    def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Poll until stop() is called (or max_ticks ticks have run).
        Errors while polling propagate and end monitoring.
        """
        self._stop.clear()
        ticks = 0
        logger.info(f"Event monitoring started (polling every {self.interval_seconds}s)")
        try:
            while not self._stop.is_set():
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                self._stop.wait(self.interval_seconds)
        finally:
            logger.info("Event monitoring stopped")
            self.close()

    def stop(self) -> None:
        self._stop.set()

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()


def main(config_file: Optional[str] = None) -> int:
    """Monitor entry point: load config, set up logging, poll until interrupted."""
    cfg = load_config(config_file)
    configure_from_config(cfg)

    try:
        monitor = StatusMonitor(
            create_adapter(cfg['wifi']),
            ConnectivityProber.from_config(cfg['connectivity']),
            sinks=build_sinks(cfg['monitor']),
            interval_seconds=cfg['monitor']['interval'])
        monitor.run()
        return 0
    except KeyboardInterrupt:
        logger.warning("Monitoring interrupted by user")
        return 130
    except WifiError as e:
        logger.error(f"Monitoring failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else None))
