"""
Connectivity snapshots, events and change detection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now()


class EventKind(Enum):
    """Kinds of detected transitions."""
    RADIO_ON = "radio-on"
    RADIO_OFF = "radio-off"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    INTERNET_AVAILABLE = "internet-available"
    INTERNET_UNAVAILABLE = "internet-unavailable"
    MONITORING_STARTED = "monitoring-started"   # synthetic, first tick only


@dataclass(frozen=True)
class ConnectivitySnapshot:
    """One observation of radio, association and internet state."""
    radio_on: bool
    network: Optional[str] = None
    tcp_ok: bool = False
    dns_ok: bool = False
    captured_at: datetime = field(default_factory=_now, compare=False)

    @property
    def internet(self) -> bool:
        return self.tcp_ok and self.dns_ok

    def to_state_dict(self) -> Dict[str, Any]:
        """State as carried in hook payloads."""
        return {
            "radio_on": self.radio_on,
            "network": self.network,
            "internet": self.internet,
        }

    def summary(self) -> str:
        radio = "WiFi ON" if self.radio_on else "WiFi OFF"
        network = f"connected to {self.network}" if self.network else "not connected"
        internet = "Internet available" if self.internet else "Internet unavailable"
        return f"{radio}, {network}, {internet}"


@dataclass(frozen=True)
class Event:
    """A single detected transition."""
    kind: EventKind
    details: str
    current: ConnectivitySnapshot
    previous: Optional[ConnectivitySnapshot] = None
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the hook JSON schema."""
        previous = self.previous or self.current
        return {
            "type": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
            "previous_state": previous.to_state_dict(),
            "current_state": self.current.to_state_dict(),
        }

    def log_line(self) -> str:
        """`[YYYY-MM-DD HH:MM:SS] details`"""
        return f"[{self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] {self.details}"


def detect_events(
        previous: Optional[ConnectivitySnapshot],
        current: ConnectivitySnapshot,
        now: Optional[datetime] = None) -> List[Event]:
    """
    Compare two consecutive snapshots.

    Returns a single monitoring-started event when there is no previous
    snapshot; otherwise one event per changed field, in the order radio,
    network, internet. Unchanged snapshots yield no events.
    """
    now = now or datetime.now()

    def event(kind: EventKind, details: str) -> Event:
        return Event(kind, details, current, previous, now)

    if previous is None:
        return [event(EventKind.MONITORING_STARTED, f"Monitoring started: {current.summary()}")]

    events = []
    if current.radio_on != previous.radio_on:
        if current.radio_on:
            events.append(event(EventKind.RADIO_ON, "WiFi ON"))
        else:
            events.append(event(EventKind.RADIO_OFF, "WiFi OFF"))

    if current.network != previous.network:
        if previous.network is not None:
            events.append(event(EventKind.DISCONNECTED, f"Disconnected from {previous.network}"))
        if current.network is not None:
            events.append(event(EventKind.CONNECTED, f"Connected to {current.network}"))

    if current.internet != previous.internet:
        if current.internet:
            events.append(event(EventKind.INTERNET_AVAILABLE, "Internet available"))
        else:
            events.append(event(EventKind.INTERNET_UNAVAILABLE, "Internet unavailable"))

    return events
