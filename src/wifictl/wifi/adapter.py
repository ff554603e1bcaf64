"""
Wi-Fi adapter interface for abstraction over macOS and NetworkManager.
Each adapter turns native command output into primitive facts (radio
state, SSID, addresses, saved profiles, DNS) behind one capability
interface. Test doubles can be injected in CI environments.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from wifictl.errors import CommandNotFoundError, InvalidIPAddressError, WaitTimeoutError
from wifictl.errors import WifiDisableError, WifiEnableError
from wifictl.system.command_executor import CommandExecutor, CommandResult
from wifictl.wifi.status_waiter import StatusWaiter

logger = logging.getLogger(__name__)


class SecurityKind(Enum):
    """Security family of a network or profile."""
    OPEN = "open"
    WEP = "wep"
    PSK = "psk"                  # WPA / WPA2 / WPA3 personal
    ENTERPRISE = "enterprise"    # 802.1X, not supported
    UNKNOWN = "unknown"

    @property
    def supports_password(self) -> bool:
        return self in (SecurityKind.PSK, SecurityKind.WEP)


def canonical_security_kind(raw: Optional[str]) -> SecurityKind:
    """
    Map an OS security description onto a SecurityKind.

    Handles nmcli values ("WPA1 WPA2", "WPA3", "802.1X", "--") and
    system_profiler values ("spairport_security_mode_wpa2_personal").
    """
    if raw is None:
        return SecurityKind.UNKNOWN
    text = raw.strip().upper()
    if text in ("", "--", "NONE", "OPEN") or text.endswith("_NONE"):
        return SecurityKind.OPEN
    if "802.1X" in text or "ENTERPRISE" in text or "EAP" in text:
        return SecurityKind.ENTERPRISE
    if "WPA" in text or "SAE" in text or "PERSONAL" in text:
        return SecurityKind.PSK
    if "WEP" in text:
        return SecurityKind.WEP
    return SecurityKind.UNKNOWN


@dataclass(frozen=True)
class WifiNetwork:
    """A network visible in a scan."""
    ssid: str
    signal: int
    security: SecurityKind = SecurityKind.UNKNOWN


@dataclass(frozen=True)
class NetworkProfile:
    """A saved network configuration owned by the OS."""
    name: str
    ssid: Optional[str] = None
    last_used: int = 0
    security: SecurityKind = SecurityKind.UNKNOWN


@dataclass(frozen=True)
class ConnectStrategy:
    """One OS mechanism for joining a network directly."""
    name: str
    connect: Callable[[str, Optional[str]], CommandResult]


class DnsReset(Enum):
    CLEAR = "clear"


# Passed to set_dns_servers to restore automatic (DHCP/RA) DNS.
CLEAR_DNS = DnsReset.CLEAR

DnsSetting = Union[Sequence[str], DnsReset]


def invalid_ip_addresses(addresses: Iterable[str]) -> List[str]:
    """Return every entry that is not an IPv4 or IPv6 literal."""
    invalid = []
    for address in addresses:
        try:
            ipaddress.ip_address(str(address).strip())
        except ValueError:
            invalid.append(address)
    return invalid


def dedupe_networks(networks: Iterable[WifiNetwork]) -> List[WifiNetwork]:
    """
    Deduplicate by SSID, keeping the strongest entry, and order by
    descending signal. Ties keep first-seen order. Empty SSIDs are dropped.
    """
    best: Dict[str, WifiNetwork] = {}
    first_seen: Dict[str, int] = {}
    for index, network in enumerate(networks):
        if not network.ssid:
            continue
        first_seen.setdefault(network.ssid, index)
        current = best.get(network.ssid)
        if current is None or network.signal > current.signal:
            best[network.ssid] = network
    return sorted(best.values(), key=lambda n: (-n.signal, first_seen[n.ssid]))


class WifiAdapter(ABC):
    """
    Abstract base class for Wi-Fi adapter implementations.

    Subclasses provide the raw OS primitives (underscore methods and the
    profile/credential operations). Public wrappers here add the shared
    policy: radio verification, scan ordering, DNS validation and teardown
    leniency.
    """

    # command name -> install hint
    REQUIRED_COMMANDS: Dict[str, str] = {}

    RADIO_TIMEOUT_SECONDS = 5.0
    RADIO_INTERVAL_SECONDS = 0.5

    def __init__(self, executor: CommandExecutor, interface: str):
        """
        Args:
            executor: Command runner used for every OS call
            interface: Wireless interface name, resolved before construction
        """
        self.executor = executor
        self._interface = interface
        self.waiter = StatusWaiter(self)

    @property
    def interface(self) -> str:
        return self._interface

    @classmethod
    def validate_preconditions(cls, executor: CommandExecutor) -> None:
        """Raise CommandNotFoundError if a required utility is missing."""
        missing = executor.missing_commands(cls.REQUIRED_COMMANDS)
        if missing:
            raise CommandNotFoundError(missing)

    def run(self, args: Sequence[str], **kwargs) -> CommandResult:
        return self.executor.run(args, **kwargs)

    # Radio

    @abstractmethod
    def radio_on(self) -> bool:
        """Return True if the wireless radio is powered."""

    @abstractmethod
    def _set_radio_power(self, on: bool) -> None:
        """Issue the OS command that powers the radio on or off."""

    def set_radio(self, on: bool) -> None:
        """
        Set the radio state and verify it.

        Raises:
            WifiEnableError / WifiDisableError: Verified state does not match
        """
        if self.radio_on() == on:
            return
        logger.info(f"Turning WiFi {'on' if on else 'off'} on {self.interface}")
        self._set_radio_power(on)
        try:
            self.waiter.wait_for(
                'on' if on else 'off',
                timeout_seconds=self.RADIO_TIMEOUT_SECONDS,
                interval_seconds=self.RADIO_INTERVAL_SECONDS)
        except WaitTimeoutError:
            raise WifiEnableError() if on else WifiDisableError()

    def cycle_radio(self) -> None:
        """Turn the radio off and back on."""
        self.set_radio(False)
        self.set_radio(True)

    # Scanning and association

    @abstractmethod
    def _scan(self) -> List[WifiNetwork]:
        """Return raw visible networks, possibly with duplicates."""

    def scan(self) -> List[WifiNetwork]:
        if not self.radio_on():
            return []
        networks = dedupe_networks(self._scan())
        logger.info(f"Scan found {len(networks)} networks")
        return networks

    def available_network_names(self) -> List[str]:
        return [network.ssid for network in self.scan()]

    def security_of(self, ssid: str) -> SecurityKind:
        """Security of a visible network, from a fresh scan."""
        for network in self.scan():
            if network.ssid == ssid:
                return network.security
        return SecurityKind.UNKNOWN

    @abstractmethod
    def _connected_network(self) -> Optional[str]:
        """Return the associated SSID, or None."""

    def connected_network(self) -> Optional[str]:
        if not self.radio_on():
            return None
        return self._connected_network()

    def connected_to(self, ssid: str) -> bool:
        return ssid == self.connected_network()

    @abstractmethod
    def connect_strategies(self) -> List[ConnectStrategy]:
        """Direct-connect mechanisms, preferred first."""

    @abstractmethod
    def activate_profile(self, name: str) -> None:
        """Bring up a saved profile with its stored settings."""

    @abstractmethod
    def update_profile_credential(
            self, name: str, security: SecurityKind, password: str) -> None:
        """Replace the stored credential of a saved profile."""

    def failure_signatures(self) -> list:
        """Platform failure signatures, checked ahead of the generic activation failure."""
        return []

    @abstractmethod
    def _disconnect(self) -> None:
        """Tear down the association; must tolerate 'not connected'."""

    def disconnect(self) -> None:
        """Disconnect without powering off the radio. Already disconnected is success."""
        if not self.radio_on():
            return
        if self._connected_network() is None:
            logger.debug("Disconnect requested while not associated")
            return
        self._disconnect()

    # Saved profiles

    @abstractmethod
    def list_saved_profiles(self) -> List[NetworkProfile]:
        """Saved wireless profiles known to the OS."""

    def saved_profile_names(self) -> List[str]:
        return sorted((p.name for p in self.list_saved_profiles()), key=str.casefold)

    @abstractmethod
    def _remove_profile(self, name: str) -> None:
        """Delete a profile known to exist."""

    def remove_profile(self, name: str) -> bool:
        """
        Remove a saved profile.

        Returns:
            True if removed, False if it did not exist (not an error)
        """
        if name not in self.saved_profile_names():
            logger.debug(f"Profile {name!r} not present; nothing to remove")
            return False
        self._remove_profile(name)
        logger.info(f"Removed saved profile {name!r}")
        return True

    def remove_profiles(self, names: Iterable[str]) -> List[str]:
        """Remove each existing profile; returns the names actually removed."""
        existing = set(self.saved_profile_names())
        removed = []
        for name in names:
            if name in existing:
                self._remove_profile(name)
                removed.append(name)
        return removed

    @abstractmethod
    def profile_password(self, name: str) -> Optional[str]:
        """Stored password of a profile, or None if it has none."""

    # DNS

    @abstractmethod
    def dns_servers(self) -> List[str]:
        """Nameservers currently in effect."""

    @abstractmethod
    def _apply_dns_servers(self, servers: DnsSetting) -> None:
        """Apply an already validated server list, or CLEAR_DNS."""

    def set_dns_servers(self, servers: DnsSetting) -> DnsSetting:
        """
        Set DNS servers, or restore automatic DNS with CLEAR_DNS.

        Raises:
            InvalidIPAddressError: Listing every invalid entry; nothing is applied
        """
        if servers is not CLEAR_DNS:
            servers = list(servers)
            invalid = invalid_ip_addresses(servers)
            if invalid:
                raise InvalidIPAddressError(invalid)
        self._apply_dns_servers(servers)
        logger.info(f"DNS servers set to {servers}")
        return servers

    # Addresses

    @abstractmethod
    def mac_address(self) -> Optional[str]:
        """Hardware address of the wireless interface."""

    @abstractmethod
    def ip_address(self) -> Optional[str]:
        """IPv4 address of the wireless interface, or None."""

    @abstractmethod
    def default_route_interface(self) -> Optional[str]:
        """Interface carrying the default route, or None."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(interface={self.interface!r})"
