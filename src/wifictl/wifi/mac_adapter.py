"""
macOS Wi-Fi adapter implementation.
Shells out to networksetup, system_profiler, ipconfig, scutil and the
keychain `security` tool. An optional CoreWLAN helper executable is
preferred for joining networks, with networksetup as the legacy fallback.
Leaving a network requires the helper.
"""

import json
import logging
import os
import re
from typing import List, Optional

from wifictl.connection.classification import FailureSignature
from wifictl.errors import (
    CredentialAccessCancelledError,
    CredentialAccessDeniedError,
    CredentialNonInteractiveError,
    CredentialStoreError,
    HelperRequiredError,
    NetworkAuthenticationError,
    OsCommandError,
    WifiInterfaceError,
)
from wifictl.system.command_executor import CommandExecutor, CommandResult
from wifictl.wifi.adapter import (
    CLEAR_DNS,
    ConnectStrategy,
    DnsSetting,
    NetworkProfile,
    SecurityKind,
    WifiAdapter,
    WifiNetwork,
    canonical_security_kind,
)

logger = logging.getLogger(__name__)

KEYCHAIN_DESCRIPTION = 'AirPort network password'

# `security find-generic-password` exit codes
KEYCHAIN_ITEM_NOT_FOUND = 44
KEYCHAIN_ERRORS = {
    45: CredentialAccessDeniedError,
    128: CredentialAccessCancelledError,
    51: CredentialNonInteractiveError,
}

# `ipconfig getifaddr` exits 1 when the interface has no address
IPCONFIG_NO_ADDRESS = 1


def dbm_to_percent(dbm: int) -> int:
    """Roughly -50 dBm and above = 100%, -100 dBm = 0%."""
    return max(0, min(100, 2 * (dbm + 100)))


class MacAdapter(WifiAdapter):
    """Wi-Fi adapter implementation for macOS."""

    REQUIRED_COMMANDS = {
        'networksetup': 'part of macOS',
        'system_profiler': 'part of macOS',
        'ipconfig': 'part of macOS',
        'scutil': 'part of macOS',
        'security': 'part of macOS',
        'ifconfig': 'part of macOS',
    }

    def __init__(
            self,
            executor: CommandExecutor,
            interface: str,
            service_name: str = 'Wi-Fi',
            helper_path: Optional[str] = None):
        """
        Args:
            executor: Command runner
            interface: Wireless interface, e.g. en0
            service_name: Network service name used by networksetup
            helper_path: CoreWLAN helper executable, if installed
        """
        super().__init__(executor, interface)
        self._service_name = service_name
        self._helper_path = helper_path

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def helper_path(self) -> Optional[str]:
        return self._helper_path

    @classmethod
    def create(cls, executor: Optional[CommandExecutor] = None,
               interface: Optional[str] = None,
               helper_path: Optional[str] = None) -> 'MacAdapter':
        """Validate preconditions and resolve interface and service name once."""
        executor = executor or CommandExecutor()
        cls.validate_preconditions(executor)
        ports = cls.wifi_hardware_ports(executor)
        if not ports:
            raise WifiInterfaceError()
        if interface:
            matching = [port for port in ports if port[1] == interface]
            if not matching:
                raise WifiInterfaceError(interface, " or is not a WiFi interface")
            service_name = matching[0][0]
        else:
            service_name, interface = ports[0]
        if helper_path and not os.access(helper_path, os.X_OK):
            logger.warning(f"Helper {helper_path} is not executable; using networksetup only")
            helper_path = None
        logger.info(f"Using macOS adapter on {interface} (service {service_name!r})")
        return cls(executor, interface, service_name, helper_path)

    @staticmethod
    def wifi_hardware_ports(executor: CommandExecutor) -> List[tuple]:
        """
        (service name, device) pairs of Wi-Fi hardware ports.

        Parses blocks like:
            Hardware Port: Wi-Fi
            Device: en0
            Ethernet Address: ac:bc:32:b9:a9:9d
        """
        output = executor.run(['networksetup', '-listallhardwareports']).stdout
        ports = []
        port_name = None
        for line in output.splitlines():
            if line.startswith('Hardware Port:'):
                port_name = line.split(':', 1)[1].strip()
            elif line.startswith('Device:') and port_name:
                if port_name in ('Wi-Fi', 'AirPort'):
                    ports.append((port_name, line.split(':', 1)[1].strip()))
                port_name = None
        return ports

    # Radio

    def radio_on(self) -> bool:
        output = self.run(['networksetup', '-getairportpower', self.interface]).stdout
        return output.strip().endswith('): On')

    def _set_radio_power(self, on: bool) -> None:
        self.run(['networksetup', '-setairportpower', self.interface, 'on' if on else 'off'])

    # Scanning and association

    def _airport_interface_data(self) -> dict:
        output = self.run(['system_profiler', '-json', 'SPAirPortDataType']).stdout
        data = json.loads(output or '{}')
        for section in data.get('SPAirPortDataType', []):
            for interface in section.get('spairport_airport_interfaces', []):
                if interface.get('_name') == self.interface:
                    return interface
        return {}

    def _scan(self) -> List[WifiNetwork]:
        interface = self._airport_interface_data()
        entries = (interface.get('spairport_airport_local_wireless_networks', [])
                   + interface.get('spairport_airport_other_local_wireless_networks', []))
        networks = []
        for entry in entries:
            signal_noise = entry.get('spairport_signal_noise', '')
            match = re.match(r'\s*(-?\d+)', signal_noise)
            signal = dbm_to_percent(int(match.group(1))) if match else 0
            security = canonical_security_kind(entry.get('spairport_security_mode'))
            networks.append(WifiNetwork(entry.get('_name', ''), signal, security))
        return networks

    def _connected_network(self) -> Optional[str]:
        if self.helper_path:
            ssid = self._helper_current_network()
            if ssid:
                return ssid
        output = self.run(['ipconfig', 'getsummary', self.interface], raise_on_error=False).stdout
        for line in output.splitlines():
            key, sep, value = line.partition(' : ')
            if sep and key.strip() == 'SSID':
                return value.strip() or None
        return None

    def _helper_current_network(self) -> Optional[str]:
        result = self.run([self.helper_path, '--command', 'current-network'], raise_on_error=False)
        try:
            payload = json.loads(result.stdout or '{}')
        except ValueError:
            logger.warning(f"Unreadable helper output: {result.stdout!r}")
            return None
        if payload.get('status') != 'ok':
            logger.debug(f"Helper could not read current network: {payload.get('error')}")
            return None
        return payload.get('ssid')

    def connect_strategies(self) -> List[ConnectStrategy]:
        strategies = []
        if self.helper_path:
            strategies.append(ConnectStrategy('corewlan-helper', self._connect_with_helper))
        strategies.append(ConnectStrategy('networksetup', self._connect_with_networksetup))
        return strategies

    def _connect_with_helper(self, ssid: str, password: Optional[str]) -> CommandResult:
        args = [self.helper_path, '--command', 'connect', '--ssid', ssid]
        if password:
            args += ['--password', password]
        return self.run(args)

    def _connect_with_networksetup(self, ssid: str, password: Optional[str]) -> CommandResult:
        args = ['networksetup', '-setairportnetwork', self.interface, ssid]
        if password:
            args.append(password)
        result = self.run(args)
        # networksetup exits 0 even when joining fails; the reason is only in its output.
        output = result.combined_output.strip()
        if output:
            raise OsCommandError(result.exit_code, result.command, output)
        return result

    def activate_profile(self, name: str) -> None:
        password = self.profile_password(name)
        last_error = None
        for strategy in self.connect_strategies():
            try:
                strategy.connect(name, password)
                return
            except OsCommandError as e:
                logger.warning(f"{strategy.name} could not activate {name!r}: {e}")
                last_error = e
        raise last_error

    def update_profile_credential(
            self, name: str, security: SecurityKind, password: str) -> None:
        self.run(['security', 'add-generic-password', '-U',
                  '-D', KEYCHAIN_DESCRIPTION, '-a', name, '-s', name, '-w', password])

    def failure_signatures(self) -> List[FailureSignature]:
        return [
            FailureSignature(
                r"Error: -3905|password.*incorrect",
                lambda ssid, reason: NetworkAuthenticationError(ssid, reason),
                "mac-authentication"),
        ]

    def _disconnect(self) -> None:
        # networksetup cannot disassociate while leaving the radio on.
        if not self.helper_path:
            raise HelperRequiredError('disconnect')
        self.run([self.helper_path, '--command', 'disconnect'])

    # Saved profiles

    def list_saved_profiles(self) -> List[NetworkProfile]:
        output = self.run(['networksetup', '-listpreferredwirelessnetworks', self.interface]).stdout
        # First line is the title "Preferred networks on en0:"; entries are tab-indented.
        names = [line.strip() for line in output.splitlines()[1:] if line.strip()]
        # networksetup does not report the security of preferred networks.
        return [NetworkProfile(name=name, ssid=name) for name in names]

    def _remove_profile(self, name: str) -> None:
        self.run(['networksetup', '-removepreferredwirelessnetwork', self.interface, name])

    def profile_password(self, name: str) -> Optional[str]:
        """
        Look up a saved password in the keychain.

        Returns:
            The password, or None when no keychain entry exists

        Raises:
            CredentialStoreError (or a subclass) for any other keychain failure
        """
        result = self.run(
            ['security', 'find-generic-password', '-D', KEYCHAIN_DESCRIPTION, '-a', name, '-w'],
            raise_on_error=False)
        if result.succeeded:
            return result.stdout.rstrip('\n') or None
        if result.exit_code == KEYCHAIN_ITEM_NOT_FOUND:
            return None
        error_class = KEYCHAIN_ERRORS.get(result.exit_code)
        if error_class:
            raise error_class(name)
        raise CredentialStoreError(name, exit_code=result.exit_code)

    # DNS

    def dns_servers(self) -> List[str]:
        output = self.run(['scutil', '--dns']).stdout
        servers = []
        for line in output.splitlines():
            match = re.match(r'\s*nameserver\[\d+\]\s*:\s*(\S+)', line)
            if match and match.group(1) not in servers:
                servers.append(match.group(1))
        return servers

    def _apply_dns_servers(self, servers: DnsSetting) -> None:
        args = ['networksetup', '-setdnsservers', self.service_name]
        args += ['empty'] if servers is CLEAR_DNS else list(servers)
        self.run(args)

    # Addresses

    def mac_address(self) -> Optional[str]:
        output = self.run(['ifconfig', self.interface]).stdout
        match = re.search(r'\bether\s+([0-9a-fA-F:]{17})', output)
        return match.group(1) if match else None

    def ip_address(self) -> Optional[str]:
        result = self.run(['ipconfig', 'getifaddr', self.interface],
                          tolerated_exit_codes=(IPCONFIG_NO_ADDRESS,))
        if not result.succeeded:
            return None
        return result.stdout.strip() or None

    def default_route_interface(self) -> Optional[str]:
        result = self.run(['route', '-n', 'get', 'default'], raise_on_error=False)
        match = re.search(r'interface:\s*(\S+)', result.stdout)
        return match.group(1) if match else None
