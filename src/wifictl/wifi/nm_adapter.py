"""
NetworkManager-based Wi-Fi adapter implementation.
Uses the nmcli command-line interface (terse output) and iproute2.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from wifictl.connection.classification import FailureSignature
from wifictl.errors import (
    NetworkConnectionError,
    NetworkNotFoundError,
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

# nmcli exit codes
NMCLI_NOT_ACTIVE = 6       # "device disconnect" on an inactive device
NMCLI_NOT_FOUND = 10       # connection, device or access point does not exist

WIRELESS_TYPES = ('802-11-wireless', 'wifi')

RESOLV_CONF = Path('/etc/resolv.conf')

# 802-11-wireless-security.key-mgmt; an empty value means no security section
KEY_MGMT_SECURITY = {
    '': SecurityKind.OPEN,
    'owe': SecurityKind.OPEN,
    'none': SecurityKind.WEP,
    'wpa-psk': SecurityKind.PSK,
    'sae': SecurityKind.PSK,
    'wpa-eap': SecurityKind.ENTERPRISE,
    'wpa-eap-suite-b-192': SecurityKind.ENTERPRISE,
    'ieee8021x': SecurityKind.ENTERPRISE,
}


def split_terse(line: str) -> List[str]:
    """Split an nmcli -t line on unescaped colons, unescaping '\\:' and '\\\\'."""
    fields = []
    current = []
    chars = iter(line)
    for char in chars:
        if char == '\\':
            escaped = next(chars, '')
            current.append(escaped)
        elif char == ':':
            fields.append(''.join(current))
            current = []
        else:
            current.append(char)
    fields.append(''.join(current))
    return fields


def nameservers_from_resolv_conf(path: Optional[Path] = None) -> List[str]:
    """Nameserver entries from resolv.conf, or [] if it is missing."""
    path = path or RESOLV_CONF
    try:
        lines = path.read_text().splitlines()
    except FileNotFoundError:
        return []
    return [line.split()[1] for line in lines
            if line.startswith('nameserver ') and len(line.split()) > 1]


class LinuxNetworkManagerAdapter(WifiAdapter):
    """Wi-Fi adapter implementation using NetworkManager."""

    REQUIRED_COMMANDS = {
        'nmcli': 'install: sudo apt install network-manager',
        'ip': 'install: sudo apt install iproute2',
    }

    SSID_PROPERTY = '802-11-wireless.ssid'
    KEY_MGMT_PROPERTY = '802-11-wireless-security.key-mgmt'
    PSK_PROPERTY = '802-11-wireless-security.psk'
    WEP_PROPERTY = '802-11-wireless-security.wep-key0'

    @classmethod
    def create(cls, executor: Optional[CommandExecutor] = None,
               interface: Optional[str] = None) -> 'LinuxNetworkManagerAdapter':
        """
        Validate preconditions and resolve the wireless interface once.

        Args:
            executor: Command runner (default: a new CommandExecutor)
            interface: Use this interface instead of detecting one
        """
        executor = executor or CommandExecutor()
        cls.validate_preconditions(executor)
        wifi_interfaces = cls.detect_wifi_interfaces(executor)
        if interface:
            if interface not in wifi_interfaces:
                raise WifiInterfaceError(interface, " or is not a WiFi interface")
        elif wifi_interfaces:
            interface = wifi_interfaces[0]
        else:
            raise WifiInterfaceError()
        logger.info(f"Using NetworkManager adapter on {interface}")
        return cls(executor, interface)

    @staticmethod
    def detect_wifi_interfaces(executor: CommandExecutor) -> List[str]:
        output = executor.run(['nmcli', '-t', '-f', 'DEVICE,TYPE', 'device']).stdout
        interfaces = []
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) >= 2 and fields[1] == 'wifi':
                interfaces.append(fields[0])
        return interfaces

    # Radio

    def radio_on(self) -> bool:
        output = self.run(['nmcli', 'radio', 'wifi']).stdout
        return output.strip() == 'enabled'

    def _set_radio_power(self, on: bool) -> None:
        self.run(['nmcli', 'radio', 'wifi', 'on' if on else 'off'])

    # Scanning and association

    def _scan(self) -> List[WifiNetwork]:
        output = self.run(
            ['nmcli', '-t', '-f', 'SSID,SIGNAL,SECURITY', 'device', 'wifi', 'list']).stdout
        networks = []
        for line in output.splitlines():
            if not line.strip():
                continue
            fields = split_terse(line)
            if len(fields) < 2:
                continue
            try:
                signal = int(fields[1])
            except ValueError:
                signal = 0
            security = fields[2] if len(fields) > 2 else ''
            networks.append(WifiNetwork(fields[0], signal, canonical_security_kind(security)))
        return networks

    def _connected_network(self) -> Optional[str]:
        output = self.run(['nmcli', '-t', '-f', 'ACTIVE,SSID', 'device', 'wifi']).stdout
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) >= 2 and fields[0] == 'yes' and fields[1]:
                return fields[1]
        return None

    def connect_strategies(self) -> List[ConnectStrategy]:
        return [ConnectStrategy('nmcli-device-wifi-connect', self._connect_direct)]

    def _connect_direct(self, ssid: str, password: Optional[str]) -> CommandResult:
        args = ['nmcli', 'device', 'wifi', 'connect', ssid]
        if password:
            args += ['password', password]
        args += ['ifname', self.interface]
        return self.run(args)

    def activate_profile(self, name: str) -> None:
        self.run(['nmcli', 'connection', 'up', name])

    def update_profile_credential(
            self, name: str, security: SecurityKind, password: str) -> None:
        if security == SecurityKind.PSK:
            prop = self.PSK_PROPERTY
        elif security == SecurityKind.WEP:
            prop = self.WEP_PROPERTY
        else:
            raise NetworkConnectionError(name, f"cannot store a password for {security.value} security")
        self.run(['nmcli', 'connection', 'modify', name, prop, password])

    def failure_signatures(self) -> List[FailureSignature]:
        # "Error: Connection activation failed: (53) The Wi-Fi network could not be found"
        return [
            FailureSignature(
                r"Wi-Fi network could not be found",
                lambda ssid, reason: NetworkNotFoundError(ssid),
                "nm-not-found"),
        ]

    def _disconnect(self) -> None:
        self.run(['nmcli', 'device', 'disconnect', self.interface],
                 tolerated_exit_codes=(NMCLI_NOT_ACTIVE,))

    # Saved profiles

    def list_saved_profiles(self) -> List[NetworkProfile]:
        output = self.run(
            ['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP', 'connection', 'show']).stdout
        profiles = []
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) < 3 or fields[1] not in WIRELESS_TYPES:
                continue
            try:
                last_used = int(fields[2])
            except ValueError:
                last_used = 0
            ssid, security = self._profile_details(fields[0])
            profiles.append(NetworkProfile(fields[0], ssid, last_used, security))
        return profiles

    def _profile_details(self, name: str) -> Tuple[Optional[str], SecurityKind]:
        """SSID and security of a saved profile, one value per output line."""
        result = self.run(
            ['nmcli', '-g', f'{self.SSID_PROPERTY},{self.KEY_MGMT_PROPERTY}',
             'connection', 'show', name],
            tolerated_exit_codes=(NMCLI_NOT_FOUND,))
        if not result.succeeded or not result.stdout.strip():
            return None, SecurityKind.UNKNOWN
        lines = result.stdout.splitlines() + ['']
        ssid = lines[0].strip() or None
        security = KEY_MGMT_SECURITY.get(lines[1].strip().lower(), SecurityKind.UNKNOWN)
        return ssid, security

    def _remove_profile(self, name: str) -> None:
        self.run(['nmcli', 'connection', 'delete', name],
                 tolerated_exit_codes=(NMCLI_NOT_FOUND,))

    def profile_password(self, name: str) -> Optional[str]:
        result = self.run(
            ['nmcli', '--show-secrets', '-g', self.PSK_PROPERTY, 'connection', 'show', name],
            tolerated_exit_codes=(NMCLI_NOT_FOUND,))
        if not result.succeeded:
            return None
        password = result.stdout.strip()
        return password or None

    # DNS

    def dns_servers(self) -> List[str]:
        result = self.run(
            ['nmcli', '-t', '-f', 'IP4.DNS,IP6.DNS', 'device', 'show', self.interface],
            raise_on_error=False)
        servers = []
        if result.succeeded:
            for line in result.stdout.splitlines():
                key, _, value = line.partition(':')
                value = value.replace('\\:', ':').strip()
                if re.match(r'IP[46]\.DNS', key) and value and value not in servers:
                    servers.append(value)
        return servers or nameservers_from_resolv_conf()

    def active_connection_name(self) -> Optional[str]:
        """Name of the connection profile active on the wireless interface."""
        output = self.run(
            ['nmcli', '-t', '-f', 'NAME,DEVICE', 'connection', 'show', '--active']).stdout
        for line in output.splitlines():
            fields = split_terse(line)
            if len(fields) >= 2 and fields[1] == self.interface:
                return fields[0]
        return None

    def _apply_dns_servers(self, servers: DnsSetting) -> None:
        connection = self.active_connection_name()
        if connection is None:
            raise WifiInterfaceError(
                self.interface, " has no active connection to configure DNS for")

        if servers is CLEAR_DNS:
            settings = [
                ('ipv4.dns', ''), ('ipv4.ignore-auto-dns', 'no'),
                ('ipv6.dns', ''), ('ipv6.ignore-auto-dns', 'no'),
            ]
        else:
            ipv4 = [s for s in servers if ':' not in s]
            ipv6 = [s for s in servers if ':' in s]
            settings = [
                ('ipv4.dns', ' '.join(ipv4)), ('ipv4.ignore-auto-dns', 'yes'),
                ('ipv6.dns', ' '.join(ipv6)), ('ipv6.ignore-auto-dns', 'yes' if ipv6 else 'no'),
            ]

        args = ['nmcli', 'connection', 'modify', connection]
        for key, value in settings:
            args += [key, value]
        self.run(args)
        # Re-activate so the new resolver settings take effect.
        self.run(['nmcli', 'connection', 'up', connection])

    # Addresses

    def mac_address(self) -> Optional[str]:
        output = self.run(['ip', 'link', 'show', self.interface]).stdout
        match = re.search(r'link/ether\s+([0-9a-fA-F:]{17})', output)
        return match.group(1) if match else None

    def ip_address(self) -> Optional[str]:
        result = self.run(['ip', '-4', 'addr', 'show', self.interface], raise_on_error=False)
        match = re.search(r'inet\s+(\d+\.\d+\.\d+\.\d+)/', result.stdout)
        return match.group(1) if match else None

    def default_route_interface(self) -> Optional[str]:
        try:
            output = self.run(['ip', 'route', 'show', 'default']).stdout
        except OsCommandError as e:
            logger.warning(f"Could not read default route: {e}")
            return None
        match = re.search(r'\bdev\s+(\S+)', output)
        return match.group(1) if match else None
