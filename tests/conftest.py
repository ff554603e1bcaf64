"""
Shared test doubles: a scripted command executor and an in-memory adapter.
No test touches real network hardware or OS networking commands.
"""

from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from wifictl.errors import OsCommandError
from wifictl.system.command_executor import CommandExecutor, CommandResult
from wifictl.wifi.adapter import (
    CLEAR_DNS,
    ConnectStrategy,
    NetworkProfile,
    SecurityKind,
    WifiAdapter,
    WifiNetwork,
)
from wifictl.wifi.status_waiter import StatusWaiter


def result(stdout: str = "", exit_code: int = 0, stderr: str = "", command: str = "") -> CommandResult:
    return CommandResult(command=command, exit_code=exit_code, stdout=stdout, stderr=stderr)


class FakeExecutor(CommandExecutor):
    """
    Answers commands from a script keyed by argv prefix.

    The longest matching prefix wins. A list of results is consumed in
    order, the last one repeating. Unscripted commands succeed silently.
    """

    def __init__(self):
        super().__init__()
        self.script: Dict[Tuple[str, ...], List[CommandResult]] = {}
        self.calls: List[List[str]] = []
        self.missing = set()

    def respond(self, prefix: Sequence[str], *results: Union[CommandResult, str]) -> None:
        self.script[tuple(prefix)] = [
            r if isinstance(r, CommandResult) else result(r) for r in results
        ]

    def run(self, args, tolerated_exit_codes=(), raise_on_error=True, timeout_seconds=None):
        argv = [str(arg) for arg in args]
        self.calls.append(argv)
        scripted = self._lookup(argv)
        scripted = CommandResult(
            command=' '.join(argv),
            exit_code=scripted.exit_code,
            stdout=scripted.stdout,
            stderr=scripted.stderr,
        )
        if (not scripted.succeeded and raise_on_error
                and scripted.exit_code not in set(tolerated_exit_codes)):
            raise OsCommandError(scripted.exit_code, scripted.command, scripted.combined_output)
        return scripted

    def _lookup(self, argv: List[str]) -> CommandResult:
        matches = [p for p in self.script if tuple(argv[:len(p)]) == p]
        if not matches:
            return result()
        queue = self.script[max(matches, key=len)]
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def command_available(self, command: str) -> bool:
        return command not in self.missing

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[:len(prefix)]) == prefix for call in self.calls)


class FakeAdapter(WifiAdapter):
    """In-memory adapter recording every mutating call."""

    def __init__(self, radio: bool = True, connected: Optional[str] = None):
        super().__init__(FakeExecutor(), 'wlan0')
        self.waiter = StatusWaiter(self, sleep=lambda seconds: None)
        self.radio = radio
        self.radio_responds = True
        self.connected = connected
        self.networks: List[WifiNetwork] = []
        self.profiles: Dict[str, NetworkProfile] = {}
        self.passwords: Dict[str, str] = {}
        self.password_error: Optional[Exception] = None
        self.dns: List[str] = []
        self.dns_error: Optional[Exception] = None
        self.strategy_errors: Dict[str, OsCommandError] = {}
        self.activation_error: Optional[OsCommandError] = None
        self.associate_as: Optional[str] = None
        self.join_takes_effect = True
        self.calls: List[tuple] = []

    def add_profile(self, name: str, ssid: Optional[str] = None, last_used: int = 0,
                    password: Optional[str] = None,
                    security: SecurityKind = SecurityKind.UNKNOWN) -> None:
        self.profiles[name] = NetworkProfile(name, ssid or name, last_used, security)
        if password is not None:
            self.passwords[name] = password

    def radio_on(self):
        return self.radio

    def _set_radio_power(self, on):
        self.calls.append(('radio', on))
        if self.radio_responds:
            self.radio = on
            if not on:
                self.connected = None

    def _scan(self):
        return list(self.networks)

    def _connected_network(self):
        return self.connected

    def _join(self, ssid):
        if self.join_takes_effect:
            self.connected = self.associate_as or ssid

    def connect_strategies(self):
        def strategy(name):
            def connect(ssid, password):
                self.calls.append(('connect', name, ssid, password))
                if name in self.strategy_errors:
                    raise self.strategy_errors[name]
                self._join(ssid)
                return result(command=f"{name} {ssid}")
            return ConnectStrategy(name, connect)
        return [strategy('preferred'), strategy('legacy')]

    def activate_profile(self, name):
        self.calls.append(('activate', name))
        if self.activation_error is not None:
            raise self.activation_error
        self._join(self.profiles[name].ssid or name)

    def update_profile_credential(self, name, security, password):
        self.calls.append(('update', name, security, password))
        self.passwords[name] = password

    def _disconnect(self):
        self.calls.append(('disconnect',))
        self.connected = None

    def list_saved_profiles(self):
        return list(self.profiles.values())

    def _remove_profile(self, name):
        self.calls.append(('remove', name))
        del self.profiles[name]

    def profile_password(self, name):
        if self.password_error is not None:
            raise self.password_error
        return self.passwords.get(name)

    def dns_servers(self):
        return list(self.dns)

    def _apply_dns_servers(self, servers):
        self.calls.append(('dns', servers))
        if self.dns_error is not None:
            raise self.dns_error
        self.dns = [] if servers is CLEAR_DNS else list(servers)

    def mac_address(self):
        return 'aa:bb:cc:dd:ee:ff'

    def ip_address(self):
        return '192.168.1.50' if self.connected else None

    def default_route_interface(self):
        return 'wlan0' if self.connected else None


@pytest.fixture
def fake_executor():
    """Scripted executor with no commands missing."""
    return FakeExecutor()


@pytest.fixture
def fake_adapter():
    """Adapter with the radio on, not associated, nothing saved."""
    adapter = FakeAdapter()
    adapter.networks = [
        WifiNetwork("HomeNet", 80, SecurityKind.PSK),
        WifiNetwork("Cafe", 60, SecurityKind.PSK),
        WifiNetwork("Library", 40, SecurityKind.OPEN),
    ]
    return adapter
