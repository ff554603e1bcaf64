"""
Error taxonomy for wifictl.
All errors raised by adapters, the connection orchestrator and the
snapshot manager derive from WifiError.
"""

from typing import Iterable, List, Optional


class WifiError(Exception):
    """Base class for all wifictl errors."""


# Radio

class RadioToggleError(WifiError):
    """The radio did not reach the requested state."""


class WifiEnableError(RadioToggleError):
    def __init__(self):
        super().__init__("WiFi could not be enabled. Check hardware and permissions")


class WifiDisableError(RadioToggleError):
    def __init__(self):
        super().__init__("WiFi could not be disabled. Check permissions")


# Connection

class NetworkNotFoundError(WifiError):
    """Target SSID was absent from a fresh scan."""

    def __init__(self, ssid: str, available: Optional[Iterable[str]] = None):
        self.ssid = ssid
        self.available = list(available or [])
        message = f"Network '{ssid}' not found"
        if self.available:
            message += f". Available networks: {', '.join(self.available)}"
        super().__init__(message)


class NetworkAuthenticationError(WifiError):
    """Credential rejected; keeps the raw OS-reported reason."""

    def __init__(self, ssid: str, reason: Optional[str] = None):
        self.ssid = ssid
        self.reason = reason
        message = f"Authentication failed for network '{ssid}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NetworkConnectionError(WifiError):
    def __init__(self, ssid: str, reason: Optional[str] = None):
        self.ssid = ssid
        self.reason = reason
        message = f"Failed to connect to network '{ssid}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConnectionVerificationError(NetworkConnectionError):
    """The connect command reported success but the SSID does not match."""

    def __init__(self, ssid: str, actual: Optional[str] = None):
        self.actual = actual
        if actual:
            detail = f"connected to '{actual}' instead"
        else:
            detail = "unable to connect to any network"
        super().__init__(ssid, detail)


class InvalidNetworkNameError(WifiError):
    def __init__(self, ssid: Optional[str]):
        self.ssid = ssid
        super().__init__(f"Invalid network name: '{ssid or ''}'. Network name cannot be empty")


class WifiInterfaceError(WifiError):
    def __init__(self, interface: Optional[str] = None, detail: Optional[str] = None):
        self.interface = interface
        if interface:
            message = f"WiFi interface '{interface}' not found"
        else:
            message = "No WiFi interface found"
        message += detail or ". Ensure WiFi hardware is present and drivers are installed"
        super().__init__(message)


# Configuration

class InvalidIPAddressError(WifiError):
    def __init__(self, addresses: Iterable[str]):
        self.invalid_addresses: List[str] = list(addresses)
        super().__init__(f"Invalid IP address(es): {', '.join(self.invalid_addresses)}")


# Credential store (macOS keychain)

class CredentialStoreError(WifiError):
    def __init__(self, network: str, message: Optional[str] = None,
                 exit_code: Optional[int] = None):
        self.network = network
        self.exit_code = exit_code
        super().__init__(message or (
            f"Credential store error (exit code {exit_code}) for network '{network}'"))


class CredentialAccessDeniedError(CredentialStoreError):
    def __init__(self, network: str):
        super().__init__(
            network,
            f"Keychain access denied for network '{network}'. Please grant access when prompted")


class CredentialAccessCancelledError(CredentialStoreError):
    def __init__(self, network: str):
        super().__init__(network, f"Keychain access cancelled for network '{network}'")


class CredentialNonInteractiveError(CredentialStoreError):
    def __init__(self, network: str):
        super().__init__(
            network,
            f"Cannot access keychain for network '{network}' in non-interactive environment")


# System

class CommandNotFoundError(WifiError):
    def __init__(self, commands: Iterable[str]):
        self.commands = list(commands)
        super().__init__(f"Missing required system command(s): {', '.join(self.commands)}")


class HelperRequiredError(WifiError):
    """An operation has no command-line fallback without the CoreWLAN helper."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cannot {operation} without the CoreWLAN helper. "
            f"Install it and set wifi.mac_helper in the config")


class OsCommandError(WifiError):
    """An OS command exited with an unexpected status."""

    def __init__(self, exit_code: Optional[int], command: str, output: str = ""):
        self.exit_code = exit_code
        self.command = command
        self.output = output or ""
        super().__init__(
            f"Error code {exit_code}, command = {command}, text = {self.output}")


class WaitTimeoutError(WifiError):
    def __init__(self, target: str, timeout_seconds: float):
        self.target = target
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timed out after {timeout_seconds}s waiting for state '{target}'")


class UnsupportedSystemError(WifiError):
    def __init__(self, system_name: Optional[str] = None):
        message = "No supported operating system detected. wifictl supports macOS and NetworkManager Linux"
        if system_name:
            message += f" (found {system_name})"
        super().__init__(message)
