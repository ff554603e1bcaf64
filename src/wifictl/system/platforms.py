"""
Operating system detection and adapter selection.
"""

import logging
import platform
from typing import Optional

from wifictl.errors import UnsupportedSystemError
from wifictl.system.command_executor import CommandExecutor
from wifictl.wifi.adapter import WifiAdapter

logger = logging.getLogger(__name__)

MACOS = 'macos'
LINUX_NETWORK_MANAGER = 'linux-networkmanager'


def detect_platform(system_name: Optional[str] = None) -> str:
    """
    Identify which adapter family fits this system.

    Raises:
        UnsupportedSystemError: Neither macOS nor Linux
    """
    system_name = system_name or platform.system()
    if system_name == 'Darwin':
        return MACOS
    if system_name == 'Linux':
        return LINUX_NETWORK_MANAGER
    raise UnsupportedSystemError(system_name)


def create_adapter(
        wifi_config: Optional[dict] = None,
        executor: Optional[CommandExecutor] = None,
        system_name: Optional[str] = None) -> WifiAdapter:
    """
    Build the adapter for the current OS.

    Args:
        wifi_config: The 'wifi' config section (interface, mac_helper)
        executor: Command runner shared by the adapter
        system_name: Override platform.system() (for testing)
    """
    wifi_config = wifi_config or {}
    executor = executor or CommandExecutor()
    family = detect_platform(system_name)
    logger.debug(f"Detected platform family {family}")

    if family == MACOS:
        from wifictl.wifi.mac_adapter import MacAdapter
        return MacAdapter.create(
            executor,
            interface=wifi_config.get('interface'),
            helper_path=wifi_config.get('mac_helper'))

    from wifictl.wifi.nm_adapter import LinuxNetworkManagerAdapter
    return LinuxNetworkManagerAdapter.create(executor, interface=wifi_config.get('interface'))
