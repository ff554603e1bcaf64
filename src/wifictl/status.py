"""
One-shot WiFi status summary.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from wifictl.connectivity.prober import ConnectivityProber
from wifictl.connectivity.public_ip import fetch_public_ip_info
from wifictl.wifi.adapter import WifiAdapter

logger = logging.getLogger(__name__)


def collect_wifi_info(
        adapter: WifiAdapter,
        prober: ConnectivityProber,
        include_public_ip: bool = True) -> Dict[str, Any]:
    """
    Gather radio, association, addressing, DNS and connectivity details.

    Public IP information is only looked up when the internet is
    reachable; a lookup failure is logged and leaves the key out.
    """
    radio_on = adapter.radio_on()
    probe = prober.probe() if radio_on else None

    info: Dict[str, Any] = {
        'wifi_on': radio_on,
        'internet_tcp_connectivity': bool(probe and probe.tcp_ok),
        'dns_working': bool(probe and probe.dns_ok),
        'internet_on': bool(probe and probe.internet),
        'interface': adapter.interface,
        'default_interface': adapter.default_route_interface(),
        'network': adapter.connected_network() if radio_on else None,
        'ip_address': adapter.ip_address() if radio_on else None,
        'mac_address': adapter.mac_address(),
        'nameservers': adapter.dns_servers(),
        'timestamp': datetime.now().isoformat(),
    }

    if include_public_ip and info['internet_on']:
        public_ip: Optional[Dict[str, Any]] = None
        try:
            public_ip = fetch_public_ip_info()
        except requests.RequestException as e:
            logger.warning(f"Could not obtain public IP info, proceeding without it: {e}")
        if public_ip is not None:
            info['public_ip'] = public_ip
    return info
