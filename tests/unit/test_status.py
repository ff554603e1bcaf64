"""
Unit tests for platform selection and the one-shot status summary.
"""

from unittest.mock import patch

import pytest
import requests

from wifictl.connectivity.prober import ProbeResult
from wifictl.errors import UnsupportedSystemError
from wifictl.status import collect_wifi_info
from wifictl.system.platforms import (
    LINUX_NETWORK_MANAGER,
    MACOS,
    create_adapter,
    detect_platform,
)
from wifictl.wifi.nm_adapter import LinuxNetworkManagerAdapter


class StubProber:

    def __init__(self, result):
        self.result = result
        self.calls = 0

    def probe(self):
        self.calls += 1
        return self.result


class TestPlatforms:

    def test_detect_platform(self):
        assert detect_platform('Darwin') == MACOS
        assert detect_platform('Linux') == LINUX_NETWORK_MANAGER

    def test_unsupported_platform(self):
        with pytest.raises(UnsupportedSystemError) as exc_info:
            detect_platform('Windows')
        assert 'Windows' in str(exc_info.value)

    def test_create_linux_adapter(self, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'DEVICE,TYPE', 'device'], "wlp2s0:wifi\n")
        adapter = create_adapter({'interface': None}, fake_executor, system_name='Linux')
        assert isinstance(adapter, LinuxNetworkManagerAdapter)
        assert adapter.interface == 'wlp2s0'


class TestCollectWifiInfo:
    """Test the status summary."""

    @patch('wifictl.status.fetch_public_ip_info')
    def test_online(self, mock_fetch, fake_adapter):
        fake_adapter.connected = "HomeNet"
        fake_adapter.dns = ["192.168.1.1"]
        mock_fetch.return_value = {'ip': '203.0.113.7', 'country': 'NL'}

        info = collect_wifi_info(fake_adapter, StubProber(ProbeResult(True, True)))

        assert info['wifi_on'] is True
        assert info['internet_on'] is True
        assert info['network'] == "HomeNet"
        assert info['ip_address'] == '192.168.1.50'
        assert info['nameservers'] == ["192.168.1.1"]
        assert info['public_ip'] == {'ip': '203.0.113.7', 'country': 'NL'}

    @patch('wifictl.status.fetch_public_ip_info')
    def test_public_ip_failure_is_not_fatal(self, mock_fetch, fake_adapter):
        fake_adapter.connected = "HomeNet"
        mock_fetch.side_effect = requests.ConnectionError("no route")

        info = collect_wifi_info(fake_adapter, StubProber(ProbeResult(True, True)))

        assert info['internet_on'] is True
        assert 'public_ip' not in info

    @patch('wifictl.status.fetch_public_ip_info')
    def test_offline_skips_public_ip(self, mock_fetch, fake_adapter):
        info = collect_wifi_info(fake_adapter, StubProber(ProbeResult(True, False)))

        assert info['internet_tcp_connectivity'] is True
        assert info['dns_working'] is False
        assert info['internet_on'] is False
        mock_fetch.assert_not_called()

    def test_radio_off(self, fake_adapter):
        fake_adapter.radio = False
        prober = StubProber(ProbeResult(True, True))

        info = collect_wifi_info(fake_adapter, prober)

        assert info['wifi_on'] is False
        assert info['network'] is None
        assert info['internet_on'] is False
        assert prober.calls == 0
