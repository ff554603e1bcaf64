"""
Unit tests for the NetworkManager adapter.
nmcli and ip output is scripted through the fake executor.
"""

import pytest

from wifictl.errors import CommandNotFoundError, InvalidIPAddressError, WifiInterfaceError
from wifictl.wifi.adapter import CLEAR_DNS, SecurityKind
from wifictl.wifi.nm_adapter import (
    LinuxNetworkManagerAdapter,
    nameservers_from_resolv_conf,
    split_terse,
)
from wifictl.system.command_executor import CommandResult


@pytest.fixture
def adapter(fake_executor):
    fake_executor.respond(['nmcli', 'radio', 'wifi'], "enabled\n")
    return LinuxNetworkManagerAdapter(fake_executor, 'wlan0')


class TestSplitTerse:
    """Test nmcli terse-mode field splitting."""

    def test_plain_fields(self):
        assert split_terse("yes:HomeNet:80") == ["yes", "HomeNet", "80"]

    def test_escaped_colon(self):
        assert split_terse(r"Cafe\:Guest:60:WPA2") == ["Cafe:Guest", "60", "WPA2"]

    def test_escaped_backslash(self):
        assert split_terse(r"back\\slash:1") == ["back\\slash", "1"]

    def test_empty_field(self):
        assert split_terse(":50:") == ["", "50", ""]


class TestCreate:
    """Test interface resolution at construction time."""

    def test_detects_first_wifi_interface(self, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'DEVICE,TYPE', 'device'],
            "eth0:ethernet\nwlan0:wifi\nwlan1:wifi\nlo:loopback\n")
        adapter = LinuxNetworkManagerAdapter.create(fake_executor)
        assert adapter.interface == 'wlan0'

    def test_requested_interface_must_be_wifi(self, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'DEVICE,TYPE', 'device'], "eth0:ethernet\n")
        with pytest.raises(WifiInterfaceError):
            LinuxNetworkManagerAdapter.create(fake_executor, interface='eth0')

    def test_no_wifi_interface(self, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'DEVICE,TYPE', 'device'], "eth0:ethernet\n")
        with pytest.raises(WifiInterfaceError):
            LinuxNetworkManagerAdapter.create(fake_executor)

    def test_missing_nmcli(self, fake_executor):
        fake_executor.missing = {'nmcli'}
        with pytest.raises(CommandNotFoundError) as exc_info:
            LinuxNetworkManagerAdapter.create(fake_executor)
        assert 'network-manager' in str(exc_info.value)
        assert fake_executor.calls == []


class TestRadioAndScan:
    """Test radio state and scan parsing."""

    def test_radio_on(self, adapter):
        assert adapter.radio_on() is True

    def test_radio_off(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', 'radio', 'wifi'], "disabled\n")
        assert adapter.radio_on() is False

    def test_scan_dedupes_and_orders(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'SSID,SIGNAL,SECURITY', 'device', 'wifi', 'list'],
            "Cafe:40:WPA2\n"
            "HomeNet:72:WPA1 WPA2\n"
            "Cafe:88:WPA2\n"
            ":90:WPA2\n"
            "Library:30:--\n"
            "Corp:55:WPA2 802.1X\n")

        networks = adapter.scan()

        assert [(n.ssid, n.signal) for n in networks] == [
            ("Cafe", 88), ("HomeNet", 72), ("Corp", 55), ("Library", 30)]
        assert networks[3].security == SecurityKind.OPEN
        assert networks[2].security == SecurityKind.ENTERPRISE

    def test_connected_network(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'ACTIVE,SSID', 'device', 'wifi'],
            "no:Cafe\nyes:Home\\:Net\nno:Library\n")
        assert adapter.connected_network() == "Home:Net"

    def test_not_connected(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'ACTIVE,SSID', 'device', 'wifi'], "no:Cafe\n")
        assert adapter.connected_network() is None


class TestConnect:
    """Test the nmcli connect primitives."""

    def test_direct_connect_arguments(self, adapter, fake_executor):
        strategy = adapter.connect_strategies()[0]
        strategy.connect("My Net", "s3cret pass")
        assert fake_executor.calls[-1] == [
            'nmcli', 'device', 'wifi', 'connect', 'My Net',
            'password', 's3cret pass', 'ifname', 'wlan0']

    def test_direct_connect_without_password(self, adapter, fake_executor):
        adapter.connect_strategies()[0].connect("Library", None)
        assert fake_executor.calls[-1] == [
            'nmcli', 'device', 'wifi', 'connect', 'Library', 'ifname', 'wlan0']

    def test_update_psk_credential(self, adapter, fake_executor):
        adapter.update_profile_credential("Cafe", SecurityKind.PSK, "newpass")
        assert fake_executor.calls[-1] == [
            'nmcli', 'connection', 'modify', 'Cafe',
            '802-11-wireless-security.psk', 'newpass']

    def test_update_wep_credential(self, adapter, fake_executor):
        adapter.update_profile_credential("Old", SecurityKind.WEP, "abcde")
        assert '802-11-wireless-security.wep-key0' in fake_executor.calls[-1]


class TestDisconnect:
    """Test disconnect leniency."""

    def test_disconnect_tolerates_not_active(self, adapter, fake_executor):
        """Test nmcli exit code 6 on disconnect is not an error."""
        fake_executor.respond(['nmcli', '-t', '-f', 'ACTIVE,SSID', 'device', 'wifi'], "yes:HomeNet\n")
        fake_executor.respond(
            ['nmcli', 'device', 'disconnect'],
            CommandResult("", 6, stderr="Error: Device 'wlan0' is not active.\n"))

        adapter.disconnect()

        assert fake_executor.called('nmcli', 'device', 'disconnect', 'wlan0')

    def test_disconnect_when_not_associated(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'ACTIVE,SSID', 'device', 'wifi'], "no:Cafe\n")
        adapter.disconnect()
        assert not fake_executor.called('nmcli', 'device', 'disconnect')


class TestProfiles:
    """Test saved connection profiles."""

    CONNECTIONS = (
        "Cafe:802-11-wireless:1700000000\n"
        "Wired connection 1:802-3-ethernet:1700000500\n"
        "Cafe 1:802-11-wireless:1700000900\n"
        "office:802-11-wireless:0\n")

    def test_list_saved_profiles_only_wireless(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP'], self.CONNECTIONS)
        profiles = adapter.list_saved_profiles()
        assert [(p.name, p.last_used) for p in profiles] == [
            ("Cafe", 1700000000), ("Cafe 1", 1700000900), ("office", 0)]

    DETAILS = ['nmcli', '-g', '802-11-wireless.ssid,802-11-wireless-security.key-mgmt',
               'connection', 'show']

    @pytest.mark.parametrize("details,ssid,security", [
        ("CorpNet\nwpa-eap\n", "CorpNet", SecurityKind.ENTERPRISE),
        ("HomeNet\nwpa-psk\n", "HomeNet", SecurityKind.PSK),
        ("HomeNet\nsae\n", "HomeNet", SecurityKind.PSK),
        ("OldRouter\nnone\n", "OldRouter", SecurityKind.WEP),
        ("Library\n\n", "Library", SecurityKind.OPEN),
    ])
    def test_profile_ssid_and_security(self, adapter, fake_executor, details, ssid, security):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP'], "Work profile:802-11-wireless:5\n")
        fake_executor.respond(self.DETAILS + ['Work profile'], details)

        profile = adapter.list_saved_profiles()[0]

        assert (profile.name, profile.ssid, profile.security) == ("Work profile", ssid, security)

    def test_profile_deleted_while_listing(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP'], "Gone:wifi:5\n")
        fake_executor.respond(
            self.DETAILS, CommandResult("", 10, stderr="Error: Gone - no such connection profile.\n"))

        profile = adapter.list_saved_profiles()[0]

        assert profile.ssid is None
        assert profile.security == SecurityKind.UNKNOWN

    def test_remove_absent_profile_issues_no_delete(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP'], self.CONNECTIONS)
        assert adapter.remove_profile("Nowhere") is False
        assert not fake_executor.called('nmcli', 'connection', 'delete')

    def test_remove_profile(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '-t', '-f', 'NAME,TYPE,TIMESTAMP'], self.CONNECTIONS)
        assert adapter.remove_profile("Cafe 1") is True
        assert fake_executor.calls[-1] == ['nmcli', 'connection', 'delete', 'Cafe 1']

    def test_profile_password(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '--show-secrets'], "hunter22\n")
        assert adapter.profile_password("Cafe") == "hunter22"

    def test_profile_password_for_open_network(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '--show-secrets'], "\n")
        assert adapter.profile_password("Library") is None

    def test_profile_password_unknown_profile(self, adapter, fake_executor):
        fake_executor.respond(['nmcli', '--show-secrets'], CommandResult("", 10))
        assert adapter.profile_password("Nowhere") is None


class TestDns:
    """Test DNS get and set through NetworkManager."""

    def test_dns_servers(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'IP4.DNS,IP6.DNS', 'device', 'show'],
            "IP4.DNS[1]:192.168.1.1\nIP4.DNS[2]:1.1.1.1\nIP6.DNS[1]:fe80\\:\\:1\n")
        assert adapter.dns_servers() == ["192.168.1.1", "1.1.1.1", "fe80::1"]

    def test_dns_servers_fall_back_to_resolv_conf(self, adapter, fake_executor, tmp_path, monkeypatch):
        resolv = tmp_path / 'resolv.conf'
        resolv.write_text("# generated\nnameserver 127.0.0.53\noptions edns0\n")
        monkeypatch.setattr('wifictl.wifi.nm_adapter.RESOLV_CONF', resolv)
        fake_executor.respond(['nmcli', '-t', '-f', 'IP4.DNS,IP6.DNS'], "")
        assert adapter.dns_servers() == ["127.0.0.53"]
        assert nameservers_from_resolv_conf(tmp_path / "missing") == []

    def test_invalid_servers_issue_no_command(self, adapter, fake_executor):
        with pytest.raises(InvalidIPAddressError):
            adapter.set_dns_servers(["1.1.1.1", "not-an-ip"])
        assert fake_executor.calls == []

    def test_set_dns_servers(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'NAME,DEVICE', 'connection', 'show', '--active'],
            "Wired connection 1:eth0\nHomeNet:wlan0\n")

        adapter.set_dns_servers(["1.1.1.1", "2606:4700:4700::1111"])

        assert [
            'nmcli', 'connection', 'modify', 'HomeNet',
            'ipv4.dns', '1.1.1.1', 'ipv4.ignore-auto-dns', 'yes',
            'ipv6.dns', '2606:4700:4700::1111', 'ipv6.ignore-auto-dns', 'yes',
        ] in fake_executor.calls
        assert fake_executor.calls[-1] == ['nmcli', 'connection', 'up', 'HomeNet']

    def test_clear_dns_servers(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'NAME,DEVICE', 'connection', 'show', '--active'], "HomeNet:wlan0\n")
        adapter.set_dns_servers(CLEAR_DNS)
        modify = [c for c in fake_executor.calls if c[:3] == ['nmcli', 'connection', 'modify']][0]
        assert modify[4:] == [
            'ipv4.dns', '', 'ipv4.ignore-auto-dns', 'no',
            'ipv6.dns', '', 'ipv6.ignore-auto-dns', 'no']

    def test_set_dns_without_active_connection(self, adapter, fake_executor):
        fake_executor.respond(
            ['nmcli', '-t', '-f', 'NAME,DEVICE', 'connection', 'show', '--active'], "")
        with pytest.raises(WifiInterfaceError):
            adapter.set_dns_servers(["1.1.1.1"])


class TestAddresses:
    """Test address and route parsing."""

    def test_mac_address(self, adapter, fake_executor):
        fake_executor.respond(
            ['ip', 'link', 'show'],
            "3: wlan0: <BROADCAST,MULTICAST,UP> mtu 1500\n"
            "    link/ether 3c:22:fb:12:34:56 brd ff:ff:ff:ff:ff:ff\n")
        assert adapter.mac_address() == "3c:22:fb:12:34:56"

    def test_ip_address(self, adapter, fake_executor):
        fake_executor.respond(
            ['ip', '-4', 'addr', 'show'],
            "3: wlan0: <UP>\n    inet 192.168.1.23/24 brd 192.168.1.255 scope global wlan0\n")
        assert adapter.ip_address() == "192.168.1.23"

    def test_no_ip_address(self, adapter, fake_executor):
        fake_executor.respond(['ip', '-4', 'addr', 'show'], "")
        assert adapter.ip_address() is None

    def test_default_route_interface(self, adapter, fake_executor):
        fake_executor.respond(
            ['ip', 'route', 'show', 'default'],
            "default via 192.168.1.1 dev wlan0 proto dhcp metric 600\n")
        assert adapter.default_route_interface() == "wlan0"
