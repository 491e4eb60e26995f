import socket

import pytest

from mdns_reconciler.errors import NoAddressError
from mdns_reconciler.util import ip as ip_util


# Helper to create a mock address object
def create_mock_address(mocker, family, address):
    mock_addr = mocker.MagicMock()
    mock_addr.family = family
    mock_addr.address = address
    return mock_addr


class TestIpUtils:

    # --- Tests for get_all_address_strings ---

    def test_get_all_address_strings_no_interfaces(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {}

        result = ip_util.get_all_address_strings()

        assert result == []
        mock_net_if_addrs.assert_called_once()

    def test_get_all_address_strings_interface_no_ipv4(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "eth0": [
                create_mock_address(mocker, socket.AF_INET6, "::1"),
                create_mock_address(mocker, -1, "00:11:22:33:44:55"),
            ]
        }

        assert ip_util.get_all_address_strings() == []

    def test_get_all_address_strings_multiple_interfaces(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "lo": [
                create_mock_address(mocker, socket.AF_INET, "127.0.0.1"),
                create_mock_address(mocker, socket.AF_INET6, "::1"),
            ],
            "eth0": [
                create_mock_address(mocker, socket.AF_INET6, "fe80::3"),
                create_mock_address(mocker, socket.AF_INET, "192.168.1.103"),
                create_mock_address(mocker, socket.AF_INET, "192.168.1.104"),
            ],
        }

        result = ip_util.get_all_address_strings()

        assert result == ["127.0.0.1", "192.168.1.103", "192.168.1.104"]

    # --- Tests for discover_address ---

    def test_discover_address_prefers_override(self, mocker):
        mock_get_strings = mocker.patch(
            "mdns_reconciler.util.ip.get_all_address_strings"
        )

        assert ip_util.discover_address("10.1.2.3") == "10.1.2.3"
        mock_get_strings.assert_not_called()

    def test_discover_address_empty_override_discovers(self, mocker):
        mocker.patch(
            "mdns_reconciler.util.ip.get_all_address_strings",
            return_value=["192.168.1.10"],
        )

        assert ip_util.discover_address("") == "192.168.1.10"

    def test_discover_address_skips_loopback(self, mocker):
        mocker.patch(
            "mdns_reconciler.util.ip.get_all_address_strings",
            return_value=["127.0.0.1", "127.0.1.1", "10.0.0.5", "10.0.0.6"],
        )

        assert ip_util.discover_address() == "10.0.0.5"

    def test_discover_address_skips_unparsable(self, mocker):
        mocker.patch(
            "mdns_reconciler.util.ip.get_all_address_strings",
            return_value=["bogus", "172.16.0.10"],
        )

        assert ip_util.discover_address() == "172.16.0.10"

    def test_discover_address_only_loopback_raises(self, mocker):
        mocker.patch(
            "mdns_reconciler.util.ip.get_all_address_strings",
            return_value=["127.0.0.1"],
        )

        with pytest.raises(NoAddressError, match="Could not retrieve ip address"):
            ip_util.discover_address()
