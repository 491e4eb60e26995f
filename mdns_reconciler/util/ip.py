"""Utilities for finding the IPv4 address to advertise services on."""

import ipaddress
import logging
import socket

import psutil  # type: ignore[import-untyped]

from mdns_reconciler.errors import NoAddressError

_logger = logging.getLogger(__name__)


def get_all_address_strings() -> list[str]:
    """Retrieves all IPv4 address strings for all network interfaces.

    Interfaces are visited in the order psutil reports them, which depends
    on the host platform.

    Returns:
        A list of IPv4 address strings, loopback included. Empty if no IPv4
        addresses are found.
    """
    addresses: list[str] = []
    for _, interface_addresses in psutil.net_if_addrs().items():
        for address in interface_addresses:
            if address.family == socket.AF_INET:
                addresses.append(address.address)
    return addresses


def discover_address(override: str | None = None) -> str:
    """Returns the IPv4 address services are advertised on.

    Args:
        override: Explicit address. Returned unmodified when non-empty.

    Returns:
        |override|, or else the first non-loopback IPv4 address of the host.

    Raises:
        NoAddressError: If there is no override and no non-loopback IPv4
            address.
    """
    if override:
        return override

    for address in get_all_address_strings():
        try:
            if ipaddress.IPv4Address(address).is_loopback:
                continue
        except ValueError:
            _logger.debug("Skipping unparsable interface address %s", address)
            continue
        return address

    raise NoAddressError("Could not retrieve ip address")
