"""Derives the DNS-SD records advertised for a service.

All records are computed from the descriptor on demand; nothing here keeps
state.
"""

from mdns_reconciler.records.resource_record import ResourceRecord
from mdns_reconciler.services.service_descriptor import ServiceDescriptor

SERVICES_META_QUERY = "_services._dns-sd._udp.local."


def reverse_ipv4(address: str) -> str:
    """Reverses the octets of a dotted-decimal IPv4 address.

    "192.168.1.10" becomes "10.1.168.192". The input is not validated; a
    malformed address yields a malformed result.
    """
    return ".".join(reversed(address.split(".")))


def service_records(
    descriptor: ServiceDescriptor, address: str, reverse_address: str
) -> list[ResourceRecord]:
    """Returns the four per-service records, in publish order.

    Args:
        descriptor: The service being advertised.
        address: IPv4 address the service is reachable on.
        reverse_address: `reverse_ipv4(address)`.

    Returns:
        The address record, the reverse-lookup pointer, the type pointer and
        an empty text record.
    """
    host = f"{descriptor.name}.local."
    instance = f"{descriptor.name}.{descriptor.service_type}"
    return [
        ResourceRecord(host, "A", address),
        ResourceRecord(f"{reverse_address}.in-addr.arpa.", "PTR", host),
        ResourceRecord(descriptor.service_type, "PTR", instance),
        ResourceRecord(instance, "TXT", '""'),
    ]


def srv_record(descriptor: ServiceDescriptor) -> ResourceRecord:
    """Returns the SRV record pointing the instance at host and port."""
    return ResourceRecord(
        f"{descriptor.name}.{descriptor.service_type}",
        "SRV",
        f"0 0 {descriptor.port} {descriptor.name}.local.",
    )


def type_announcement_record(service_type: str) -> ResourceRecord:
    """Returns the shared record that announces |service_type|."""
    return ResourceRecord(SERVICES_META_QUERY, "PTR", service_type)


def withdrawal_records(
    descriptor: ServiceDescriptor, address: str, reverse_address: str
) -> list[ResourceRecord]:
    """Returns every record withdrawn when |descriptor| goes away.

    Unlike publication, withdrawal also covers the SRV record.
    """
    return [
        *service_records(descriptor, address, reverse_address),
        srv_record(descriptor),
    ]
