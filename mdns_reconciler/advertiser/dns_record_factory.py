"""Converts ResourceRecord text into zeroconf DNS record objects."""

import shlex
import socket
from typing import NamedTuple

from zeroconf import DNSAddress, DNSPointer, DNSRecord, DNSService, DNSText

from mdns_reconciler.records.resource_record import (
    RECORD_CLASS_IN,
    ResourceRecord,
)

# RFC 1035 type and class codes.
TYPE_A = 1
TYPE_PTR = 12
TYPE_TXT = 16
TYPE_SRV = 33
CLASS_IN = 1

# RFC 6762 section 10.2.
CLASS_CACHE_FLUSH = 0x8000

# QR and AA set: an authoritative response.
FLAGS_AUTHORITATIVE_RESPONSE = 0x8400

_MAX_TXT_STRING_LENGTH = 255


class SrvData(NamedTuple):
    priority: int
    weight: int
    port: int
    target: str


def parse_srv(rdata: str) -> SrvData:
    """Splits SRV rdata, "priority weight port target", into its fields."""
    fields = rdata.split()
    if len(fields) != 4:
        raise ValueError(f"Malformed SRV rdata: {rdata!r}")
    priority, weight, port, target = fields
    try:
        return SrvData(int(priority), int(weight), int(port), target)
    except ValueError as e:
        raise ValueError(f"Malformed SRV rdata: {rdata!r}") from e


def encode_txt(rdata: str) -> bytes:
    """Encodes quoted TXT rdata as length-prefixed character strings.

    '""' becomes a single empty string, b"\\x00".
    """
    try:
        strings = shlex.split(rdata)
    except ValueError as e:
        raise ValueError(f"Malformed TXT rdata: {rdata!r}") from e

    encoded = bytearray()
    for value in strings or [""]:
        raw = value.encode("utf-8")
        if len(raw) > _MAX_TXT_STRING_LENGTH:
            raise ValueError(
                f"TXT string longer than {_MAX_TXT_STRING_LENGTH} bytes"
            )
        encoded.append(len(raw))
        encoded += raw
    return bytes(encoded)


def to_dns_record(record: ResourceRecord, ttl: int | None = None) -> DNSRecord:
    """Builds the zeroconf record for |record|.

    Args:
        record: Parsed resource record. Only class IN is supported.
        ttl: Overrides the record TTL; 0 produces a goodbye record.

    Returns:
        A `DNSAddress`, `DNSPointer`, `DNSService` or `DNSText`. Records that
        are unique to this host (A, SRV, TXT) carry the cache-flush bit.

    Raises:
        ValueError: If the class, type or rdata is not supported.
    """
    if record.rclass != RECORD_CLASS_IN:
        raise ValueError(f"Unsupported record class {record.rclass!r}")

    effective_ttl = record.ttl if ttl is None else ttl
    unique_class = CLASS_IN | CLASS_CACHE_FLUSH

    if record.rtype == "A":
        try:
            packed = socket.inet_aton(record.rdata)
        except OSError as e:
            raise ValueError(f"Invalid IPv4 address {record.rdata!r}") from e
        return DNSAddress(
            record.owner, TYPE_A, unique_class, effective_ttl, packed
        )

    if record.rtype == "PTR":
        return DNSPointer(
            record.owner, TYPE_PTR, CLASS_IN, effective_ttl, record.rdata
        )

    if record.rtype == "SRV":
        srv = parse_srv(record.rdata)
        return DNSService(
            record.owner,
            TYPE_SRV,
            unique_class,
            effective_ttl,
            srv.priority,
            srv.weight,
            srv.port,
            srv.target,
        )

    if record.rtype == "TXT":
        return DNSText(
            record.owner,
            TYPE_TXT,
            unique_class,
            effective_ttl,
            encode_txt(record.rdata),
        )

    raise ValueError(f"Unsupported record type {record.rtype!r}")
