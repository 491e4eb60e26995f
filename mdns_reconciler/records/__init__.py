"""Resource records and their derivation from service descriptors."""

from mdns_reconciler.records.record_derivation import (
    reverse_ipv4,
    service_records,
    srv_record,
    type_announcement_record,
    withdrawal_records,
)
from mdns_reconciler.records.resource_record import (
    RECORD_TTL_SECONDS,
    ResourceRecord,
)

__all__ = [
    "RECORD_TTL_SECONDS",
    "ResourceRecord",
    "reverse_ipv4",
    "service_records",
    "srv_record",
    "type_announcement_record",
    "withdrawal_records",
]
