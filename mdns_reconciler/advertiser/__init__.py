"""Record advertisers: the boundary to the mDNS responder."""

from mdns_reconciler.advertiser.record_advertiser import RecordAdvertiser
from mdns_reconciler.advertiser.recording_record_advertiser import (
    RecordingRecordAdvertiser,
)
from mdns_reconciler.advertiser.zeroconf_record_advertiser import (
    ZeroconfRecordAdvertiser,
)

__all__ = [
    "RecordAdvertiser",
    "RecordingRecordAdvertiser",
    "ZeroconfRecordAdvertiser",
]
