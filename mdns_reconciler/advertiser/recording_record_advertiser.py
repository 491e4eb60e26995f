"""In-memory RecordAdvertiser that records calls instead of sending them."""

import logging
import threading
from typing import NamedTuple

from mdns_reconciler.advertiser.record_advertiser import RecordAdvertiser

_logger = logging.getLogger(__name__)


class AdvertiserCall(NamedTuple):
    action: str  # "publish" or "unpublish"
    record_text: str


class RecordingRecordAdvertiser(RecordAdvertiser):
    """Keeps the advertised record set in memory.

    Every call is appended to `calls`, including idempotent repeats, so a
    caller can verify exactly which operations were requested. Used by
    `run --dry-run` and by tests.
    """

    def __init__(self) -> None:
        self.__lock = threading.Lock()
        self.__calls: list[AdvertiserCall] = []
        self.__live: dict[str, None] = {}

    @property
    def calls(self) -> list[AdvertiserCall]:
        with self.__lock:
            return list(self.__calls)

    @property
    def published_records(self) -> list[str]:
        """Currently published record texts, in publish order."""
        with self.__lock:
            return list(self.__live)

    def clear_calls(self) -> None:
        with self.__lock:
            self.__calls.clear()

    def publish(self, record_text: str) -> None:
        with self.__lock:
            self.__calls.append(AdvertiserCall("publish", record_text))
            self.__live[record_text] = None
        _logger.info("Would publish %s", record_text)

    def unpublish(self, record_text: str) -> None:
        with self.__lock:
            self.__calls.append(AdvertiserCall("unpublish", record_text))
            self.__live.pop(record_text, None)
        _logger.info("Would unpublish %s", record_text)
