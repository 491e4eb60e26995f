"""RecordAdvertiser ABC for publishing raw resource records via mDNS."""

from abc import ABC, abstractmethod
from collections.abc import Callable


class RecordAdvertiser(ABC):
    """Abstract base class for record advertisers.

    An advertiser puts individual resource records on the local network and
    takes them off again. Records are exchanged in their text form,
    `<owner> <ttl> IN <type> <rdata>` (see `ResourceRecord`).

    Both operations are idempotent: publishing a record that is already
    published, or withdrawing one that is not, must not raise.
    """

    @abstractmethod
    def publish(self, record_text: str) -> None:
        """Publishes |record_text|.

        Raises:
            AdvertiserError: If the record could not be published.
        """

    @abstractmethod
    def unpublish(self, record_text: str) -> None:
        """Withdraws |record_text|.

        Raises:
            AdvertiserError: If the record could not be withdrawn.
        """

    def start(self, on_error_cb: Callable[[Exception], None]) -> None:
        """Starts any background work; errors go to |on_error_cb|."""

    def close(self) -> None:
        """Releases any resources held by the advertiser."""
