from mdns_reconciler.advertiser.recording_record_advertiser import (
    RecordingRecordAdvertiser,
)
from mdns_reconciler.errors import AdvertiserError
from mdns_reconciler.services.service_descriptor import (
    ServiceDescriptor,
    validate,
)


def make_service(
    name: str, port: int = 0, protocol: str = "", scheme: str = ""
) -> ServiceDescriptor:
    return validate(
        {"name": name, "port": port, "protocol": protocol, "scheme": scheme}
    )


class FailingRecordAdvertiser(RecordingRecordAdvertiser):
    """Records calls and raises once a chosen call is reached.

    |fail_on| is the 1-based index of the call that fails; failed calls are
    recorded but do not change the live set.
    """

    __test__ = False

    def __init__(self, fail_on: int | None = None) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.__attempts = 0

    def publish(self, record_text: str) -> None:
        self.__maybe_fail("publish", record_text)
        super().publish(record_text)

    def unpublish(self, record_text: str) -> None:
        self.__maybe_fail("unpublish", record_text)
        super().unpublish(record_text)

    def __maybe_fail(self, action: str, record_text: str) -> None:
        self.__attempts += 1
        if self.fail_on is not None and self.__attempts == self.fail_on:
            raise AdvertiserError(f"injected failure on {action} {record_text}")
