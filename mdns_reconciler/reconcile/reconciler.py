"""Keeps the advertised record set in line with the desired services."""

import logging
import threading
from collections.abc import Sequence

from mdns_reconciler.advertiser.record_advertiser import RecordAdvertiser
from mdns_reconciler.errors import AdvertiserError, ReconcileError
from mdns_reconciler.records.record_derivation import (
    reverse_ipv4,
    service_records,
    srv_record,
    type_announcement_record,
    withdrawal_records,
)
from mdns_reconciler.services.service_descriptor import ServiceDescriptor

_logger = logging.getLogger(__name__)


class Reconciler:
    """Diffs desired services against what is on the wire and applies it.

    The reconciler is the only owner of the published state:

    - the services currently advertised, keyed by identity;
    - per service type, the number of published services using it;
    - the service types whose shared announcement is currently published;
    - per identity, the SRV record currently published.

    All of it is mutated only inside `reconcile()`, under a single lock that
    also serializes every call into the advertiser. Concurrent callers queue
    on that lock.

    When the advertiser fails part way, the pass stops with a
    `ReconcileError`. Nothing is rolled back: the published state reflects
    exactly the operations that succeeded, and the next pass diffs against
    it and converges.
    """

    def __init__(self, advertiser: RecordAdvertiser, address: str) -> None:
        """Initializes the Reconciler.

        Args:
            advertiser: Receives every publish and unpublish call.
            address: IPv4 address to advertise the services on.
        """
        self.__advertiser = advertiser
        self.__address = address
        self.__reverse_address = reverse_ipv4(address)

        self.__lock = threading.Lock()
        self.__published_services: dict[str, ServiceDescriptor] = {}
        self.__type_refcount: dict[str, int] = {}
        self.__announced_types: set[str] = set()
        self.__published_srv: dict[str, str] = {}

    @property
    def address(self) -> str:
        return self.__address

    def published_identities(self) -> list[str]:
        """Returns the identities of the advertised services, sorted."""
        with self.__lock:
            return sorted(self.__published_services)

    def type_refcounts(self) -> dict[str, int]:
        """Returns a copy of the per-type usage counts."""
        with self.__lock:
            return dict(self.__type_refcount)

    def reconcile(self, desired: Sequence[ServiceDescriptor]) -> None:
        """Applies the minimal set of operations to advertise |desired|.

        Services already advertised generate no advertiser calls. New
        services get their four records, their type announcement if the type
        is not yet announced, and their SRV record. Services no longer
        desired are withdrawn together with their SRV record; the type
        announcement is withdrawn once its last user is gone.

        Args:
            desired: The complete desired state. Order only affects the
                order of publish calls.

        Raises:
            ReconcileError: If the advertiser failed. Operations applied
                before the failure stay applied.
        """
        with self.__lock:
            try:
                self.__reconcile_locked(desired)
            except AdvertiserError as e:
                _logger.error("Reconciliation stopped early: %s", e)
                raise ReconcileError(f"Reconciliation stopped early: {e}") from e

            _logger.info(
                "Reconciled %d service(s) across %d type(s).",
                len(self.__published_services),
                len(self.__announced_types),
            )

    def withdraw_all(self) -> None:
        """Withdraws every advertised record.

        Raises:
            ReconcileError: If the advertiser failed.
        """
        self.reconcile([])

    def __reconcile_locked(self, desired: Sequence[ServiceDescriptor]) -> None:
        seen_identities = {descriptor.identity for descriptor in desired}

        for descriptor in desired:
            self.__add(descriptor)

        for identity, service in list(self.__published_services.items()):
            if identity not in seen_identities:
                self.__remove(identity, service)

        # Left behind when a previous pass failed between the last user
        # going away and the announcement being withdrawn.
        for service_type in sorted(
            self.__announced_types - self.__type_refcount.keys()
        ):
            self.__withdraw_type(service_type)

    def __add(self, descriptor: ServiceDescriptor) -> None:
        identity = descriptor.identity
        service_type = descriptor.service_type

        if identity not in self.__published_services:
            _logger.info("publishing %s", descriptor)
            for record in service_records(
                descriptor, self.__address, self.__reverse_address
            ):
                self.__advertiser.publish(str(record))
            self.__published_services[identity] = descriptor
            self.__type_refcount[service_type] = (
                self.__type_refcount.get(service_type, 0) + 1
            )

        if service_type not in self.__announced_types:
            _logger.info("registering type %s", service_type)
            self.__advertiser.publish(str(type_announcement_record(service_type)))
            self.__announced_types.add(service_type)

        # The identity includes the port, so an existing identity always
        # maps to the same SRV text and this only fires on first publish.
        srv = str(srv_record(descriptor))
        previous_srv = self.__published_srv.get(identity)
        if previous_srv != srv:
            if previous_srv is not None:
                self.__advertiser.unpublish(previous_srv)
            self.__advertiser.publish(srv)
            self.__published_srv[identity] = srv

    def __remove(self, identity: str, service: ServiceDescriptor) -> None:
        _logger.info("unpublishing %s", service)

        still_used = self.__records_in_use(excluding=identity)
        for record in withdrawal_records(
            service, self.__address, self.__reverse_address
        ):
            text = str(record)
            if text in still_used:
                _logger.debug("keeping %s, still in use", text)
                continue
            self.__advertiser.unpublish(text)

        del self.__published_services[identity]
        self.__published_srv.pop(identity, None)

        service_type = service.service_type
        remaining = self.__type_refcount.get(service_type, 0) - 1
        if remaining > 0:
            self.__type_refcount[service_type] = remaining
            return

        self.__type_refcount.pop(service_type, None)
        self.__withdraw_type(service_type)

    def __withdraw_type(self, service_type: str) -> None:
        if service_type not in self.__announced_types:
            return

        _logger.info("deregistering type %s", service_type)
        self.__advertiser.unpublish(str(type_announcement_record(service_type)))
        self.__announced_types.discard(service_type)

    def __records_in_use(self, excluding: str) -> set[str]:
        """Record texts derived by published services other than |excluding|.

        Services with the same name share their address and reverse records,
        and services with the same name and type share every record but SRV.
        """
        in_use: set[str] = set()
        for identity, service in self.__published_services.items():
            if identity == excluding:
                continue
            in_use.update(
                str(record)
                for record in withdrawal_records(
                    service, self.__address, self.__reverse_address
                )
            )
        return in_use
