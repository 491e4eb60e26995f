"""Publishes resource records on the local network using zeroconf."""

import logging
import socket
import threading
from collections.abc import Callable
from typing import NamedTuple

from zeroconf import (
    BadTypeInNameException,
    DNSOutgoing,
    IPVersion,
    ServiceInfo,
    Zeroconf,
    service_type_name,
)

from mdns_reconciler.advertiser.dns_record_factory import (
    FLAGS_AUTHORITATIVE_RESPONSE,
    encode_txt,
    parse_srv,
    to_dns_record,
)
from mdns_reconciler.advertiser.record_advertiser import RecordAdvertiser
from mdns_reconciler.errors import AdvertiserError
from mdns_reconciler.records.resource_record import (
    RECORD_TTL_SECONDS,
    ResourceRecord,
)
from mdns_reconciler.threading.throwing_thread import ThrowingThread

_logger = logging.getLogger(__name__)

# Re-announce before remote caches expire the records.
DEFAULT_REFRESH_INTERVAL_SECONDS = RECORD_TTL_SECONDS * 0.8


class ServiceRegistration(NamedTuple):
    """Everything zeroconf needs to serve one service instance."""

    service_type: str
    name: str
    server: str
    port: int
    priority: int
    weight: int
    text: bytes
    addresses: tuple[str, ...]
    ttl: int

    def to_service_info(self) -> ServiceInfo:
        return ServiceInfo(
            type_=self.service_type,
            name=self.name,
            addresses=[socket.inet_aton(a) for a in self.addresses],
            port=self.port,
            weight=self.weight,
            priority=self.priority,
            properties=self.text,
            server=self.server,
            host_ttl=self.ttl,
            other_ttl=self.ttl,
        )


def registrable_instance(record: ResourceRecord) -> str | None:
    """Returns the service instance |record| belongs to, if zeroconf takes it.

    SRV and TXT records are owned by the instance and the type pointer points
    at it. Instances under a type without a service label, such as
    "printer._tcp.local.", are not accepted by zeroconf and yield None, as do
    all other records.
    """
    if record.rtype in ("SRV", "TXT"):
        name = record.owner
    elif record.rtype == "PTR" and record.rdata.endswith(f".{record.owner}"):
        name = record.rdata
    else:
        return None

    try:
        service_type_name(name, strict=False)
    except BadTypeInNameException:
        return None
    return name


class ZeroconfRecordAdvertiser(RecordAdvertiser):
    """Advertises records through a zeroconf responder.

    Records describing a complete service instance (type pointer, SRV and an
    A record for the SRV target, plus TXT when present) are registered with
    zeroconf as a `ServiceInfo`, so queries for them are answered at any
    time. The registration follows the live set: it is replaced when the
    instance's records change and unregistered, with goodbyes, once the
    instance is incomplete.

    Every other record (A, reverse and enumeration pointers, and records of
    instances zeroconf cannot register) is sent as an unsolicited
    announcement on publish and a goodbye (TTL 0) on withdrawal, and is
    re-announced by `refresh()`, which `start()` runs periodically.

    A `Zeroconf` instance may be shared with the caller. Otherwise one is
    created (IPv4 only) and owned by this advertiser, and closed by `close()`.
    """

    def __init__(
        self,
        zc_instance: Zeroconf | None = None,
        *,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        """Initializes the ZeroconfRecordAdvertiser.

        Args:
            zc_instance: Optional shared `Zeroconf`. Not closed by `close()`.
            refresh_interval_seconds: Delay between re-announcements once
                `start()` has been called. Must be positive.

        Raises:
            ValueError: If |refresh_interval_seconds| is not positive.
        """
        if refresh_interval_seconds <= 0:
            raise ValueError(
                "refresh_interval_seconds must be positive, "
                f"got {refresh_interval_seconds}."
            )

        self.__refresh_interval_seconds = refresh_interval_seconds
        self.__owned_zc: Zeroconf | None = None
        if zc_instance is not None:
            self._zc = zc_instance
            _logger.info("Using shared Zeroconf instance.")
        else:
            _logger.info("Creating new Zeroconf instance.")
            self.__owned_zc = Zeroconf(ip_version=IPVersion.V4Only)
            self._zc = self.__owned_zc

        # Keyed by record text, in publish order.
        self.__records: dict[str, ResourceRecord] = {}
        # Keyed by instance name.
        self.__registered: dict[
            str, tuple[ServiceRegistration, ServiceInfo]
        ] = {}
        self.__lock = threading.Lock()
        self.__stop_event = threading.Event()
        self.__refresher: ThrowingThread | None = None

    @property
    def published_records(self) -> list[str]:
        """Text of every record currently advertised."""
        with self.__lock:
            return list(self.__records)

    @property
    def registered_services(self) -> dict[str, ServiceInfo]:
        """The `ServiceInfo` zeroconf serves, by instance name."""
        with self.__lock:
            return {
                name: info for name, (_, info) in self.__registered.items()
            }

    def publish(self, record_text: str) -> None:
        with self.__lock:
            if record_text in self.__records:
                _logger.debug("Record already published: %s", record_text)
                return

            record = self.__parse(record_text)
            self.__records[record_text] = record
            try:
                self.__sync_registrations()
                if registrable_instance(record) is None:
                    self.__send_all([record], ttl=None)
            except AdvertiserError:
                del self.__records[record_text]
                raise
        _logger.debug("Published %s", record_text)

    def unpublish(self, record_text: str) -> None:
        with self.__lock:
            record = self.__records.pop(record_text, None)
            if record is None:
                _logger.debug("Record not published: %s", record_text)
                return

            try:
                self.__sync_registrations()
                if registrable_instance(record) is None:
                    self.__send_all([record], ttl=0)
            except AdvertiserError:
                self.__records[record_text] = record
                raise
        _logger.debug("Withdrew %s", record_text)

    def refresh(self) -> None:
        """Re-announces every record zeroconf does not serve itself."""
        with self.__lock:
            records = [
                r
                for r in self.__records.values()
                if registrable_instance(r) is None
            ]
            if not records:
                return
            self.__send_all(records, ttl=None)
        _logger.debug("Re-announced %d record(s).", len(records))

    def start(self, on_error_cb: Callable[[Exception], None]) -> None:
        """Starts re-announcing published records in the background.

        Args:
            on_error_cb: Receives the error if re-announcing fails; the
                refresher stops afterwards.
        """
        if self.__refresher is not None:
            return

        self.__stop_event.clear()
        self.__refresher = ThrowingThread(
            target=self.__refresh_loop,
            on_error_cb=on_error_cb,
            name="mdns-record-refresher",
        )
        self.__refresher.start()

    def close(self) -> None:
        """Stops the refresher, unregisters services and closes zeroconf.

        Registered services get goodbyes, since nothing answers for them
        afterwards. Announced records are left to expire; withdraw them
        first for an immediate goodbye.
        """
        self.__stop_event.set()
        if self.__refresher is not None:
            self.__refresher.join(timeout=self.__refresh_interval_seconds)
            self.__refresher = None

        with self.__lock:
            for name in list(self.__registered):
                try:
                    self.__unregister(name)
                except AdvertiserError as e:
                    _logger.error(
                        "Service %s may still be registered: %s", name, e
                    )
                    self.__registered.pop(name, None)

        if self.__owned_zc is not None:
            _logger.info("Closing owned Zeroconf instance.")
            self.__owned_zc.close()
            self.__owned_zc = None

    def __refresh_loop(self) -> None:
        while not self.__stop_event.wait(self.__refresh_interval_seconds):
            self.refresh()

    def __parse(self, record_text: str) -> ResourceRecord:
        try:
            record = ResourceRecord.parse(record_text)
            to_dns_record(record)
        except ValueError as e:
            raise AdvertiserError(f"Cannot advertise {record_text}: {e}") from e
        return record

    def __desired_registrations(self) -> dict[str, ServiceRegistration]:
        """Builds a registration for every complete instance in the live set.

        When an instance has several SRV or TXT records, the latest published
        one wins.
        """
        pointers: dict[str, str] = {}
        services: dict[str, ResourceRecord] = {}
        texts: dict[str, bytes] = {}
        addresses: dict[str, list[str]] = {}
        for record in self.__records.values():
            if record.rtype == "A":
                addresses.setdefault(record.owner.lower(), []).append(
                    record.rdata
                )
                continue

            name = registrable_instance(record)
            if name is None:
                continue
            if record.rtype == "PTR":
                pointers[name] = record.owner
            elif record.rtype == "SRV":
                services[name] = record
            else:
                texts[name] = encode_txt(record.rdata)

        registrations = {}
        for name, service_type in pointers.items():
            srv_record = services.get(name)
            if srv_record is None:
                continue
            srv = parse_srv(srv_record.rdata)
            host_addresses = addresses.get(srv.target.lower())
            if not host_addresses:
                continue
            registrations[name] = ServiceRegistration(
                service_type=service_type,
                name=name,
                server=srv.target,
                port=srv.port,
                priority=srv.priority,
                weight=srv.weight,
                text=texts.get(name, encode_txt("")),
                addresses=tuple(sorted(set(host_addresses))),
                ttl=srv_record.ttl,
            )
        return registrations

    def __sync_registrations(self) -> None:
        desired = self.__desired_registrations()
        for name, (registration, _) in list(self.__registered.items()):
            if desired.get(name) != registration:
                self.__unregister(name)
        for name, registration in desired.items():
            if name not in self.__registered:
                self.__register(registration)

    def __register(self, registration: ServiceRegistration) -> None:
        try:
            info = registration.to_service_info()
            # Records are owned by the reconciler; no conflict probing.
            self._zc.register_service(
                info, cooperating_responders=True, strict=False
            )
        # pylint: disable=broad-exception-caught # zeroconf raises many types.
        except Exception as e:
            raise AdvertiserError(
                f"Failed to register service {registration.name}: {e}"
            ) from e

        self.__registered[registration.name] = (registration, info)
        _logger.info(
            "Registered service %s on %s:%d.",
            registration.name,
            registration.server,
            registration.port,
        )

    def __unregister(self, name: str) -> None:
        registration, info = self.__registered[name]
        try:
            self._zc.unregister_service(info)
        # pylint: disable=broad-exception-caught # zeroconf raises many types.
        except Exception as e:
            raise AdvertiserError(
                f"Failed to unregister service {name}: {e}"
            ) from e

        del self.__registered[name]
        _logger.info("Unregistered service %s.", name)
        self.__reannounce_host(registration.server)

    def __reannounce_host(self, server: str) -> None:
        """Re-announces |server|'s live A records after zeroconf's goodbye.

        zeroconf withdraws a host's addresses along with the last service
        registered on it.
        """
        server_key = server.lower()
        if any(
            r.server.lower() == server_key
            for r, _ in self.__registered.values()
        ):
            return

        records = [
            r
            for r in self.__records.values()
            if r.rtype == "A" and r.owner.lower() == server_key
        ]
        if records:
            self.__send_all(records, ttl=None)

    def __send_all(self, records: list[ResourceRecord], ttl: int | None) -> None:
        try:
            out = DNSOutgoing(FLAGS_AUTHORITATIVE_RESPONSE)
            for record in records:
                out.add_answer_at_time(to_dns_record(record, ttl=ttl), 0)
            self._zc.send(out)
        except ValueError as e:
            raise AdvertiserError(
                f"Cannot advertise {records[0]}: {e}"
            ) from e
        # pylint: disable=broad-exception-caught # zeroconf raises many types.
        except Exception as e:
            raise AdvertiserError(f"Failed to send mDNS response: {e}") from e
