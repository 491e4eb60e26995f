from mdns_reconciler.records.record_derivation import (
    reverse_ipv4,
    service_records,
    srv_record,
    type_announcement_record,
    withdrawal_records,
)
from mdns_reconciler.services.service_descriptor import ServiceDescriptor


def test_reverse_ipv4():
    assert reverse_ipv4("192.168.1.10") == "10.1.168.192"
    assert reverse_ipv4("10.0.0.5") == "5.0.0.10"


def test_reverse_ipv4_does_not_validate():
    assert reverse_ipv4("not-an-address") == "not-an-address"
    assert reverse_ipv4("1.2.3") == "3.2.1"


def test_service_records_with_scheme():
    web = ServiceDescriptor("web", 8080, "tcp", "http")

    records = service_records(web, "10.0.0.5", "5.0.0.10")

    assert [str(r) for r in records] == [
        "web.local. 60 IN A 10.0.0.5",
        "5.0.0.10.in-addr.arpa. 60 IN PTR web.local.",
        "_http._tcp.local. 60 IN PTR web._http._tcp.local.",
        'web._http._tcp.local. 60 IN TXT ""',
    ]


def test_service_records_without_scheme():
    ntp = ServiceDescriptor("clock", 123, "udp")

    records = service_records(ntp, "192.168.1.10", "10.1.168.192")

    assert [str(r) for r in records][2:] == [
        "_udp.local. 60 IN PTR clock._udp.local.",
        'clock._udp.local. 60 IN TXT ""',
    ]


def test_srv_record():
    web = ServiceDescriptor("web", 8080, "tcp", "http")
    assert str(srv_record(web)) == (
        "web._http._tcp.local. 60 IN SRV 0 0 8080 web.local."
    )


def test_type_announcement_record():
    assert str(type_announcement_record("_http._tcp.local.")) == (
        "_services._dns-sd._udp.local. 60 IN PTR _http._tcp.local."
    )


def test_withdrawal_records_add_srv():
    web = ServiceDescriptor("web", 8080, "tcp", "http")

    records = withdrawal_records(web, "10.0.0.5", "5.0.0.10")

    assert records[:4] == service_records(web, "10.0.0.5", "5.0.0.10")
    assert records[4] == srv_record(web)
    assert len(records) == 5
