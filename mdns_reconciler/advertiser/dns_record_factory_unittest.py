import socket

import pytest
from zeroconf import DNSAddress, DNSPointer, DNSService, DNSText

from mdns_reconciler.advertiser.dns_record_factory import (
    CLASS_IN,
    TYPE_A,
    TYPE_PTR,
    TYPE_SRV,
    TYPE_TXT,
    SrvData,
    encode_txt,
    parse_srv,
    to_dns_record,
)
from mdns_reconciler.records.resource_record import ResourceRecord


class TestToDnsRecord:

    def test_address_record(self):
        record = to_dns_record(ResourceRecord("web.local.", "A", "10.0.0.5"))

        assert isinstance(record, DNSAddress)
        assert record.name == "web.local."
        assert record.type == TYPE_A
        assert record.class_ == CLASS_IN
        assert record.unique
        assert record.ttl == 60
        assert record.address == socket.inet_aton("10.0.0.5")

    def test_pointer_record_is_shared(self):
        record = to_dns_record(
            ResourceRecord("_http._tcp.local.", "PTR", "web._http._tcp.local.")
        )

        assert isinstance(record, DNSPointer)
        assert record.type == TYPE_PTR
        assert not record.unique
        assert record.alias == "web._http._tcp.local."

    def test_service_record(self):
        record = to_dns_record(
            ResourceRecord("web._http._tcp.local.", "SRV", "0 0 8080 web.local.")
        )

        assert isinstance(record, DNSService)
        assert record.type == TYPE_SRV
        assert record.unique
        assert (record.priority, record.weight, record.port) == (0, 0, 8080)
        assert record.server == "web.local."

    def test_text_record(self):
        record = to_dns_record(ResourceRecord("web._http._tcp.local.", "TXT", '""'))

        assert isinstance(record, DNSText)
        assert record.type == TYPE_TXT
        assert record.text == b"\x00"

    def test_ttl_override_builds_goodbye(self):
        record = to_dns_record(
            ResourceRecord("web.local.", "A", "10.0.0.5"), ttl=0
        )
        assert record.ttl == 0

    @pytest.mark.parametrize(
        "record",
        [
            ResourceRecord("web.local.", "AAAA", "::1"),
            ResourceRecord("web.local.", "A", "10.0.0.5", rclass="CH"),
            ResourceRecord("web.local.", "A", "not-an-ip"),
            ResourceRecord("web._http._tcp.local.", "SRV", "0 0 web.local."),
            ResourceRecord("web._http._tcp.local.", "SRV", "0 0 http web.local."),
        ],
    )
    def test_rejects_unsupported_records(self, record):
        with pytest.raises(ValueError):
            to_dns_record(record)


class TestEncodeTxt:

    def test_empty_string(self):
        assert encode_txt('""') == b"\x00"

    def test_multiple_strings(self):
        assert encode_txt('"path=/" "v=1"') == b"\x06path=/\x03v=1"

    def test_no_strings_is_one_empty_string(self):
        assert encode_txt("") == b"\x00"

    def test_rejects_unbalanced_quotes(self):
        with pytest.raises(ValueError):
            encode_txt('"open')

    def test_rejects_long_strings(self):
        with pytest.raises(ValueError):
            encode_txt("x" * 256)


class TestParseSrv:

    def test_fields(self):
        assert parse_srv("0 5 8080 web.local.") == SrvData(
            0, 5, 8080, "web.local."
        )

    @pytest.mark.parametrize("rdata", ["", "0 0 web.local.", "a b c d"])
    def test_rejects_malformed(self, rdata):
        with pytest.raises(ValueError, match="Malformed SRV"):
            parse_srv(rdata)
