import pytest

from mdns_reconciler.records.resource_record import ResourceRecord


class TestResourceRecord:

    def test_text_form(self):
        record = ResourceRecord("web.local.", "A", "10.0.0.5")
        assert str(record) == "web.local. 60 IN A 10.0.0.5"

    def test_parse_keeps_rdata_verbatim(self):
        record = ResourceRecord.parse(
            "web._http._tcp.local. 60 IN SRV 0 0 8080 web.local."
        )

        assert record == ResourceRecord(
            "web._http._tcp.local.", "SRV", "0 0 8080 web.local."
        )

    def test_parse_normalizes_case_of_class_and_type(self):
        record = ResourceRecord.parse('web._http._tcp.local. 0 in txt ""')
        assert record.rclass == "IN"
        assert record.rtype == "TXT"
        assert record.rdata == '""'
        assert record.ttl == 0

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "web.local. 60 IN A",
            "web.local. sixty IN A 10.0.0.5",
            "web.local. -1 IN A 10.0.0.5",
        ],
    )
    def test_parse_rejects_malformed_text(self, text):
        with pytest.raises(ValueError):
            ResourceRecord.parse(text)
