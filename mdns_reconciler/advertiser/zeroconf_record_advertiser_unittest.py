import threading

import pytest
from zeroconf import DNSAddress, DNSService, IPVersion, Zeroconf

from mdns_reconciler.advertiser.zeroconf_record_advertiser import (
    ZeroconfRecordAdvertiser,
    registrable_instance,
)
from mdns_reconciler.errors import AdvertiserError
from mdns_reconciler.records.resource_record import ResourceRecord

A_RECORD = "web.local. 60 IN A 10.0.0.5"
REVERSE_PTR = "5.0.0.10.in-addr.arpa. 60 IN PTR web.local."
TYPE_PTR = "_http._tcp.local. 60 IN PTR web._http._tcp.local."
TXT_RECORD = 'web._http._tcp.local. 60 IN TXT ""'
META_PTR = "_services._dns-sd._udp.local. 60 IN PTR _http._tcp.local."
SRV_RECORD = "web._http._tcp.local. 60 IN SRV 0 0 8080 web.local."
SRV_9090 = "web._http._tcp.local. 60 IN SRV 0 0 9090 web.local."

WEB_RECORDS = [A_RECORD, REVERSE_PTR, TYPE_PTR, TXT_RECORD, META_PTR, SRV_RECORD]

PRINTER_A = "printer.local. 60 IN A 10.0.0.5"
PRINTER_TYPE_PTR = "_tcp.local. 60 IN PTR printer._tcp.local."
PRINTER_SRV = "printer._tcp.local. 60 IN SRV 0 0 80 printer.local."

_MODULE = "mdns_reconciler.advertiser.zeroconf_record_advertiser"


@pytest.fixture
def shared_zc(mocker):
    return mocker.MagicMock(spec=Zeroconf)


@pytest.fixture
def outgoing(mocker):
    """Replaces DNSOutgoing; returns the list of created messages."""
    messages = []

    def make_outgoing(*args, **kwargs):
        message = mocker.MagicMock(name=f"DNSOutgoing{len(messages)}")
        messages.append(message)
        return message

    mocker.patch(f"{_MODULE}.DNSOutgoing", side_effect=make_outgoing)
    return messages


def _answers(message):
    return [call.args[0] for call in message.add_answer_at_time.call_args_list]


def _announced_names(messages):
    return {record.name for message in messages for record in _answers(message)}


def _publish_all(advertiser, records):
    for record in records:
        advertiser.publish(record)


def _registered_info(zc, index=-1):
    return zc.register_service.call_args_list[index].args[0]


class TestRegistrableInstance:

    @pytest.mark.parametrize(
        "text", [TYPE_PTR, TXT_RECORD, SRV_RECORD, SRV_9090]
    )
    def test_service_records_belong_to_instance(self, text):
        record = ResourceRecord.parse(text)
        assert registrable_instance(record) == "web._http._tcp.local."

    @pytest.mark.parametrize(
        "text",
        [A_RECORD, REVERSE_PTR, META_PTR, PRINTER_TYPE_PTR, PRINTER_SRV],
    )
    def test_other_records_are_announced(self, text):
        assert registrable_instance(ResourceRecord.parse(text)) is None


class TestZeroconfRecordAdvertiser:

    def test_owned_instance_is_created_and_closed(self, mocker):
        owned = mocker.MagicMock(spec=Zeroconf)
        constructor = mocker.patch(f"{_MODULE}.Zeroconf", return_value=owned)

        advertiser = ZeroconfRecordAdvertiser()
        advertiser.close()

        constructor.assert_called_once_with(ip_version=IPVersion.V4Only)
        owned.close.assert_called_once()

    def test_shared_instance_is_not_closed(self, shared_zc):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        advertiser.close()

        shared_zc.close.assert_not_called()

    def test_publish_announces_record(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        advertiser.publish(A_RECORD)

        assert len(outgoing) == 1
        (record,) = _answers(outgoing[0])
        assert isinstance(record, DNSAddress)
        assert record.name == "web.local."
        assert record.ttl == 60
        shared_zc.send.assert_called_once_with(outgoing[0])
        assert advertiser.published_records == [A_RECORD]

    def test_publish_is_idempotent(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        advertiser.publish(A_RECORD)
        advertiser.publish(A_RECORD)

        assert shared_zc.send.call_count == 1
        assert advertiser.published_records == [A_RECORD]

    def test_complete_instance_is_registered_to_answer_queries(
        self, shared_zc, outgoing
    ):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        _publish_all(advertiser, WEB_RECORDS)

        shared_zc.register_service.assert_called_once()
        call = shared_zc.register_service.call_args
        assert call.kwargs == {"cooperating_responders": True, "strict": False}
        info = call.args[0]
        assert info.type == "_http._tcp.local."
        assert info.name == "web._http._tcp.local."
        assert info.server == "web.local."
        assert info.port == 8080
        assert info.parsed_addresses() == ["10.0.0.5"]
        assert info.text == b"\x00"
        assert (info.host_ttl, info.other_ttl) == (60, 60)
        assert advertiser.registered_services == {"web._http._tcp.local.": info}
        assert advertiser.published_records == WEB_RECORDS

    def test_registered_records_are_not_announced_separately(
        self, shared_zc, outgoing
    ):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        _publish_all(advertiser, WEB_RECORDS)

        assert _announced_names(outgoing) == {
            "web.local.",
            "5.0.0.10.in-addr.arpa.",
            "_services._dns-sd._udp.local.",
        }

    def test_registration_waits_for_host_address(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        _publish_all(advertiser, [TYPE_PTR, TXT_RECORD, SRV_RECORD])
        shared_zc.register_service.assert_not_called()

        advertiser.publish(A_RECORD)

        shared_zc.register_service.assert_called_once()
        assert _registered_info(shared_zc).port == 8080

    def test_port_change_replaces_registration(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)
        old_info = _registered_info(shared_zc)

        advertiser.publish(SRV_9090)

        shared_zc.unregister_service.assert_called_once_with(old_info)
        assert shared_zc.register_service.call_count == 2
        assert _registered_info(shared_zc).port == 9090

        advertiser.unpublish(SRV_RECORD)

        assert shared_zc.register_service.call_count == 2
        assert shared_zc.unregister_service.call_count == 1

    def test_incomplete_instance_is_unregistered(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)
        info = _registered_info(shared_zc)

        advertiser.unpublish(TYPE_PTR)

        shared_zc.unregister_service.assert_called_once_with(info)
        assert advertiser.registered_services == {}
        assert TYPE_PTR not in advertiser.published_records

    def test_unregister_reannounces_remaining_host_address(
        self, shared_zc, outgoing
    ):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)

        advertiser.unpublish(SRV_RECORD)

        (record,) = _answers(outgoing[-1])
        assert isinstance(record, DNSAddress)
        assert record.name == "web.local."
        assert record.ttl == 60

    def test_withdrawn_address_unregisters_then_says_goodbye(
        self, shared_zc, outgoing
    ):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)

        advertiser.unpublish(A_RECORD)

        shared_zc.unregister_service.assert_called_once()
        (goodbye,) = _answers(outgoing[-1])
        assert goodbye.name == "web.local."
        assert goodbye.ttl == 0

    def test_type_without_service_label_is_announced(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        _publish_all(advertiser, [PRINTER_A, PRINTER_TYPE_PTR, PRINTER_SRV])
        advertiser.unpublish(PRINTER_SRV)

        shared_zc.register_service.assert_not_called()
        (announced,) = _answers(outgoing[2])
        assert isinstance(announced, DNSService)
        assert (announced.port, announced.ttl) == (80, 60)
        (goodbye,) = _answers(outgoing[3])
        assert (goodbye.port, goodbye.ttl) == (80, 0)

    def test_unpublish_unknown_record_is_noop(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        advertiser.unpublish(A_RECORD)

        shared_zc.send.assert_not_called()
        shared_zc.unregister_service.assert_not_called()

    def test_malformed_record_raises_advertiser_error(self, shared_zc):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        with pytest.raises(AdvertiserError):
            advertiser.publish("garbage")
        with pytest.raises(AdvertiserError):
            advertiser.publish("web.local. 60 IN AAAA ::1")
        with pytest.raises(AdvertiserError):
            advertiser.publish("web._http._tcp.local. 60 IN SRV 0 0 web.local.")

        shared_zc.send.assert_not_called()
        assert advertiser.published_records == []

    def test_send_failure_raises_and_keeps_state(self, shared_zc, outgoing):
        shared_zc.send.side_effect = RuntimeError("loop closed")
        advertiser = ZeroconfRecordAdvertiser(shared_zc)

        with pytest.raises(AdvertiserError):
            advertiser.publish(A_RECORD)

        assert advertiser.published_records == []

    def test_register_failure_raises_and_is_retried(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS[:-1])
        shared_zc.register_service.side_effect = RuntimeError("loop blocked")

        with pytest.raises(AdvertiserError):
            advertiser.publish(SRV_RECORD)

        assert SRV_RECORD not in advertiser.published_records
        assert advertiser.registered_services == {}

        shared_zc.register_service.side_effect = None
        advertiser.publish(SRV_RECORD)

        assert list(advertiser.registered_services) == ["web._http._tcp.local."]

    def test_unregister_failure_keeps_record(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)
        shared_zc.unregister_service.side_effect = RuntimeError("loop closed")

        with pytest.raises(AdvertiserError):
            advertiser.unpublish(SRV_RECORD)

        assert SRV_RECORD in advertiser.published_records
        assert list(advertiser.registered_services) == ["web._http._tcp.local."]

    def test_refresh_reannounces_unregistered_records(
        self, shared_zc, outgoing
    ):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)
        sent = len(outgoing)

        advertiser.refresh()

        assert len(outgoing) == sent + 1
        refreshed = _answers(outgoing[-1])
        assert [r.name for r in refreshed] == [
            "web.local.",
            "5.0.0.10.in-addr.arpa.",
            "_services._dns-sd._udp.local.",
        ]
        assert all(r.ttl == 60 for r in refreshed)

    def test_refresh_without_records_sends_nothing(self, shared_zc, outgoing):
        ZeroconfRecordAdvertiser(shared_zc).refresh()
        shared_zc.send.assert_not_called()

    def test_close_unregisters_services(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(shared_zc)
        _publish_all(advertiser, WEB_RECORDS)
        info = _registered_info(shared_zc)

        advertiser.close()

        shared_zc.unregister_service.assert_called_once_with(info)
        assert advertiser.registered_services == {}

    def test_background_refresh(self, shared_zc, outgoing):
        refreshed = threading.Event()
        sent = []

        def on_send(message):
            sent.append(message)
            if len(sent) >= 2:
                refreshed.set()

        shared_zc.send.side_effect = on_send
        advertiser = ZeroconfRecordAdvertiser(
            shared_zc, refresh_interval_seconds=0.01
        )
        advertiser.publish(A_RECORD)

        errors = []
        advertiser.start(errors.append)
        try:
            assert refreshed.wait(timeout=2.0)
        finally:
            advertiser.close()

        assert errors == []

    def test_background_refresh_failure_is_reported(self, shared_zc, outgoing):
        advertiser = ZeroconfRecordAdvertiser(
            shared_zc, refresh_interval_seconds=0.01
        )
        advertiser.publish(A_RECORD)
        shared_zc.send.side_effect = RuntimeError("socket gone")

        reported = threading.Event()
        errors = []

        def on_error(e):
            errors.append(e)
            reported.set()

        advertiser.start(on_error)
        try:
            assert reported.wait(timeout=2.0)
        finally:
            advertiser.close()

        assert isinstance(errors[0], AdvertiserError)

    def test_rejects_non_positive_refresh_interval(self, shared_zc):
        with pytest.raises(ValueError):
            ZeroconfRecordAdvertiser(shared_zc, refresh_interval_seconds=0)
