import threading
import time

import pytest

from mdns_reconciler.advertiser.recording_record_advertiser import (
    AdvertiserCall,
    RecordingRecordAdvertiser,
)
from mdns_reconciler.errors import AdvertiserError, ReconcileError
from mdns_reconciler.reconcile.reconciler import Reconciler
from mdns_reconciler.test.reconciler_fixtures import (
    FailingRecordAdvertiser,
    make_service,
)

ADDRESS = "10.0.0.5"

WEB_RECORDS = [
    "web.local. 60 IN A 10.0.0.5",
    "5.0.0.10.in-addr.arpa. 60 IN PTR web.local.",
    "_http._tcp.local. 60 IN PTR web._http._tcp.local.",
    'web._http._tcp.local. 60 IN TXT ""',
]
HTTP_TYPE_ANNOUNCEMENT = "_services._dns-sd._udp.local. 60 IN PTR _http._tcp.local."
WEB_SRV = "web._http._tcp.local. 60 IN SRV 0 0 8080 web.local."


def _published(advertiser):
    return [c.record_text for c in advertiser.calls if c.action == "publish"]


def _unpublished(advertiser):
    return [c.record_text for c in advertiser.calls if c.action == "unpublish"]


@pytest.fixture
def advertiser():
    return RecordingRecordAdvertiser()


@pytest.fixture
def reconciler(advertiser):
    return Reconciler(advertiser, ADDRESS)


class TestScenario:

    def test_publishes_web_service(self, advertiser, reconciler):
        web = make_service("web", 8080, "tcp", "http")

        reconciler.reconcile([web])

        assert advertiser.calls == [
            AdvertiserCall("publish", record)
            for record in [*WEB_RECORDS, HTTP_TYPE_ANNOUNCEMENT, WEB_SRV]
        ]
        assert reconciler.published_identities() == ["http+tcp://web.local:8080"]
        assert reconciler.type_refcounts() == {"_http._tcp.local.": 1}

    def test_empty_reload_withdraws_everything(self, advertiser, reconciler):
        reconciler.reconcile([make_service("web", 8080, "tcp", "http")])
        advertiser.clear_calls()

        reconciler.reconcile([])

        assert sorted(_unpublished(advertiser)) == sorted(
            [*WEB_RECORDS, WEB_SRV, HTTP_TYPE_ANNOUNCEMENT]
        )
        assert _published(advertiser) == []
        assert advertiser.published_records == []
        assert reconciler.published_identities() == []
        assert reconciler.type_refcounts() == {}

    def test_type_announcement_withdrawn_after_service_records(
        self, advertiser, reconciler
    ):
        reconciler.reconcile([make_service("web", 8080, "tcp", "http")])
        advertiser.clear_calls()

        reconciler.reconcile([])

        assert _unpublished(advertiser)[-1] == HTTP_TYPE_ANNOUNCEMENT


class TestIdempotence:

    def test_second_pass_makes_no_calls(self, advertiser, reconciler):
        desired = [
            make_service("web", 8080, "tcp", "http"),
            make_service("ntp", 123, "udp"),
            make_service("printer"),
        ]
        reconciler.reconcile(desired)
        advertiser.clear_calls()

        reconciler.reconcile(desired)

        assert advertiser.calls == []

    def test_order_does_not_matter(self, advertiser, reconciler):
        a = make_service("a", scheme="http")
        b = make_service("b", scheme="https")
        reconciler.reconcile([a, b])
        advertiser.clear_calls()

        reconciler.reconcile([b, a])

        assert advertiser.calls == []

    def test_duplicate_entries_publish_once(self, advertiser, reconciler):
        web = make_service("web", 8080, "tcp", "http")

        reconciler.reconcile([web, web])

        assert _published(advertiser) == [
            *WEB_RECORDS,
            HTTP_TYPE_ANNOUNCEMENT,
            WEB_SRV,
        ]
        assert reconciler.type_refcounts() == {"_http._tcp.local.": 1}


class TestMinimalDiff:

    def test_only_changed_services_generate_calls(self, advertiser, reconciler):
        kept = make_service("kept", 22)
        gone = make_service("gone", 23)
        new = make_service("new", 24)
        reconciler.reconcile([kept, gone])
        advertiser.clear_calls()

        reconciler.reconcile([kept, new])

        published = _published(advertiser)
        unpublished = _unpublished(advertiser)
        assert published and all("new" in r for r in published)
        assert len(unpublished) == 5
        assert all("gone" in r for r in unpublished)
        assert not any("kept" in r for r in published + unpublished)
        assert reconciler.published_identities() == [
            "+tcp://kept.local:22",
            "+tcp://new.local:24",
        ]

    def test_port_change_replaces_only_srv(self, advertiser, reconciler):
        reconciler.reconcile([make_service("web", 8080, "tcp", "http")])
        advertiser.clear_calls()

        reconciler.reconcile([make_service("web", 9090, "tcp", "http")])

        assert _unpublished(advertiser) == [WEB_SRV]
        assert (
            "web._http._tcp.local. 60 IN SRV 0 0 9090 web.local."
            in _published(advertiser)
        )
        assert sorted(advertiser.published_records) == sorted(
            [
                *WEB_RECORDS,
                HTTP_TYPE_ANNOUNCEMENT,
                "web._http._tcp.local. 60 IN SRV 0 0 9090 web.local.",
            ]
        )
        assert reconciler.published_identities() == [
            "http+tcp://web.local:9090"
        ]
        assert reconciler.type_refcounts() == {"_http._tcp.local.": 1}

    def test_same_name_other_type_keeps_host_records(
        self, advertiser, reconciler
    ):
        http = make_service("box", 80, scheme="http")
        ssh = make_service("box", 22, scheme="ssh")
        reconciler.reconcile([http, ssh])
        advertiser.clear_calls()

        reconciler.reconcile([ssh])

        unpublished = _unpublished(advertiser)
        assert "box.local. 60 IN A 10.0.0.5" not in unpublished
        assert "5.0.0.10.in-addr.arpa. 60 IN PTR box.local." not in unpublished
        assert "_http._tcp.local. 60 IN PTR box._http._tcp.local." in unpublished
        assert "box.local. 60 IN A 10.0.0.5" in advertiser.published_records


class TestTypeRefcount:

    def test_shared_type_announced_once_and_withdrawn_last(
        self, advertiser, reconciler
    ):
        a = make_service("a", 8080, scheme="http")
        b = make_service("b", 8081, scheme="http")

        reconciler.reconcile([a])
        reconciler.reconcile([a, b])
        assert _published(advertiser).count(HTTP_TYPE_ANNOUNCEMENT) == 1
        assert reconciler.type_refcounts() == {"_http._tcp.local.": 2}

        reconciler.reconcile([b])
        assert HTTP_TYPE_ANNOUNCEMENT not in _unpublished(advertiser)
        assert HTTP_TYPE_ANNOUNCEMENT in advertiser.published_records
        assert reconciler.type_refcounts() == {"_http._tcp.local.": 1}

        reconciler.reconcile([])
        assert _unpublished(advertiser).count(HTTP_TYPE_ANNOUNCEMENT) == 1
        assert reconciler.type_refcounts() == {}

    def test_distinct_types_are_tracked_separately(self, advertiser, reconciler):
        web = make_service("web", scheme="http")
        ntp = make_service("ntp", 123, "udp")
        reconciler.reconcile([web, ntp])

        reconciler.reconcile([web])

        assert (
            "_services._dns-sd._udp.local. 60 IN PTR _udp.local."
            in _unpublished(advertiser)
        )
        assert HTTP_TYPE_ANNOUNCEMENT not in _unpublished(advertiser)

    def test_type_reannounced_after_full_withdrawal(self, advertiser, reconciler):
        web = make_service("web", scheme="http")
        reconciler.reconcile([web])
        reconciler.reconcile([])

        reconciler.reconcile([web])

        assert _published(advertiser).count(HTTP_TYPE_ANNOUNCEMENT) == 2


class TestFailures:

    def test_failed_addition_is_retried_on_next_pass(self):
        web = make_service("web", 8080, "tcp", "http")
        advertiser = FailingRecordAdvertiser(fail_on=3)
        reconciler = Reconciler(advertiser, ADDRESS)

        with pytest.raises(ReconcileError) as exc_info:
            reconciler.reconcile([web])

        assert isinstance(exc_info.value.__cause__, AdvertiserError)
        # The first two records stay on the wire; nothing is rolled back.
        assert advertiser.published_records == WEB_RECORDS[:2]
        assert reconciler.published_identities() == []

        advertiser.fail_on = None
        reconciler.reconcile([web])

        assert sorted(advertiser.published_records) == sorted(
            [*WEB_RECORDS, HTTP_TYPE_ANNOUNCEMENT, WEB_SRV]
        )
        assert reconciler.published_identities() == ["http+tcp://web.local:8080"]

    def test_failed_type_announcement_is_retried(self):
        web = make_service("web", 8080, "tcp", "http")
        advertiser = FailingRecordAdvertiser(fail_on=5)
        reconciler = Reconciler(advertiser, ADDRESS)

        with pytest.raises(ReconcileError):
            reconciler.reconcile([web])

        assert reconciler.published_identities() == ["http+tcp://web.local:8080"]
        assert HTTP_TYPE_ANNOUNCEMENT not in advertiser.published_records

        advertiser.fail_on = None
        advertiser.clear_calls()
        reconciler.reconcile([web])

        assert _published(advertiser) == [HTTP_TYPE_ANNOUNCEMENT, WEB_SRV]

    def test_failed_removal_is_retried(self):
        web = make_service("web", 8080, "tcp", "http")
        advertiser = FailingRecordAdvertiser()
        reconciler = Reconciler(advertiser, ADDRESS)
        reconciler.reconcile([web])

        # Six publish calls so far; fail on the second withdrawal.
        advertiser.fail_on = 8
        with pytest.raises(ReconcileError):
            reconciler.reconcile([])

        assert reconciler.published_identities() == ["http+tcp://web.local:8080"]

        advertiser.fail_on = None
        reconciler.reconcile([])

        assert advertiser.published_records == []
        assert reconciler.published_identities() == []
        assert reconciler.type_refcounts() == {}

    def test_failed_type_withdrawal_is_swept_later(self):
        web = make_service("web", 8080, "tcp", "http")
        advertiser = FailingRecordAdvertiser()
        reconciler = Reconciler(advertiser, ADDRESS)
        reconciler.reconcile([web])

        # Withdrawals 7..11 are the five service records, 12 the type.
        advertiser.fail_on = 12
        with pytest.raises(ReconcileError):
            reconciler.reconcile([])

        assert reconciler.published_identities() == []
        assert advertiser.published_records == [HTTP_TYPE_ANNOUNCEMENT]

        advertiser.fail_on = None
        advertiser.clear_calls()
        reconciler.reconcile([])

        assert advertiser.calls == [
            AdvertiserCall("unpublish", HTTP_TYPE_ANNOUNCEMENT)
        ]


class TestConcurrency:

    def test_concurrent_reconciles_serialize(self):
        in_call = threading.Lock()
        overlaps = []

        class OverlapDetectingAdvertiser(RecordingRecordAdvertiser):
            def publish(self, record_text):
                self.__guarded(super().publish, record_text)

            def unpublish(self, record_text):
                self.__guarded(super().unpublish, record_text)

            def __guarded(self, call, record_text):
                if not in_call.acquire(blocking=False):
                    overlaps.append(record_text)
                    return
                try:
                    time.sleep(0.0005)
                    call(record_text)
                finally:
                    in_call.release()

        advertiser = OverlapDetectingAdvertiser()
        reconciler = Reconciler(advertiser, ADDRESS)
        desired_sets = [
            [make_service(f"svc{i}-{j}", 1000 + j) for j in range(5)]
            for i in range(4)
        ]

        threads = [
            threading.Thread(target=reconciler.reconcile, args=(desired,))
            for desired in desired_sets * 3
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert overlaps == []
        assert len(reconciler.published_identities()) == 5


def test_withdraw_all(advertiser, reconciler):
    reconciler.reconcile([make_service("a"), make_service("b", scheme="http")])

    reconciler.withdraw_all()

    assert reconciler.published_identities() == []
    assert reconciler.type_refcounts() == {}


def test_address_property(reconciler):
    assert reconciler.address == ADDRESS
