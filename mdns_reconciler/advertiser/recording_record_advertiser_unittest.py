from mdns_reconciler.advertiser.recording_record_advertiser import (
    AdvertiserCall,
    RecordingRecordAdvertiser,
)


def test_records_calls_and_live_set():
    advertiser = RecordingRecordAdvertiser()

    advertiser.publish("a")
    advertiser.publish("b")
    advertiser.publish("a")
    advertiser.unpublish("a")
    advertiser.unpublish("missing")

    assert advertiser.calls == [
        AdvertiserCall("publish", "a"),
        AdvertiserCall("publish", "b"),
        AdvertiserCall("publish", "a"),
        AdvertiserCall("unpublish", "a"),
        AdvertiserCall("unpublish", "missing"),
    ]
    assert advertiser.published_records == ["b"]


def test_clear_calls_keeps_live_set():
    advertiser = RecordingRecordAdvertiser()
    advertiser.publish("a")

    advertiser.clear_calls()

    assert advertiser.calls == []
    assert advertiser.published_records == ["a"]
