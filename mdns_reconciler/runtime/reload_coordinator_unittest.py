import threading

import pytest

from mdns_reconciler.advertiser.recording_record_advertiser import (
    RecordingRecordAdvertiser,
)
from mdns_reconciler.errors import LoadError
from mdns_reconciler.reconcile.reconciler import Reconciler
from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    EXIT_OK,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.runtime.reload_coordinator import (
    CoordinatorState,
    ReloadCoordinator,
)
from mdns_reconciler.test.reconciler_fixtures import (
    FailingRecordAdvertiser,
    make_service,
)


class FakeDesiredState:
    """Returns queued results, one per load; exceptions are raised."""

    def __init__(self, *results):
        self.results = list(results)
        self.loads = 0

    def __call__(self):
        self.loads += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def advertiser():
    return RecordingRecordAdvertiser()


@pytest.fixture
def reconciler(advertiser):
    return Reconciler(advertiser, "10.0.0.5")


class TestReloadCoordinator:

    def test_reload_reconciles_loaded_state(self, reconciler):
        desired = FakeDesiredState([make_service("web", scheme="http")])
        coordinator = ReloadCoordinator(desired, reconciler)

        coordinator.reload()

        assert reconciler.published_identities() == ["http+tcp://web.local:80"]

    def test_reload_propagates_load_errors(self, advertiser, reconciler):
        coordinator = ReloadCoordinator(
            FakeDesiredState(LoadError("bad json")), reconciler
        )

        with pytest.raises(LoadError):
            coordinator.reload()
        assert advertiser.calls == []

    def test_shutdown_event_sets_exit_code(self, reconciler):
        coordinator = ReloadCoordinator(FakeDesiredState([]), reconciler)
        coordinator.post(ShutdownRequested(EXIT_OK, "test"))

        assert coordinator.run() == EXIT_OK
        assert coordinator.state is CoordinatorState.SHUTTING_DOWN

    def test_events_are_handled_in_order(self, reconciler):
        desired = FakeDesiredState(
            [make_service("a")], [make_service("a"), make_service("b")]
        )
        coordinator = ReloadCoordinator(desired, reconciler)
        coordinator.post(ReloadRequested("first"))
        coordinator.post(ReloadRequested("second"))
        coordinator.post(ShutdownRequested(EXIT_OK, "done"))

        assert coordinator.run() == EXIT_OK
        assert desired.loads == 2
        assert reconciler.published_identities() == [
            "+tcp://a.local:80",
            "+tcp://b.local:80",
        ]

    def test_failed_load_is_fatal(self, advertiser, reconciler):
        desired = FakeDesiredState(LoadError("missing name"))
        coordinator = ReloadCoordinator(desired, reconciler)
        coordinator.post(ReloadRequested("changed"))
        coordinator.post(ReloadRequested("changed again"))

        assert coordinator.run() == EXIT_FAILURE
        assert desired.loads == 1
        assert advertiser.calls == []

    def test_failed_reconcile_is_fatal(self):
        reconciler = Reconciler(FailingRecordAdvertiser(fail_on=1), "10.0.0.5")
        coordinator = ReloadCoordinator(
            FakeDesiredState([make_service("web")]), reconciler
        )
        coordinator.post(ReloadRequested("changed"))

        assert coordinator.run() == EXIT_FAILURE

    def test_events_after_shutdown_are_dropped(self, reconciler):
        desired = FakeDesiredState([make_service("web")])
        coordinator = ReloadCoordinator(desired, reconciler)
        coordinator.post(ShutdownRequested(EXIT_OK, "stop"))
        coordinator.post(ReloadRequested("late"))

        assert coordinator.run() == EXIT_OK
        assert desired.loads == 0

    def test_background_error_requests_failing_shutdown(self, reconciler):
        coordinator = ReloadCoordinator(FakeDesiredState([]), reconciler)

        coordinator.on_background_error(RuntimeError("socket gone"))

        assert coordinator.run() == EXIT_FAILURE

    def test_post_from_other_thread_wakes_run(self, reconciler):
        coordinator = ReloadCoordinator(FakeDesiredState([]), reconciler)
        timer = threading.Timer(
            0.05, coordinator.post, args=(ShutdownRequested(EXIT_OK, "timer"),)
        )
        timer.start()
        try:
            assert coordinator.run() == EXIT_OK
        finally:
            timer.cancel()

    def test_unknown_event_raises(self, reconciler):
        coordinator = ReloadCoordinator(FakeDesiredState([]), reconciler)
        coordinator.post("not an event")

        with pytest.raises(TypeError):
            coordinator.run()
