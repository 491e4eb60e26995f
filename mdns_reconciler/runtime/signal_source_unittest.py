import signal

import pytest

from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    EXIT_OK,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.runtime.signal_source import (
    RELOAD_SIGNALS,
    SHUTDOWN_SIGNALS,
    SignalSource,
    event_for_signal,
)

posix_only = pytest.mark.skipif(
    not hasattr(signal, "SIGHUP"), reason="POSIX signals required"
)


@posix_only
@pytest.mark.parametrize("name", ["SIGHUP", "SIGUSR2"])
def test_reload_signals(name):
    event = event_for_signal(getattr(signal, name))

    assert isinstance(event, ReloadRequested)
    assert name in event.reason


@posix_only
@pytest.mark.parametrize("name", ["SIGINT", "SIGQUIT", "SIGTERM"])
def test_shutdown_signals_exit_cleanly(name):
    event = event_for_signal(getattr(signal, name))

    assert event == ShutdownRequested(EXIT_OK, f"received {name}")


@posix_only
def test_other_signals_exit_with_failure():
    event = event_for_signal(signal.SIGUSR1)

    assert isinstance(event, ShutdownRequested)
    assert event.exit_code == EXIT_FAILURE
    assert "SIGUSR1" in event.reason


def test_signal_sets_are_disjoint():
    assert not set(RELOAD_SIGNALS) & set(SHUTDOWN_SIGNALS)
    assert signal.SIGINT in SHUTDOWN_SIGNALS


class TestSignalSource:

    @posix_only
    def test_install_and_restore(self):
        before = signal.getsignal(signal.SIGUSR2)
        events = []
        source = SignalSource(events.append, signals=(signal.SIGUSR2,))

        source.install()
        try:
            assert signal.getsignal(signal.SIGUSR2) == source._handle
        finally:
            source.restore()

        assert signal.getsignal(signal.SIGUSR2) == before

    @posix_only
    def test_delivered_signal_is_posted(self):
        events = []
        source = SignalSource(events.append, signals=(signal.SIGUSR2,))

        source.install()
        try:
            signal.raise_signal(signal.SIGUSR2)
        finally:
            source.restore()

        assert len(events) == 1
        assert isinstance(events[0], ReloadRequested)

    def test_handler_posts_event(self):
        events = []
        source = SignalSource(events.append, signals=())

        source._handle(signal.SIGINT, None)

        assert events == [event_for_signal(signal.SIGINT)]
