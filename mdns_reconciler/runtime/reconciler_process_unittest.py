import threading
import time

import pytest

from mdns_reconciler.advertiser.recording_record_advertiser import (
    RecordingRecordAdvertiser,
)
from mdns_reconciler.advertiser.zeroconf_record_advertiser import (
    ZeroconfRecordAdvertiser,
)
from mdns_reconciler.config.reconciler_config import ReconcilerConfig
from mdns_reconciler.errors import NoAddressError
from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    EXIT_OK,
    ShutdownRequested,
)
from mdns_reconciler.runtime.reconciler_process import (
    create_advertiser,
    run_reconciler,
)
from mdns_reconciler.services.desired_state_loader import load_file, save_file
from mdns_reconciler.test.reconciler_fixtures import make_service

WEB_A = "web.local. 60 IN A 10.0.0.5"
WEB_SRV = "web._http._tcp.local. 60 IN SRV 0 0 8080 web.local."


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    save_file(path, [make_service("web", 8080, scheme="http")])
    return path


def _config(path, **kwargs):
    kwargs.setdefault("ip_address", "10.0.0.5")
    kwargs.setdefault("poll_interval_seconds", 0.01)
    return ReconcilerConfig(path, **kwargs)


def _shutdown(exit_code=EXIT_OK):
    def on_ready(coordinator):
        coordinator.post(ShutdownRequested(exit_code, "test"))

    return on_ready


def _when(condition, then, timeout=2.0):
    """Runs |then| once |condition| holds, or after |timeout| regardless."""

    def wait():
        deadline = time.monotonic() + timeout
        while not condition() and time.monotonic() < deadline:
            time.sleep(0.01)
        then()

    thread = threading.Thread(target=wait, daemon=True)
    thread.start()
    return thread


class TestRunReconciler:

    def test_publishes_then_withdraws_on_clean_exit(self, config_file):
        advertiser = RecordingRecordAdvertiser()
        published_at_ready = []

        def on_ready(coordinator):
            published_at_ready.extend(advertiser.published_records)
            coordinator.post(ShutdownRequested(EXIT_OK, "test"))

        exit_code = run_reconciler(
            _config(config_file),
            advertiser,
            install_signals=False,
            on_ready=on_ready,
        )

        assert exit_code == EXIT_OK
        assert WEB_A in published_at_ready
        assert WEB_SRV in published_at_ready
        assert advertiser.published_records == []

    def test_keep_records_on_exit(self, config_file):
        advertiser = RecordingRecordAdvertiser()

        exit_code = run_reconciler(
            _config(config_file, withdraw_on_exit=False),
            advertiser,
            install_signals=False,
            on_ready=_shutdown(),
        )

        assert exit_code == EXIT_OK
        assert WEB_SRV in advertiser.published_records

    def test_failing_shutdown_keeps_records(self, config_file):
        advertiser = RecordingRecordAdvertiser()

        exit_code = run_reconciler(
            _config(config_file),
            advertiser,
            install_signals=False,
            on_ready=_shutdown(EXIT_FAILURE),
        )

        assert exit_code == EXIT_FAILURE
        assert WEB_SRV in advertiser.published_records

    def test_file_change_triggers_reload(self, config_file):
        advertiser = RecordingRecordAdvertiser()
        ntp_a = "ntp.local. 60 IN A 10.0.0.5"

        def on_ready(coordinator):
            save_file(
                config_file,
                [
                    make_service("web", 8080, scheme="http"),
                    make_service("ntp", 123, "udp"),
                ],
            )
            _when(
                lambda: ntp_a in advertiser.published_records,
                lambda: coordinator.post(ShutdownRequested(EXIT_OK, "test")),
            )

        exit_code = run_reconciler(
            _config(config_file, withdraw_on_exit=False),
            advertiser,
            install_signals=False,
            on_ready=on_ready,
        )

        assert exit_code == EXIT_OK
        assert ntp_a in advertiser.published_records
        assert WEB_SRV in advertiser.published_records

    def test_edit_during_initial_load_triggers_reload(self, config_file, mocker):
        advertiser = RecordingRecordAdvertiser()
        ntp_a = "ntp.local. 60 IN A 10.0.0.5"
        loads = []

        def load_then_edit(path):
            descriptors = load_file(path)
            if not loads:
                save_file(
                    path,
                    [
                        make_service("web", 8080, scheme="http"),
                        make_service("ntp", 123, "udp"),
                    ],
                )
            loads.append(path)
            return descriptors

        mocker.patch(
            "mdns_reconciler.runtime.reconciler_process.load_file",
            side_effect=load_then_edit,
        )

        def on_ready(coordinator):
            _when(
                lambda: ntp_a in advertiser.published_records,
                lambda: coordinator.post(ShutdownRequested(EXIT_OK, "test")),
            )

        exit_code = run_reconciler(
            _config(config_file, withdraw_on_exit=False),
            advertiser,
            install_signals=False,
            on_ready=on_ready,
        )

        assert exit_code == EXIT_OK
        assert len(loads) == 2
        assert ntp_a in advertiser.published_records

    def test_invalid_reload_exits_with_failure(self, config_file):
        advertiser = RecordingRecordAdvertiser()

        def on_ready(coordinator):
            config_file.write_text('{"services": [{"port": 80}]}')

        exit_code = run_reconciler(
            _config(config_file),
            advertiser,
            install_signals=False,
            on_ready=on_ready,
        )

        assert exit_code == EXIT_FAILURE
        assert WEB_SRV in advertiser.published_records

    def test_removed_file_exits_with_failure(self, config_file):
        def on_ready(coordinator):
            config_file.unlink()

        exit_code = run_reconciler(
            _config(config_file),
            RecordingRecordAdvertiser(),
            install_signals=False,
            on_ready=on_ready,
        )

        assert exit_code == EXIT_FAILURE

    def test_invalid_initial_state_fails_fast(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        advertiser = RecordingRecordAdvertiser()

        exit_code = run_reconciler(
            _config(path), advertiser, install_signals=False
        )

        assert exit_code == EXIT_FAILURE
        assert advertiser.calls == []

    def test_missing_initial_state_fails_fast(self, tmp_path):
        exit_code = run_reconciler(
            _config(tmp_path / "absent.json"),
            RecordingRecordAdvertiser(),
            install_signals=False,
        )

        assert exit_code == EXIT_FAILURE

    def test_no_address_fails_fast(self, config_file, mocker):
        mocker.patch(
            "mdns_reconciler.runtime.reconciler_process.discover_address",
            side_effect=NoAddressError("Could not retrieve ip address"),
        )
        advertiser = mocker.MagicMock(spec=RecordingRecordAdvertiser)

        exit_code = run_reconciler(
            _config(config_file, ip_address=None),
            advertiser,
            install_signals=False,
        )

        assert exit_code == EXIT_FAILURE
        advertiser.publish.assert_not_called()

    def test_advertiser_is_started_and_closed(self, config_file, mocker):
        advertiser = RecordingRecordAdvertiser()
        start = mocker.spy(advertiser, "start")
        close = mocker.spy(advertiser, "close")

        run_reconciler(
            _config(config_file),
            advertiser,
            install_signals=False,
            on_ready=_shutdown(),
        )

        start.assert_called_once()
        close.assert_called_once()


class TestCreateAdvertiser:

    def test_dry_run_records(self, config_file):
        advertiser = create_advertiser(_config(config_file, dry_run=True))
        assert isinstance(advertiser, RecordingRecordAdvertiser)

    def test_default_uses_zeroconf(self, config_file, mocker):
        mocker.patch(
            "mdns_reconciler.advertiser.zeroconf_record_advertiser.Zeroconf"
        )

        advertiser = create_advertiser(_config(config_file))
        try:
            assert isinstance(advertiser, ZeroconfRecordAdvertiser)
        finally:
            advertiser.close()
