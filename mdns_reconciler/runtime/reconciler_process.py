"""Wires the reconciler, its trigger sources and an advertiser together."""

import functools
import logging
from collections.abc import Callable
from typing import Optional

from mdns_reconciler.advertiser.record_advertiser import RecordAdvertiser
from mdns_reconciler.advertiser.recording_record_advertiser import (
    RecordingRecordAdvertiser,
)
from mdns_reconciler.advertiser.zeroconf_record_advertiser import (
    ZeroconfRecordAdvertiser,
)
from mdns_reconciler.config.reconciler_config import ReconcilerConfig
from mdns_reconciler.errors import (
    DesiredStateError,
    NoAddressError,
    ReconcileError,
)
from mdns_reconciler.reconcile.reconciler import Reconciler
from mdns_reconciler.runtime.events import EXIT_FAILURE, EXIT_OK
from mdns_reconciler.runtime.file_watcher import FileWatcher
from mdns_reconciler.runtime.reload_coordinator import ReloadCoordinator
from mdns_reconciler.runtime.signal_source import SignalSource
from mdns_reconciler.services.desired_state_loader import load_file
from mdns_reconciler.util.ip import discover_address

_logger = logging.getLogger(__name__)


def create_advertiser(config: ReconcilerConfig) -> RecordAdvertiser:
    """Returns the advertiser selected by |config|."""
    if config.dry_run:
        return RecordingRecordAdvertiser()
    return ZeroconfRecordAdvertiser()


def run_reconciler(
    config: ReconcilerConfig,
    advertiser: Optional[RecordAdvertiser] = None,
    *,
    install_signals: bool = True,
    on_ready: Optional[Callable[[ReloadCoordinator], None]] = None,
) -> int:
    """Runs the reconciler until shutdown and returns the exit code.

    Startup failures (no address, unreadable or invalid desired state,
    advertiser failure on the first pass) return `EXIT_FAILURE` at once.
    After startup, the file watcher and the signal handlers drive reloads
    until a shutdown event arrives.

    Args:
        config: Process settings.
        advertiser: Overrides the advertiser chosen from |config|. Closed
            on return either way.
        install_signals: Whether to install the OS signal handlers. Only
            possible from the main thread.
        on_ready: Called with the coordinator once all trigger sources run.

    Returns:
        The exit code of the terminating condition.
    """
    try:
        address = discover_address(config.ip_address)
    except NoAddressError as e:
        _logger.error("err: %s", e)
        return EXIT_FAILURE

    if advertiser is None:
        try:
            advertiser = create_advertiser(config)
        except OSError as e:
            _logger.error("err: could not start mDNS responder: %s", e)
            return EXIT_FAILURE

    reconciler = Reconciler(advertiser, address)
    coordinator = ReloadCoordinator(
        functools.partial(load_file, config.config_path), reconciler
    )
    watcher = FileWatcher(
        config.config_path, coordinator.post, config.poll_interval_seconds
    )
    signals = SignalSource(coordinator.post)

    _logger.info("registering services to %s", address)
    try:
        # Baseline before the first load so an edit made during it reloads.
        try:
            watcher.prime()
        except OSError as e:
            _logger.error("err: cannot watch %s: %s", config.config_path, e)
            return EXIT_FAILURE

        try:
            coordinator.reload()
        except (DesiredStateError, ReconcileError) as e:
            _logger.error("err: %s", e)
            return EXIT_FAILURE

        watcher.start(coordinator.on_background_error)

        advertiser.start(coordinator.on_background_error)
        if install_signals:
            signals.install()
        if on_ready is not None:
            on_ready(coordinator)

        exit_code = coordinator.run()

        if exit_code == EXIT_OK and config.withdraw_on_exit:
            _logger.info("withdrawing all records")
            try:
                reconciler.withdraw_all()
            except ReconcileError as e:
                _logger.error("err: %s", e)
                exit_code = EXIT_FAILURE
        return exit_code
    finally:
        if install_signals:
            signals.restore()
        watcher.stop()
        advertiser.close()
