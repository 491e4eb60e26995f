"""Reload triggers and the coordinator that serializes them."""

from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    EXIT_OK,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.runtime.file_watcher import FileWatcher
from mdns_reconciler.runtime.reload_coordinator import ReloadCoordinator
from mdns_reconciler.runtime.signal_source import SignalSource

__all__ = [
    "EXIT_FAILURE",
    "EXIT_OK",
    "FileWatcher",
    "ReloadCoordinator",
    "ReloadRequested",
    "ShutdownRequested",
    "SignalSource",
]
