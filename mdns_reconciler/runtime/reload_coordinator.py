"""Serializes reload triggers into calls to the Reconciler."""

import enum
import logging
import queue
from collections.abc import Callable, Sequence

from mdns_reconciler.errors import DesiredStateError, ReconcileError
from mdns_reconciler.reconcile.reconciler import Reconciler
from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    ReloadEvent,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.services.service_descriptor import ServiceDescriptor

_logger = logging.getLogger(__name__)

# Bounds how long a pending signal handler waits for the main thread.
_POLL_INTERVAL_SECONDS = 0.5


class CoordinatorState(enum.Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class ReloadCoordinator:
    """Consumes reload and shutdown events from a single ordered queue.

    Trigger sources (file watcher, signal handlers, background threads) only
    `post()` events; `run()` handles them one at a time, so reloads never
    interleave. A failed reload is fatal: it is logged and the coordinator
    shuts down with `EXIT_FAILURE` rather than keep serving stale records.
    """

    def __init__(
        self,
        load_desired: Callable[[], Sequence[ServiceDescriptor]],
        reconciler: Reconciler,
    ) -> None:
        """Initializes the ReloadCoordinator.

        Args:
            load_desired: Loads the current desired state. Runs outside the
                reconcile lock and may raise `DesiredStateError`.
            reconciler: Applies each loaded desired state.
        """
        self.__load_desired = load_desired
        self.__reconciler = reconciler
        # SimpleQueue.put is reentrant, so signal handlers may post.
        self.__events: "queue.SimpleQueue[ReloadEvent]" = queue.SimpleQueue()
        self.__state = CoordinatorState.RUNNING

    @property
    def state(self) -> CoordinatorState:
        return self.__state

    def post(self, event: ReloadEvent) -> None:
        """Queues |event|. Safe from any thread and from signal handlers."""
        self.__events.put(event)

    def on_background_error(self, e: Exception) -> None:
        """Error callback for tracked threads: turns |e| into a shutdown."""
        self.post(ShutdownRequested(EXIT_FAILURE, f"background failure: {e!r}"))

    def reload(self) -> None:
        """Loads the desired state and reconciles it.

        Raises:
            DesiredStateError: If loading failed; nothing was reconciled.
            ReconcileError: If reconciling failed part way.
        """
        desired = self.__load_desired()
        self.__reconciler.reconcile(desired)

    def run(self) -> int:
        """Handles events until a shutdown, then returns the exit code.

        Events still queued behind the shutdown are discarded.
        """
        exit_code = EXIT_FAILURE
        while self.__state is CoordinatorState.RUNNING:
            try:
                event = self.__events.get(timeout=_POLL_INTERVAL_SECONDS)
            except queue.Empty:
                continue

            if isinstance(event, ReloadRequested):
                _logger.info("reload requested: %s", event.reason)
                try:
                    self.reload()
                except (DesiredStateError, ReconcileError) as e:
                    _logger.error("reload failed: %s", e)
                    exit_code = EXIT_FAILURE
                    self.__state = CoordinatorState.SHUTTING_DOWN
            elif isinstance(event, ShutdownRequested):
                _logger.info("shutdown requested: %s", event.reason)
                exit_code = event.exit_code
                self.__state = CoordinatorState.SHUTTING_DOWN
            else:
                raise TypeError(f"Unexpected event {event!r}")

        self.__drain()
        _logger.info("exiting with code %d", exit_code)
        return exit_code

    def __drain(self) -> None:
        while True:
            try:
                event = self.__events.get_nowait()
            except queue.Empty:
                return
            _logger.debug("dropping %r received during shutdown", event)
