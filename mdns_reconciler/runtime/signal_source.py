"""Maps OS signals onto reload and shutdown events."""

import logging
import signal
from collections.abc import Callable
from types import FrameType
from typing import Any

from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    EXIT_OK,
    ReloadEvent,
    ReloadRequested,
    ShutdownRequested,
)

_logger = logging.getLogger(__name__)


def _signal_numbers(*names: str) -> tuple[int, ...]:
    # SIGHUP, SIGQUIT and SIGUSR2 do not exist on Windows.
    return tuple(
        getattr(signal, name) for name in names if hasattr(signal, name)
    )


RELOAD_SIGNALS = _signal_numbers("SIGHUP", "SIGUSR2")
SHUTDOWN_SIGNALS = _signal_numbers("SIGINT", "SIGQUIT", "SIGTERM")


def event_for_signal(signum: int) -> ReloadEvent:
    """Returns the event a received |signum| stands for."""
    name = _signal_name(signum)
    if signum in RELOAD_SIGNALS:
        return ReloadRequested(f"received {name}")
    if signum in SHUTDOWN_SIGNALS:
        return ShutdownRequested(EXIT_OK, f"received {name}")
    return ShutdownRequested(EXIT_FAILURE, f"received unhandled signal {name}")


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class SignalSource:
    """Installs handlers that post an event for each received signal.

    Handlers only post to the coordinator; all work happens on the thread
    running `ReloadCoordinator.run()`. `install()` must be called from the
    main thread.
    """

    def __init__(
        self,
        post: Callable[[ReloadEvent], None],
        signals: tuple[int, ...] = RELOAD_SIGNALS + SHUTDOWN_SIGNALS,
    ) -> None:
        self.__post = post
        self.__signals = signals
        self.__previous_handlers: dict[int, Any] = {}

    def install(self) -> None:
        for signum in self.__signals:
            self.__previous_handlers[signum] = signal.signal(
                signum, self._handle
            )
        _logger.debug(
            "Installed handlers for %s",
            ", ".join(_signal_name(s) for s in self.__signals),
        )

    def restore(self) -> None:
        """Puts back the handlers that were active before `install()`."""
        for signum, handler in self.__previous_handlers.items():
            # None means the handler was not installed from Python.
            signal.signal(signum, signal.SIG_DFL if handler is None else handler)
        self.__previous_handlers.clear()

    def _handle(self, signum: int, _frame: FrameType | None) -> None:
        self.__post(event_for_signal(signum))
