"""Defines ThrowingThread, a thread that reports exceptions from its target."""

import logging
import threading
from collections.abc import Callable
from typing import Any, Optional

_logger = logging.getLogger(__name__)


# Thread whose target exceptions are logged and passed to a callback.
class ThrowingThread(threading.Thread):
    """
    Daemon thread that hands exceptions raised by its target to a callback.

    The callback runs on this thread, after the exception has been logged.
    """

    def __init__(
        self,
        target: Callable[..., Any],
        on_error_cb: Callable[[Exception], None],
        args: tuple[Any, ...] = (),
        kwargs: Optional[dict[str, Any]] = None,
        name: Optional[str] = None,
        daemon: bool = True,
    ) -> None:
        """
        Initializes a ThrowingThread.

        Args:
            target: Callable run by the thread.
            on_error_cb: Receives any exception raised by |target|.
            args: Positional arguments for |target|.
            kwargs: Keyword arguments for |target|.
            name: Thread name, used in log lines.
            daemon: Whether the thread is a daemon thread.
        """
        assert on_error_cb is not None, "on_error_cb cannot be None"
        self.__on_error_cb = on_error_cb
        self.__target = target
        self.__args = args
        self.__kwargs = kwargs if kwargs is not None else {}

        super().__init__(name=name, daemon=daemon)

    def run(self) -> None:
        try:
            self.__target(*self.__args, **self.__kwargs)
        # pylint: disable=broad-exception-caught # Reported, not swallowed.
        except Exception as e:
            _logger.error(
                "Exception in thread %s: %r", self.name, e, exc_info=True
            )
            self.__on_error_cb(e)
