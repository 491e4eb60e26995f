"""Polls the desired-state file and posts events when it changes."""

import logging
import os
import threading
from collections.abc import Callable
from typing import NamedTuple

from mdns_reconciler.runtime.events import (
    EXIT_FAILURE,
    ReloadEvent,
    ReloadRequested,
    ShutdownRequested,
)
from mdns_reconciler.threading.throwing_thread import ThrowingThread

_logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.1


class FileSignature(NamedTuple):
    mtime_ns: int
    size: int
    inode: int


def stat_signature(path: str | os.PathLike[str]) -> FileSignature:
    """Returns the signature of |path|. Raises OSError if it is missing."""
    st = os.stat(path)
    return FileSignature(st.st_mtime_ns, st.st_size, st.st_ino)


class FileWatcher:
    """Watches one file by polling its size, mtime and inode.

    - A changed signature posts `ReloadRequested`. Atomic replacement
      (write to a temp file, rename over the path) counts as a change.
    - A missing path, whether removed or renamed away, posts a failing
      `ShutdownRequested` and ends the watch: the source of truth is gone.

    Several changes between two polls coalesce into one reload.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        post: Callable[[ReloadEvent], None],
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Initializes the FileWatcher.

        Args:
            path: File to watch. Must exist when `start()` is called.
            post: Receives the events.
            poll_interval_seconds: Delay between two polls. Must be positive.

        Raises:
            ValueError: If |poll_interval_seconds| is not positive.
        """
        if poll_interval_seconds <= 0:
            raise ValueError(
                "poll_interval_seconds must be positive, "
                f"got {poll_interval_seconds}."
            )

        self.__path = path
        self.__post = post
        self.__poll_interval_seconds = poll_interval_seconds
        self.__stop_event = threading.Event()
        self.__thread: ThrowingThread | None = None
        self.__signature: FileSignature | None = None

    def start(self, on_error_cb: Callable[[Exception], None]) -> None:
        """Starts polling against the baseline from `prime()`.

        The baseline is taken here if `prime()` was never called.

        Args:
            on_error_cb: Receives unexpected errors from the polling thread.

        Raises:
            OSError: If the file cannot be stat'ed.
        """
        if self.__thread is not None:
            return

        if self.__signature is None:
            self.prime()
        self.__stop_event.clear()
        self.__thread = ThrowingThread(
            target=self.__watch_loop,
            on_error_cb=on_error_cb,
            name="desired-state-watcher",
        )
        self.__thread.start()
        _logger.info("Watching %s for changes.", self.__path)

    def prime(self) -> None:
        """Records the current signature as the baseline for `poll()`.

        Raises:
            OSError: If the file cannot be stat'ed.
        """
        self.__signature = stat_signature(self.__path)

    def stop(self) -> None:
        self.__stop_event.set()
        thread = self.__thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.__poll_interval_seconds * 2))
        self.__thread = None

    def poll(self) -> bool:
        """Checks the file once and posts at most one event.

        Returns:
            False once the file has disappeared and watching should end.
        """
        try:
            signature = stat_signature(self.__path)
        except FileNotFoundError:
            _logger.error("config file removed or moved: %s", self.__path)
            self.__post(
                ShutdownRequested(
                    EXIT_FAILURE, f"config file {self.__path} removed or moved"
                )
            )
            return False

        if signature != self.__signature:
            self.__signature = signature
            _logger.info("config file updated: %s", self.__path)
            self.__post(ReloadRequested(f"config file {self.__path} updated"))
        return True

    def __watch_loop(self) -> None:
        while not self.__stop_event.wait(self.__poll_interval_seconds):
            if not self.poll():
                return
