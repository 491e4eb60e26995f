"""Threading utils for mdns_reconciler."""

from mdns_reconciler.threading.throwing_thread import ThrowingThread

__all__ = ["ThrowingThread"]
