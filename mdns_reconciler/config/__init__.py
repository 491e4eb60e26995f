from mdns_reconciler.config.reconciler_config import ReconcilerConfig

__all__ = ["ReconcilerConfig"]
