from mdns_reconciler.reconcile.reconciler import Reconciler

__all__ = ["Reconciler"]
