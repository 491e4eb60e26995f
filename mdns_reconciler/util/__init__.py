"""Utility functions for mdns_reconciler."""

from mdns_reconciler.util.ip import discover_address, get_all_address_strings

__all__ = ["discover_address", "get_all_address_strings"]
