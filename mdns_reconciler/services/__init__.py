"""Service descriptors and the desired-state document they come from."""

from mdns_reconciler.services.desired_state_loader import (
    dump,
    load,
    load_file,
    save_file,
)
from mdns_reconciler.services.service_descriptor import (
    ServiceDescriptor,
    validate,
)

__all__ = [
    "ServiceDescriptor",
    "dump",
    "load",
    "load_file",
    "save_file",
    "validate",
]
