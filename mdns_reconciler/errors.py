"""Exception hierarchy shared by all mdns_reconciler components."""


class MdnsReconcilerError(Exception):
    """Base class for all errors raised by this package."""


class DesiredStateError(MdnsReconcilerError):
    """Raised when a desired-state load attempt has to be aborted.

    Nothing is reconciled after one of these; the published state is left
    untouched.
    """


class ValidationError(DesiredStateError):
    """A single service entry failed validation."""


class MissingNameError(ValidationError):
    """A service entry has no name, or an empty one."""

    def __init__(self) -> None:
        super().__init__('Service "name" field is required')


class InvalidNameError(ValidationError):
    """A service name cannot be used as a host under ".local."."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f'Service name "{name}" is not a valid host name; use labels '
            "of 1 to 63 bytes without whitespace"
        )


class SchemeProtocolMismatchError(ValidationError):
    """A reserved web scheme was combined with a non-TCP protocol."""

    def __init__(self, name: str, scheme: str, protocol: str) -> None:
        self.name = name
        self.scheme = scheme
        self.protocol = protocol
        super().__init__(
            f'Service "{name}" with scheme "{scheme}" must use "tcp" '
            f'protocol, got "{protocol}"'
        )


class LoadError(DesiredStateError):
    """The desired-state source could not be read or has the wrong shape."""


class AdvertiserError(MdnsReconcilerError):
    """A record could not be published or withdrawn."""


class ReconcileError(MdnsReconcilerError):
    """A reconcile pass stopped before converging.

    Operations applied before the failure are not rolled back.
    """


class NoAddressError(MdnsReconcilerError):
    """No IPv4 address could be found to advertise services on."""
