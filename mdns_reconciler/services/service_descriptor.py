"""Defines ServiceDescriptor and the validation of raw service entries."""

import dataclasses
import re
from typing import Any, Optional

import pydantic

from mdns_reconciler.errors import (
    InvalidNameError,
    LoadError,
    MissingNameError,
    SchemeProtocolMismatchError,
)

DEFAULT_PORT = 80
DEFAULT_PROTOCOL = "tcp"
MAX_PORT = 65535
MAX_LABEL_LENGTH = 63

_INVALID_NAME_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")

# Schemes that only make sense over TCP.
RESERVED_WEB_SCHEMES = frozenset({"http", "https"})


@dataclasses.dataclass(frozen=True, eq=False)
class ServiceDescriptor:
    """A normalized, validated service to advertise.

    Instances are only meant to be produced by `validate()`, which applies
    defaults and enforces the scheme/protocol invariant. The DNS-SD service
    type and the identity are derived on access and never stored.

    Two descriptors compare equal when their identities are equal.
    """

    name: str
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    scheme: str = ""

    @property
    def service_type(self) -> str:
        """DNS-SD type, e.g. "_http._tcp.local." or "_udp.local."."""
        if self.scheme:
            return f"_{self.scheme}._{self.protocol}.local."
        return f"_{self.protocol}.local."

    @property
    def identity(self) -> str:
        """Stable key used to detect the same service across reloads."""
        return f"{self.scheme}+{self.protocol}://{self.name}.local:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        """Renders this descriptor in the desired-state document shape."""
        entry: dict[str, Any] = {
            "name": self.name,
            "port": self.port,
            "protocol": self.protocol,
        }
        if self.scheme:
            entry["scheme"] = self.scheme
        return entry

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceDescriptor):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        return self.identity


class ServiceEntry(pydantic.BaseModel):
    """Shape of one raw entry in the desired-state document.

    Types are strict: "80" is not a port and 42 is not a name. Semantic
    checks and defaults are applied afterwards by `validate()`.
    """

    model_config = pydantic.ConfigDict(strict=True)

    name: Optional[str] = None
    port: Optional[int] = pydantic.Field(default=None, ge=0, le=MAX_PORT)
    protocol: Optional[str] = None
    scheme: Optional[str] = None


def _check_name(name: str) -> None:
    labels = name.split(".")
    if _INVALID_NAME_CHARS.search(name) or any(
        not label or len(label.encode("utf-8")) > MAX_LABEL_LENGTH
        for label in labels
    ):
        raise InvalidNameError(name)


def validate(raw: Any) -> ServiceDescriptor:
    """Builds a ServiceDescriptor from one raw entry of the desired state.

    Args:
        raw: Mapping with "name" and optional "port", "protocol", "scheme".

    Returns:
        The normalized descriptor. Port defaults to 80 when absent or zero,
        protocol defaults to "tcp".

    Raises:
        MissingNameError: If the name is absent or empty.
        InvalidNameError: If the name cannot be used as a ".local." host.
        SchemeProtocolMismatchError: If scheme is http/https and the
            protocol is not tcp.
        LoadError: If the entry is not an object or a field has the wrong
            type or range.
    """
    try:
        entry = ServiceEntry.model_validate(raw)
    except pydantic.ValidationError as e:
        raise LoadError(f"Invalid service entry {raw!r}: {e}") from e

    if not entry.name:
        raise MissingNameError()
    _check_name(entry.name)

    port = entry.port or DEFAULT_PORT
    protocol = entry.protocol or DEFAULT_PROTOCOL
    scheme = entry.scheme or ""

    if scheme in RESERVED_WEB_SCHEMES and protocol != "tcp":
        raise SchemeProtocolMismatchError(entry.name, scheme, protocol)

    return ServiceDescriptor(
        name=entry.name, port=port, protocol=protocol, scheme=scheme
    )
