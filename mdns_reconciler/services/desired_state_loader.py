"""Loads and stores the desired-state document.

The document has the shape::

    {"services": [{"name": "web", "port": 8080, "protocol": "tcp",
                   "scheme": "http"}, ...]}

Loading is all-or-nothing: a single invalid entry aborts the load and no
partial list is ever returned.
"""

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional

import pydantic

from mdns_reconciler.errors import LoadError
from mdns_reconciler.services.service_descriptor import (
    ServiceDescriptor,
    validate,
)

_logger = logging.getLogger(__name__)

SERVICES_KEY = "services"


class DesiredStateDocument(pydantic.BaseModel):
    """Top-level shape of the desired-state document.

    Entries are kept raw so each one goes through `validate()` in order.
    """

    model_config = pydantic.ConfigDict(strict=True)

    services: Optional[list[Any]] = None


def load(source: bytes | str) -> list[ServiceDescriptor]:
    """Parses and validates a desired-state document.

    Args:
        source: Raw JSON document.

    Returns:
        The validated descriptors, in document order.

    Raises:
        LoadError: If the document is not valid JSON or has the wrong shape.
        ValidationError: If any entry fails validation.
    """
    try:
        raw: Any = json.loads(source)
    except (ValueError, UnicodeDecodeError) as e:
        raise LoadError(f"Desired state is not valid JSON: {e}") from e

    try:
        document = DesiredStateDocument.model_validate(raw)
    except pydantic.ValidationError as e:
        raise LoadError(f"Desired state has the wrong shape: {e}") from e

    return [validate(entry) for entry in document.services or []]


def load_file(path: str | os.PathLike[str]) -> list[ServiceDescriptor]:
    """Reads the document at |path| and loads it.

    Raises:
        LoadError: If the file cannot be read, plus everything `load` raises.
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise LoadError(f"Could not read desired state {path}: {e}") from e

    descriptors = load(data)
    _logger.debug("Loaded %d service(s) from %s", len(descriptors), path)
    return descriptors


def dump(descriptors: Iterable[ServiceDescriptor]) -> str:
    """Renders |descriptors| as a desired-state document."""
    document = {SERVICES_KEY: [d.to_dict() for d in descriptors]}
    return json.dumps(document, indent=2) + "\n"


def save_file(
    path: str | os.PathLike[str], descriptors: Iterable[ServiceDescriptor]
) -> None:
    """Writes |descriptors| to |path|, replacing the file atomically.

    A running reconciler watching |path| sees a single write.
    """
    target = Path(path)
    content = dump(descriptors)
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise

