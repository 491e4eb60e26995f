"""Events posted by trigger sources to the ReloadCoordinator."""

import dataclasses

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclasses.dataclass(frozen=True)
class ReloadRequested:
    """Reload the desired state and reconcile it."""

    reason: str


@dataclasses.dataclass(frozen=True)
class ShutdownRequested:
    """Stop processing events and exit with |exit_code|."""

    exit_code: int
    reason: str


ReloadEvent = ReloadRequested | ShutdownRequested
