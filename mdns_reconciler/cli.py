"""
Typer-based CLI for mdns_reconciler.

Commands:
  init    – create an empty desired-state file
  show    – list the services in the desired-state file
  add     – add a service to the desired-state file
  remove  – remove services from the desired-state file
  run     – advertise the services and follow changes until stopped
"""

import enum
import logging
from pathlib import Path
from typing import Optional

import typer

from mdns_reconciler.config.reconciler_config import (
    DEFAULT_CONFIG_PATH,
    ReconcilerConfig,
)
from mdns_reconciler.errors import DesiredStateError
from mdns_reconciler.runtime.file_watcher import DEFAULT_POLL_INTERVAL_SECONDS
from mdns_reconciler.runtime.reconciler_process import run_reconciler
from mdns_reconciler.services.desired_state_loader import load_file, save_file
from mdns_reconciler.services.service_descriptor import (
    ServiceDescriptor,
    validate,
)

cli = typer.Typer(
    add_completion=False,
    help="Advertise a set of services on the local network over mDNS.",
)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class LogLevel(str, enum.Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _config_path(ctx: typer.Context) -> Path:
    return ctx.obj


def _load_or_exit(path: Path) -> list[ServiceDescriptor]:
    try:
        return load_file(path)
    except DesiredStateError as e:
        typer.echo(f"err: {e}", err=True)
        raise typer.Exit(1)


@cli.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_PATH),
        "--config",
        "-c",
        envvar="MDNS_RECONCILER_CONFIG",
        help="Path to the config.json desired-state file.",
    ),
    log_level: LogLevel = typer.Option(
        LogLevel.INFO,
        "--log-level",
        case_sensitive=False,
        help="Verbosity of the log output.",
    ),
) -> None:
    logging.basicConfig(level=log_level.value, format=_LOG_FORMAT)
    ctx.obj = config


# --------------------------------------------------------------------
# Desired-state file management
# --------------------------------------------------------------------
@cli.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Creates an empty desired-state file."""
    path = _config_path(ctx)
    if path.exists() and not force:
        typer.echo(f"err: {path} already exists; use --force to overwrite", err=True)
        raise typer.Exit(1)
    save_file(path, [])
    typer.echo(f"initialized {path}")


@cli.command()
def show(ctx: typer.Context) -> None:
    """Lists the services in the desired-state file."""
    for descriptor in _load_or_exit(_config_path(ctx)):
        typer.echo(f"{descriptor.identity}\t{descriptor.service_type}")


@cli.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Service name, advertised as NAME.local."),
    port: int = typer.Option(0, help="Service port (default 80)."),
    protocol: str = typer.Option("", help='Transport protocol (default "tcp").'),
    scheme: str = typer.Option("", help='Application scheme, e.g. "http".'),
) -> None:
    """Validates a service and appends it to the desired-state file."""
    path = _config_path(ctx)
    services = _load_or_exit(path)
    try:
        descriptor = validate(
            {"name": name, "port": port, "protocol": protocol, "scheme": scheme}
        )
    except DesiredStateError as e:
        typer.echo(f"err: {e}", err=True)
        raise typer.Exit(1)

    if descriptor in services:
        typer.echo(f"err: {descriptor} is already configured", err=True)
        raise typer.Exit(1)

    save_file(path, [*services, descriptor])
    typer.echo(f"added {descriptor}")


@cli.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the service(s) to remove."),
    port: Optional[int] = typer.Option(None, help="Only remove this port."),
    protocol: Optional[str] = typer.Option(None, help="Only remove this protocol."),
    scheme: Optional[str] = typer.Option(None, help="Only remove this scheme."),
) -> None:
    """Removes every matching service from the desired-state file."""
    path = _config_path(ctx)
    services = _load_or_exit(path)

    def matches(d: ServiceDescriptor) -> bool:
        return (
            d.name == name
            and (port is None or d.port == port)
            and (protocol is None or d.protocol == protocol)
            and (scheme is None or d.scheme == scheme)
        )

    removed = [d for d in services if matches(d)]
    if not removed:
        typer.echo(f"err: no service matches {name}", err=True)
        raise typer.Exit(1)

    save_file(path, [d for d in services if not matches(d)])
    for d in removed:
        typer.echo(f"removed {d}")


# --------------------------------------------------------------------
# Long-lived process
# --------------------------------------------------------------------
@cli.command()
def run(
    ctx: typer.Context,
    ip_address: Optional[str] = typer.Option(
        None,
        "--ip-address",
        envvar="MDNS_RECONCILER_IP_ADDRESS",
        help="Hardcoded address to advertise instead of the discovered one.",
    ),
    poll_interval: float = typer.Option(
        DEFAULT_POLL_INTERVAL_SECONDS,
        help="Seconds between two checks of the desired-state file.",
    ),
    keep_records: bool = typer.Option(
        False,
        "--keep-records",
        help="Let announced records expire on shutdown instead of withdrawing them.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Log record operations instead of sending them."
    ),
) -> None:
    """Advertises the configured services and follows changes."""
    try:
        config = ReconcilerConfig(
            _config_path(ctx),
            ip_address=ip_address,
            poll_interval_seconds=poll_interval,
            withdraw_on_exit=not keep_records,
            dry_run=dry_run,
        )
    except ValueError as e:
        typer.echo(f"err: {e}", err=True)
        raise typer.Exit(1)

    raise typer.Exit(run_reconciler(config))


if __name__ == "__main__":
    cli()
