"""Allows `python -m mdns_reconciler`."""

from mdns_reconciler.cli import cli

if __name__ == "__main__":
    cli()
