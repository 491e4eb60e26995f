from pathlib import Path

import pytest

from mdns_reconciler.config.reconciler_config import (
    DEFAULT_CONFIG_PATH,
    ReconcilerConfig,
)
from mdns_reconciler.runtime.file_watcher import DEFAULT_POLL_INTERVAL_SECONDS


def test_defaults():
    config = ReconcilerConfig()

    assert config.config_path == Path(DEFAULT_CONFIG_PATH)
    assert config.ip_address is None
    assert config.poll_interval_seconds == DEFAULT_POLL_INTERVAL_SECONDS
    assert config.withdraw_on_exit
    assert not config.dry_run


def test_explicit_values():
    config = ReconcilerConfig(
        "/etc/mdns/services.json",
        ip_address="10.0.0.5",
        poll_interval_seconds=2,
        withdraw_on_exit=False,
        dry_run=True,
    )

    assert config.config_path == Path("/etc/mdns/services.json")
    assert config.ip_address == "10.0.0.5"
    assert config.poll_interval_seconds == 2.0
    assert not config.withdraw_on_exit
    assert config.dry_run


def test_empty_ip_address_means_discover():
    assert ReconcilerConfig(ip_address="").ip_address is None


@pytest.mark.parametrize("interval", [0, -1.5])
def test_rejects_non_positive_poll_interval(interval):
    with pytest.raises(ValueError, match="poll_interval_seconds"):
        ReconcilerConfig(poll_interval_seconds=interval)


def test_rejects_empty_path():
    with pytest.raises(ValueError, match="config_path"):
        ReconcilerConfig("")


def test_repr_mentions_settings():
    text = repr(ReconcilerConfig("services.json", ip_address="10.0.0.5"))

    assert "services.json" in text
    assert "'10.0.0.5'" in text
    assert "dry_run=False" in text
