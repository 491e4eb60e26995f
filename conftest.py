import logging

import pytest


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    # Reconciler decisions are logged at DEBUG.
    caplog.set_level(logging.DEBUG, logger="mdns_reconciler")
