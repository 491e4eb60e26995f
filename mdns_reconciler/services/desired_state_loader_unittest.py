import json

import pydantic
import pytest

from mdns_reconciler.errors import (
    InvalidNameError,
    LoadError,
    MissingNameError,
    SchemeProtocolMismatchError,
)
from mdns_reconciler.services import desired_state_loader
from mdns_reconciler.services.service_descriptor import ServiceDescriptor


def test_load_preserves_order_and_applies_defaults():
    source = json.dumps(
        {
            "services": [
                {"name": "web", "port": 8080, "scheme": "http"},
                {"name": "ntp", "port": 123, "protocol": "udp"},
                {"name": "printer"},
            ]
        }
    )

    descriptors = desired_state_loader.load(source)

    assert [d.identity for d in descriptors] == [
        "http+tcp://web.local:8080",
        "+udp://ntp.local:123",
        "+tcp://printer.local:80",
    ]


def test_load_accepts_bytes():
    assert desired_state_loader.load(b'{"services": [{"name": "a"}]}') == [
        ServiceDescriptor("a")
    ]


def test_load_without_services_key_is_empty():
    assert desired_state_loader.load(b"{}") == []


def test_load_empty_list():
    assert desired_state_loader.load(b'{"services": []}') == []


@pytest.mark.parametrize(
    "source",
    [
        b"not json",
        b"[]",
        b'{"services": {"name": "web"}}',
        b'{"services": ["web"]}',
        b"\xff\xfe",
    ],
)
def test_load_rejects_malformed_documents(source):
    with pytest.raises(LoadError):
        desired_state_loader.load(source)


def test_load_is_all_or_nothing():
    source = json.dumps(
        {"services": [{"name": "ok"}, {"name": ""}, {"name": "also-ok"}]}
    )
    with pytest.raises(MissingNameError):
        desired_state_loader.load(source)


def test_load_surfaces_scheme_mismatch():
    source = json.dumps(
        {"services": [{"name": "web", "scheme": "https", "protocol": "udp"}]}
    )
    with pytest.raises(SchemeProtocolMismatchError):
        desired_state_loader.load(source)


def test_load_rejects_name_with_whitespace():
    source = json.dumps(
        {
            "services": [
                {"name": "kitchen", "scheme": "http"},
                {"name": "Living Room", "scheme": "http"},
            ]
        }
    )
    with pytest.raises(InvalidNameError, match="Living Room"):
        desired_state_loader.load(source)


def test_load_rejects_null_document():
    with pytest.raises(LoadError) as exc_info:
        desired_state_loader.load(b"null")

    assert isinstance(exc_info.value.__cause__, pydantic.ValidationError)


def test_load_null_services_is_empty():
    assert desired_state_loader.load(b'{"services": null}') == []


def test_load_file_missing(tmp_path):
    with pytest.raises(LoadError):
        desired_state_loader.load_file(tmp_path / "missing.json")


def test_save_then_load_file(tmp_path):
    path = tmp_path / "config.json"
    services = [
        ServiceDescriptor("web", 8080, "tcp", "http"),
        ServiceDescriptor("ssh", 22),
    ]

    desired_state_loader.save_file(path, services)

    assert desired_state_loader.load_file(path) == services
    assert json.loads(path.read_text()) == {
        "services": [
            {"name": "web", "port": 8080, "protocol": "tcp", "scheme": "http"},
            {"name": "ssh", "port": 22, "protocol": "tcp"},
        ]
    }
    # No temporary files are left behind.
    assert [p.name for p in tmp_path.iterdir()] == ["config.json"]


def test_dump_empty():
    assert desired_state_loader.dump([]) == '{\n  "services": []\n}\n'
