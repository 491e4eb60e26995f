import dataclasses

import pydantic
import pytest

from mdns_reconciler.errors import (
    InvalidNameError,
    LoadError,
    MissingNameError,
    SchemeProtocolMismatchError,
    ValidationError,
)
from mdns_reconciler.services.service_descriptor import (
    ServiceDescriptor,
    validate,
)


class TestValidate:

    def test_applies_defaults(self):
        descriptor = validate({"name": "printer"})

        assert descriptor.name == "printer"
        assert descriptor.port == 80
        assert descriptor.protocol == "tcp"
        assert descriptor.scheme == ""

    def test_zero_port_defaults_to_80(self):
        assert validate({"name": "web", "port": 0}).port == 80

    def test_null_fields_use_defaults(self):
        descriptor = validate(
            {"name": "web", "port": None, "protocol": None, "scheme": None}
        )
        assert (descriptor.port, descriptor.protocol, descriptor.scheme) == (
            80,
            "tcp",
            "",
        )

    def test_keeps_explicit_values(self):
        descriptor = validate(
            {"name": "dns", "port": 5353, "protocol": "udp", "scheme": "dns"}
        )
        assert descriptor == ServiceDescriptor("dns", 5353, "udp", "dns")

    @pytest.mark.parametrize("raw", [{}, {"name": ""}, {"name": None}])
    def test_missing_name(self, raw):
        with pytest.raises(MissingNameError):
            validate(raw)

    @pytest.mark.parametrize("scheme", ["http", "https"])
    def test_web_scheme_requires_tcp(self, scheme):
        with pytest.raises(SchemeProtocolMismatchError) as exc_info:
            validate({"name": "web", "scheme": scheme, "protocol": "udp"})

        assert exc_info.value.scheme == scheme
        assert exc_info.value.protocol == "udp"
        assert isinstance(exc_info.value, ValidationError)

    def test_web_scheme_with_default_protocol_is_valid(self):
        assert validate({"name": "web", "scheme": "https"}).protocol == "tcp"

    def test_other_scheme_may_use_udp(self):
        descriptor = validate({"name": "cam", "scheme": "rtsp", "protocol": "udp"})
        assert descriptor.service_type == "_rtsp._udp.local."

    @pytest.mark.parametrize("port", ["80", -1, 70000, True, 8.5])
    def test_rejects_bad_port(self, port):
        with pytest.raises(LoadError):
            validate({"name": "web", "port": port})

    def test_rejects_non_string_name(self):
        with pytest.raises(LoadError):
            validate({"name": 42})

    def test_rejects_non_mapping(self):
        with pytest.raises(LoadError):
            validate(["web"])  # type: ignore[arg-type]

    def test_wrong_type_error_carries_field_details(self):
        with pytest.raises(LoadError) as exc_info:
            validate({"name": "web", "port": "8080"})

        assert isinstance(exc_info.value.__cause__, pydantic.ValidationError)
        assert "port" in str(exc_info.value)

    def test_ignores_unknown_fields(self):
        assert validate({"name": "web", "comment": "lobby"}) == (
            ServiceDescriptor("web")
        )

    @pytest.mark.parametrize(
        "name",
        [
            "Living Room",
            " web",
            "web\t",
            "line\nbreak",
            "web.",
            ".web",
            "a..b",
            "x" * 64,
        ],
    )
    def test_rejects_names_unusable_as_host(self, name):
        with pytest.raises(InvalidNameError) as exc_info:
            validate({"name": name, "scheme": "http"})

        assert exc_info.value.name == name
        assert isinstance(exc_info.value, ValidationError)

    @pytest.mark.parametrize(
        "name", ["living-room", "Living_Room", "x" * 63, "rack1.web", "café"]
    )
    def test_accepts_host_label_names(self, name):
        assert validate({"name": name}).name == name


class TestServiceDescriptor:

    def test_service_type_with_scheme(self):
        assert ServiceDescriptor("web", 8080, "tcp", "http").service_type == (
            "_http._tcp.local."
        )

    def test_service_type_without_scheme(self):
        assert ServiceDescriptor("ntp", 123, "udp").service_type == "_udp.local."

    def test_identity(self):
        descriptor = ServiceDescriptor("web", 8080, "tcp", "http")
        assert descriptor.identity == "http+tcp://web.local:8080"
        assert str(descriptor) == descriptor.identity

    def test_identity_without_scheme(self):
        assert ServiceDescriptor("ssh", 22).identity == "+tcp://ssh.local:22"

    def test_equality_and_hash_follow_identity(self):
        a = ServiceDescriptor("web", 8080, "tcp", "http")
        b = ServiceDescriptor("web", 8080, "tcp", "http")
        c = ServiceDescriptor("web", 8081, "tcp", "http")

        assert a == b
        assert hash(a) == hash(b)
        assert a != c
        assert len({a, b, c}) == 2

    def test_derived_values_follow_replaced_fields(self):
        original = ServiceDescriptor("web", 8080, "tcp", "http")
        changed = dataclasses.replace(original, scheme="https", name="secure")

        assert changed.service_type == "_https._tcp.local."
        assert changed.identity == "https+tcp://secure.local:8080"

    def test_to_dict(self):
        assert ServiceDescriptor("web", 8080, "tcp", "http").to_dict() == {
            "name": "web",
            "port": 8080,
            "protocol": "tcp",
            "scheme": "http",
        }
        assert ServiceDescriptor("ssh", 22).to_dict() == {
            "name": "ssh",
            "port": 22,
            "protocol": "tcp",
        }
