import json

import pytest
from typer.testing import CliRunner

from mdns_reconciler.cli import cli
from mdns_reconciler.services.desired_state_loader import load_file, save_file
from mdns_reconciler.test.reconciler_fixtures import make_service

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.json"


def _invoke(config_file, *args, **kwargs):
    return runner.invoke(cli, ["--config", str(config_file), *args], **kwargs)


class TestInit:

    def test_creates_empty_file(self, config_file):
        result = _invoke(config_file, "init")

        assert result.exit_code == 0, result.output
        assert json.loads(config_file.read_text()) == {"services": []}

    def test_refuses_to_overwrite(self, config_file):
        save_file(config_file, [make_service("web")])

        result = _invoke(config_file, "init")

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert load_file(config_file) == [make_service("web")]

    def test_force_overwrites(self, config_file):
        save_file(config_file, [make_service("web")])

        result = _invoke(config_file, "init", "--force")

        assert result.exit_code == 0, result.output
        assert load_file(config_file) == []


class TestAdd:

    def test_adds_with_defaults(self, config_file):
        _invoke(config_file, "init")

        result = _invoke(config_file, "add", "printer")

        assert result.exit_code == 0, result.output
        assert "added +tcp://printer.local:80" in result.output
        assert json.loads(config_file.read_text()) == {
            "services": [{"name": "printer", "port": 80, "protocol": "tcp"}]
        }

    def test_adds_full_service(self, config_file):
        _invoke(config_file, "init")

        result = _invoke(
            config_file,
            "add",
            "web",
            "--port",
            "8080",
            "--protocol",
            "tcp",
            "--scheme",
            "http",
        )

        assert result.exit_code == 0, result.output
        assert load_file(config_file) == [make_service("web", 8080, "tcp", "http")]

    def test_rejects_duplicate(self, config_file):
        save_file(config_file, [make_service("web", 8080, scheme="http")])

        result = _invoke(
            config_file, "add", "web", "--port", "8080", "--scheme", "http"
        )

        assert result.exit_code == 1
        assert "already configured" in result.output

    def test_rejects_scheme_protocol_mismatch(self, config_file):
        _invoke(config_file, "init")

        result = _invoke(
            config_file, "add", "web", "--protocol", "udp", "--scheme", "https"
        )

        assert result.exit_code == 1
        assert "must use" in result.output
        assert load_file(config_file) == []

    def test_rejects_name_with_whitespace(self, config_file):
        _invoke(config_file, "init")

        result = _invoke(config_file, "add", "Living Room", "--scheme", "http")

        assert result.exit_code == 1
        assert "not a valid host name" in result.output
        assert load_file(config_file) == []

    def test_missing_file_fails(self, config_file):
        result = _invoke(config_file, "add", "web")

        assert result.exit_code == 1
        assert "err:" in result.output


class TestShowAndRemove:

    @pytest.fixture(autouse=True)
    def services(self, config_file):
        save_file(
            config_file,
            [
                make_service("web", 8080, scheme="http"),
                make_service("web", 8443, scheme="https"),
                make_service("ntp", 123, "udp"),
            ],
        )

    def test_show_lists_identity_and_type(self, config_file):
        result = _invoke(config_file, "show")

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert "http+tcp://web.local:8080\t_http._tcp.local." in lines
        assert "https+tcp://web.local:8443\t_https._tcp.local." in lines
        assert "+udp://ntp.local:123\t_udp.local." in lines

    def test_remove_all_by_name(self, config_file):
        result = _invoke(config_file, "remove", "web")

        assert result.exit_code == 0, result.output
        assert load_file(config_file) == [make_service("ntp", 123, "udp")]

    def test_remove_filtered_by_port(self, config_file):
        result = _invoke(config_file, "remove", "web", "--port", "8443")

        assert result.exit_code == 0, result.output
        assert "removed https+tcp://web.local:8443" in result.output
        assert [d.port for d in load_file(config_file)] == [8080, 123]

    def test_remove_no_match_fails(self, config_file):
        result = _invoke(config_file, "remove", "web", "--scheme", "ftp")

        assert result.exit_code == 1
        assert len(load_file(config_file)) == 3

    def test_show_invalid_file_fails(self, config_file):
        config_file.write_text('{"services": [{"name": ""}]}')

        result = _invoke(config_file, "show")

        assert result.exit_code == 1
        assert 'Service "name" field is required' in result.output


class TestRun:

    def test_builds_config_from_options(self, config_file, mocker):
        run_reconciler = mocker.patch(
            "mdns_reconciler.cli.run_reconciler", return_value=0
        )

        result = _invoke(
            config_file,
            "run",
            "--ip-address",
            "10.0.0.5",
            "--poll-interval",
            "0.5",
            "--keep-records",
            "--dry-run",
        )

        assert result.exit_code == 0, result.output
        (config,) = run_reconciler.call_args.args
        assert config.config_path == config_file
        assert config.ip_address == "10.0.0.5"
        assert config.poll_interval_seconds == 0.5
        assert not config.withdraw_on_exit
        assert config.dry_run

    def test_ip_address_from_environment(self, config_file, mocker):
        run_reconciler = mocker.patch(
            "mdns_reconciler.cli.run_reconciler", return_value=0
        )

        _invoke(
            config_file,
            "run",
            env={"MDNS_RECONCILER_IP_ADDRESS": "192.168.1.10"},
        )

        (config,) = run_reconciler.call_args.args
        assert config.ip_address == "192.168.1.10"
        assert config.withdraw_on_exit

    def test_exit_code_is_propagated(self, config_file, mocker):
        mocker.patch("mdns_reconciler.cli.run_reconciler", return_value=1)

        result = _invoke(config_file, "run")

        assert result.exit_code == 1

    def test_rejects_bad_poll_interval(self, config_file, mocker):
        run_reconciler = mocker.patch("mdns_reconciler.cli.run_reconciler")

        result = _invoke(config_file, "run", "--poll-interval", "0")

        assert result.exit_code == 1
        run_reconciler.assert_not_called()


class TestLogLevel:

    @pytest.fixture(autouse=True)
    def services(self, config_file):
        save_file(config_file, [make_service("web", 8080, scheme="http")])

    @pytest.mark.parametrize("level", ["DEBUG", "warning", "Error"])
    def test_accepts_known_levels(self, config_file, level):
        result = _invoke(config_file, "--log-level", level, "show")

        assert result.exit_code == 0, result.output

    def test_unknown_level_is_a_usage_error(self, config_file):
        result = _invoke(config_file, "--log-level", "chatty", "show")

        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)
        assert "http+tcp://web.local:8080" not in result.output
