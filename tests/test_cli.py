"""Tests for devrp.cli."""

import json
import sys

import pytest

from devrp import cli


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([])
        assert excinfo.value.code == 1
        assert "usage" in capsys.readouterr().out

    def test_clients_requires_subcommand(self):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["clients"])
        assert excinfo.value.code == 1


class TestClientsCommands:
    def test_list_text(self, api, capsys):
        cli.main(["clients", "list", "--server", api])
        assert capsys.readouterr().out.strip() == "(no clients)"

    def test_list_json(self, api, service, capsys):
        service.register("myapp", 3000)
        cli.main(["clients", "list", "--server", api, "--format", "json"])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["domain"] == "myapp.localhost"

    def test_status(self, api, capsys):
        cli.main(["clients", "status", "--server", api])
        assert capsys.readouterr().out.strip() == "ok  clients=0"

    def test_unreachable(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["clients", "status", "--server", "http://127.0.0.1:1"])
        assert excinfo.value.code == 1


class TestRunCommand:
    def test_requires_command(self):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["run", "-i", "myapp"])
        assert excinfo.value.code == 1

    def test_runs_wrapped_command(self, api, service):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([
                "run", "-s", api, "-i", "myapp", "-p", "3000",
                "--", sys.executable, "-c", "pass",
            ])
        assert excinfo.value.code == 0
        assert service.count() == 0


class TestServeCommand:
    def test_rejects_short_timeout(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([
                "serve", "--config-dir", str(tmp_path), "--heartbeat-timeout", "2s",
            ])
        assert excinfo.value.code == 1

    def test_bad_duration_flag(self):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["serve", "--heartbeat-timeout", "soon"])
        assert excinfo.value.code == 2


class TestInitCommand:
    def test_writes_scaffold(self, tmp_path):
        cli.main(["init", "--output-dir", str(tmp_path), "--server-port", "9000"])
        assert "9000" in (tmp_path / "docker-compose.yml").read_text()
        assert (tmp_path / "traefik.yml").exists()
