import json
import signal
import time

import pytest

import acs.cli as cli
from acs.docker_ops import DockerRuntime
from acs.events import EventLog


def test_run_with_missing_apps_root_exits_non_zero(tmp_path, monkeypatch):
    monkeypatch.setattr(signal, "signal", lambda sig, handler: None)
    rc = cli.main(["--apps-root", str(tmp_path / "missing"), "--db-path", "", "run"])
    assert rc == 2


def test_events_from_local_log(tmp_path, capsys):
    db = str(tmp_path / "ev.db")
    log = EventLog(db)
    log.init()
    log.log("INFO", "Container running", app_name="web")
    log.log("ERROR", "Probe failed", app_name="api")

    rc = cli.main(["--db-path", db, "events", "--limit", "5", "--app", "web"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert [e["message"] for e in out] == ["Container running"]


def test_apps_probes_docker(apps_root, make_apps, docker_client, monkeypatch, capsys):
    make_apps("api", "web")
    docker_client.add("web", status="running")
    monkeypatch.setattr(cli, "DockerRuntime", lambda timeout_s: DockerRuntime(factory=lambda: docker_client))

    rc = cli.main(["--apps-root", str(apps_root), "apps"])

    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert [(a["name"], a["state"]) for a in out] == [("api", "absent"), ("web", "running")]
    assert docker_client.mutations() == []


def test_apps_reports_probe_errors(apps_root, make_apps, docker_client, monkeypatch, capsys):
    make_apps("web")
    docker_client.down = True
    monkeypatch.setattr(cli, "DockerRuntime", lambda timeout_s: DockerRuntime(factory=lambda: docker_client))

    assert cli.main(["--apps-root", str(apps_root), "apps"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out[0]["state"] is None
    assert "runtime query failed" in out[0]["error"]


def test_apps_from_api(monkeypatch, capsys):
    seen = {}

    class _Resp:
        ok = True

        def json(self):
            return [{"name": "web", "state": "running"}]

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        return _Resp()

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["apps", "--api", "http://localhost:8000/"]) == 0
    assert seen["url"] == "http://localhost:8000/apps"
    assert json.loads(capsys.readouterr().out)[0]["name"] == "web"


def test_unknown_command_is_usage_error():
    with pytest.raises(SystemExit):
        cli.main(["bogus"])


class _FakeConfig:
    def __init__(self, app, host=None, port=None):
        self.app = app
        self.host = host
        self.port = port


class _FakeServer:
    """Runs the app's startup/shutdown and serves until should_exit is set."""

    def __init__(self, config):
        self.config = config
        self.should_exit = False

    def run(self):
        from fastapi.testclient import TestClient

        with TestClient(self.config.app):
            deadline = time.monotonic() + 5
            while not self.should_exit and time.monotonic() < deadline:
                time.sleep(0.01)


def test_serve_exits_with_status_2_when_apps_root_missing(tmp_path, monkeypatch):
    import uvicorn

    monkeypatch.setattr(uvicorn, "Config", _FakeConfig)
    servers = []
    monkeypatch.setattr(uvicorn, "Server", lambda config: servers.append(_FakeServer(config)) or servers[-1])

    rc = cli.main(["--apps-root", str(tmp_path / "missing"), "--db-path", "", "serve", "--port", "8123"])

    assert rc == 2
    assert servers[0].should_exit is True
    assert servers[0].config.port == 8123
