import os as _os
import re
import sys

import pytest
from docker.errors import APIError, ImageNotFound
from requests.exceptions import ConnectionError as RequestsConnectionError

# Ensure project root is importable when running without an editable install.
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from acs.settings import Settings  # noqa: E402
from acs.supervisor import Supervisor  # noqa: E402


class FakeContainer:
    def __init__(self, client, name, image, status="running", volumes=None, labels=None, restart_policy=None):
        self.client = client
        self.name = name
        self.image = image
        self.status = status
        self.volumes = volumes or {}
        self.labels = labels or {}
        self.restart_policy = restart_policy

    def start(self):
        self.client.check_up()
        self.client.calls.append(("start", self.name))
        if self.name in self.client.fail_start:
            raise APIError(f"Cannot start container {self.name}: port is already allocated")
        self.status = "running"


class FakeContainers:
    def __init__(self, client):
        self.client = client

    def list(self, all=False, filters=None, ignore_removed=False):
        self.client.check_up()
        self.client.calls.append(("list", dict(filters or {})))
        pattern = (filters or {}).get("name")
        out = []
        for c in self.client.by_name.values():
            if not all and c.status != "running":
                continue
            if pattern and not self.client.loose_name_filter:
                if not (re.search(pattern, c.name) or re.search(pattern, "/" + c.name)):
                    continue
            out.append(c)
        return out

    def run(self, image, detach=False, name=None, volumes=None, labels=None, restart_policy=None, **kwargs):
        self.client.check_up()
        self.client.calls.append(("run", name, image))
        if image in self.client.missing_images:
            raise ImageNotFound(f"No such image: {image}")
        if name in self.client.by_name:
            raise APIError(f'Conflict. The container name "/{name}" is already in use')
        c = FakeContainer(self.client, name, image, volumes=volumes, labels=labels, restart_policy=restart_policy)
        self.client.by_name[name] = c
        return c


class FakeDockerClient:
    """In-memory stand-in for docker.DockerClient, injected via the client factory."""

    def __init__(self):
        self.by_name: dict[str, FakeContainer] = {}
        self.calls: list[tuple] = []
        self.down = False
        self.fail_start: set[str] = set()
        self.missing_images: set[str] = set()
        # Return every container from list(), like a substring/prefix name filter would.
        self.loose_name_filter = False
        self.containers = FakeContainers(self)

    def check_up(self):
        if self.down:
            raise RequestsConnectionError("Connection aborted: docker.sock refused")

    def ping(self):
        self.check_up()
        return True

    def close(self):
        pass

    def add(self, name, status="running", image=None):
        c = FakeContainer(self, name, image or f"universal-linux-env/{name}:latest", status=status)
        self.by_name[name] = c
        return c

    def mutations(self, name=None):
        return [c for c in self.calls if c[0] in {"run", "start"} and (name is None or c[1] == name)]


@pytest.fixture
def apps_root(tmp_path):
    d = tmp_path / "apps"
    d.mkdir()
    return d


@pytest.fixture
def make_apps(apps_root):
    def _make(*names):
        for n in names:
            (apps_root / n).mkdir()

    return _make


@pytest.fixture
def settings(apps_root, tmp_path):
    return Settings(
        apps_root=str(apps_root),
        retry_limit=3,
        retry_delay_s=0,
        poll_interval_s=30,
        db_path=str(tmp_path / "events.db"),
    )


@pytest.fixture
def docker_client():
    return FakeDockerClient()


@pytest.fixture
def supervisor(settings, docker_client):
    sup = Supervisor(settings, docker_factory=lambda: docker_client)
    sup.events.init()
    return sup
