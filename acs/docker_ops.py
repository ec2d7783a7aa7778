from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable

import docker
from docker.errors import DockerException
from requests.exceptions import RequestException

from .errors import LaunchError, ProbeError
from .registry import AppDefinition
from .settings import Settings


# Container names must also be valid image path components.
APP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_.\-]{0,127}$")

# `docker ps` lists paused and restarting containers too.
RUNNING_STATUSES = {"running", "paused", "restarting"}

# Connection refused / timeouts surface as requests errors, not DockerException.
RUNTIME_ERRORS = (DockerException, RequestException)


def validate_app_name(name: str) -> None:
    if not APP_NAME_RE.match(name):
        raise ValueError(
            f"Invalid app name '{name}'. Use lowercase letters/numbers and '_', '.', '-', starting with a letter or digit."
        )


class ContainerState(str, Enum):
    ABSENT = "absent"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class LaunchAction(str, Enum):
    NONE = "none"
    STARTED = "started"
    CREATED = "created"


def state_of(container: Any | None) -> ContainerState:
    if container is None:
        return ContainerState.ABSENT
    status = (container.status or "").lower()
    if status in RUNNING_STATUSES:
        return ContainerState.RUNNING
    if status == "created":
        return ContainerState.CREATED
    return ContainerState.STOPPED


class DockerRuntime:
    """Lazily connected Docker client shared by the probe and the launcher.

    The client is dropped after a runtime error so the next call reconnects
    (the daemon may have been restarted in the meantime).
    """

    def __init__(self, timeout_s: int = 60, factory: Callable[[], Any] | None = None):
        self.timeout_s = timeout_s
        self._factory = factory or self._from_env
        self._client: Any | None = None

    def _from_env(self) -> docker.DockerClient:
        return docker.from_env(timeout=self.timeout_s)

    def client(self) -> Any:
        if self._client is None:
            self._client = self._factory()
        return self._client

    def reset(self) -> None:
        client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            try:
                client.close()
            except RUNTIME_ERRORS:
                pass

    def available(self) -> bool:
        try:
            self.client().ping()
            return True
        except RUNTIME_ERRORS:
            self.reset()
            return False


class ContainerStateProbe:
    def __init__(self, runtime: DockerRuntime):
        self.runtime = runtime

    def find(self, name: str) -> Any | None:
        """Return the container named exactly `name`, or None.

        Docker's name filter is a regular expression over all names, so the
        result is narrowed again by exact comparison.
        """
        try:
            found = self.runtime.client().containers.list(
                all=True,
                filters={"name": f"^/?{re.escape(name)}$"},
                ignore_removed=True,
            )
        except RUNTIME_ERRORS as e:
            self.runtime.reset()
            raise ProbeError(name, f"Container runtime query failed: {type(e).__name__}: {e}") from e

        for c in found:
            if c.name == name:
                return c
        return None

    def state(self, name: str) -> ContainerState:
        return state_of(self.find(name))


class ContainerLauncher:
    """Create or start the container for an app."""

    def __init__(self, runtime: DockerRuntime, probe: ContainerStateProbe, settings: Settings):
        self.runtime = runtime
        self.probe = probe
        self.settings = settings

    def ensure_running(self, app: AppDefinition) -> LaunchAction:
        container = self.probe.find(app.name)
        state = state_of(container)
        if state is ContainerState.RUNNING:
            return LaunchAction.NONE

        if container is not None:
            try:
                container.start()
            except RUNTIME_ERRORS as e:
                raise LaunchError(app.name, f"Start failed: {type(e).__name__}: {e}") from e
            return LaunchAction.STARTED

        try:
            validate_app_name(app.name)
        except ValueError as e:
            raise LaunchError(app.name, str(e)) from e

        image = self.settings.image_for(app.name)
        try:
            self.runtime.client().containers.run(
                image,
                detach=True,
                name=app.name,
                volumes={str(app.path): {"bind": self.settings.mount_path, "mode": "rw"}},
                labels={"acs.app": app.name},
                # Restarts are done by the supervisor; keep Docker's restart policy off.
                restart_policy={"Name": "no"},
            )
        except RUNTIME_ERRORS as e:
            raise LaunchError(app.name, f"Create from image {image} failed: {type(e).__name__}: {e}") from e
        return LaunchAction.CREATED
