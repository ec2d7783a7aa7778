from __future__ import annotations

import signal
from threading import Thread
from typing import Any, Callable

from .docker_ops import ContainerLauncher, ContainerStateProbe, DockerRuntime
from .events import EventLog
from .reconciler import ReconciliationLoop
from .registry import AppRegistry
from .runtime import RuntimeState
from .settings import Settings


class Supervisor:
    """Wires the registry, Docker access and the reconciliation loop together.

    `run()` blocks: bring-up once, then steady state until `stop()`.
    Restarting the process after a fatal error is systemd's job.
    """

    def __init__(
        self,
        settings: Settings,
        docker_factory: Callable[[], Any] | None = None,
        events: EventLog | None = None,
        runtime: RuntimeState | None = None,
    ):
        self.settings = settings
        self.events = events or EventLog(settings.db_path)
        self.runtime = runtime or RuntimeState()
        self.registry = AppRegistry(settings.apps_root)
        self.docker = DockerRuntime(timeout_s=settings.runtime_timeout_s, factory=docker_factory)
        self.probe = ContainerStateProbe(self.docker)
        self.launcher = ContainerLauncher(self.docker, self.probe, settings)
        self.loop = ReconciliationLoop(
            settings,
            self.registry,
            self.probe,
            self.launcher,
            self.events,
            runtime=self.runtime,
        )
        self._thr: Thread | None = None
        # Set when run() ended with an exception; on_fatal(exc) is called from the supervisor thread.
        self.error: BaseException | None = None
        self.on_fatal: Callable[[BaseException], None] | None = None

    def run(self) -> None:
        self.events.init()
        self.registry.check()
        self.events.log(
            "INFO",
            f"Supervisor started (apps root {self.registry.root}, retry limit {self.settings.retry_limit}, "
            f"retry delay {self.settings.retry_delay_s:g}s, poll interval {self.settings.poll_interval_s:g}s)",
        )
        if not self.docker.available():
            self.events.log("WARN", "Docker is not reachable yet; apps stay unhealthy until it is")
        self.loop.bring_up()
        if not self.loop.stopped:
            self.loop.run_forever()

    def stop(self) -> None:
        self.loop.stop()

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def start_background(self) -> None:
        """Run in a daemon thread (used when serving the status API)."""
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._run_logged, name="acs-supervisor", daemon=True)
        self._thr.start()

    def _run_logged(self) -> None:
        try:
            self.run()
        except Exception as e:
            self.error = e
            self.events.log("ERROR", f"Supervisor terminated: {type(e).__name__}: {e}")
            if self.on_fatal is not None:
                self.on_fatal(e)

    def install_signal_handlers(self) -> None:
        def _handle_signal(signum, frame):
            self.events.log("INFO", f"Received signal {signum}, shutting down")
            self.stop()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
