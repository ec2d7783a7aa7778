from __future__ import annotations

from dataclasses import dataclass
from threading import Event

from .alerts import send_email
from .docker_ops import ContainerLauncher, ContainerState, ContainerStateProbe, LaunchAction
from .errors import ConfigError, LaunchError, ProbeError
from .events import EventLog
from .registry import AppDefinition, AppRegistry
from .runtime import RuntimeState
from .settings import Settings


@dataclass
class RetryBudget:
    limit: int
    delay_s: float
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.limit


class ReconciliationLoop:
    """Keeps one running container per app directory.

    Two phases:
      1) bring-up: each app gets at most `retry_limit` launch attempts,
         `retry_delay_s` apart
      2) steady state: every `poll_interval_s`, re-scan the apps root and
         start whatever is not running, with no attempt cap

    Per-app failures are logged and never stop a pass. Only ConfigError
    (apps root gone) propagates.
    """

    def __init__(
        self,
        settings: Settings,
        registry: AppRegistry,
        probe: ContainerStateProbe,
        launcher: ContainerLauncher,
        events: EventLog,
        runtime: RuntimeState | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.probe = probe
        self.launcher = launcher
        self.events = events
        self.runtime = runtime or RuntimeState()
        self._stop = Event()

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _wait(self, seconds: float) -> bool:
        """Sleep unless stopped. Returns True if the loop was stopped."""
        return self._stop.wait(max(0.0, seconds))

    # -- bring-up ----------------------------------------------------------

    def bring_up(self) -> dict[str, bool]:
        """Run the bounded-retry phase once. Returns app name -> reached running."""
        apps = self.registry.list()
        self.runtime.prune({a.name for a in apps})
        self.events.log("INFO", f"Bring-up started for {len(apps)} app(s) in {self.registry.root}")

        results: dict[str, bool] = {}
        for app in apps:
            if self.stopped:
                break
            try:
                results[app.name] = self._bring_up_app(app)
            except Exception as e:
                self.events.log("ERROR", f"Bring-up failed: {type(e).__name__}: {e}", app_name=app.name)
                results[app.name] = False
        return results

    def _bring_up_app(self, app: AppDefinition) -> bool:
        budget = RetryBudget(limit=self.settings.retry_limit, delay_s=self.settings.retry_delay_s)
        while not self.stopped:
            state, _ = self._probe(app)
            if state is ContainerState.RUNNING:
                self.events.log("INFO", "Container running", app_name=app.name)
                return True
            if budget.exhausted:
                msg = f"Failed to start container after {budget.attempts} attempts, giving up"
                self.events.log("ERROR", msg, app_name=app.name)
                self._maybe_email(app.name, "BRING-UP FAILED", msg)
                return False
            self._launch(app)
            budget.attempts += 1
            if self._wait(budget.delay_s):
                break
        return False

    # -- steady state ------------------------------------------------------

    def run_forever(self) -> None:
        interval = max(1.0, self.settings.poll_interval_s)
        self.events.log("INFO", f"Steady-state reconciliation every {interval:g}s")
        while not self.stopped:
            try:
                self.reconcile_once()
            except ConfigError:
                raise
            except Exception as e:
                self.events.log("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            if self._wait(interval):
                break
        self.events.log("INFO", "Reconciler stopped")

    def reconcile_once(self) -> None:
        """One steady-state pass over every app, in registry order."""
        apps = self.registry.list()
        for gone in self.runtime.prune({a.name for a in apps}):
            self.events.log("INFO", "App directory removed; no longer supervised", app_name=gone)

        for app in apps:
            if self.stopped:
                break
            try:
                self._reconcile_app(app)
            except Exception as e:
                self.events.log("ERROR", f"Reconcile failed: {type(e).__name__}: {e}", app_name=app.name)

    def _reconcile_app(self, app: AppDefinition) -> None:
        state, prev = self._probe(app)
        if state is ContainerState.RUNNING:
            if prev is not None and prev is not ContainerState.RUNNING:
                self.events.log("INFO", "Container recovered", app_name=app.name)
            return

        crashed = prev is ContainerState.RUNNING
        if crashed:
            msg = f"Container {state.value}, restarting"
            self.events.log("WARN", msg, app_name=app.name)
            self._maybe_email(app.name, "DOWN", msg)
        elif state is not None:
            self.events.log("INFO", f"Container {state.value}, reconciling", app_name=app.name)
        self._launch(app, restarted=crashed)

    # -- per-app steps -----------------------------------------------------

    def _probe(self, app: AppDefinition) -> tuple[ContainerState | None, ContainerState | None]:
        """Returns (state or None on probe failure, previously observed state)."""
        try:
            state = self.probe.state(app.name)
        except ProbeError as e:
            self.events.log("ERROR", f"Probe failed: {e}", app_name=app.name)
            self.runtime.record_error(app.name, str(e))
            return None, None
        return state, self.runtime.observe(app.name, state)

    def _launch(self, app: AppDefinition, restarted: bool = False) -> bool:
        try:
            action = self.launcher.ensure_running(app)
        except (ProbeError, LaunchError) as e:
            self.events.log("ERROR", f"{type(e).__name__}: {e}", app_name=app.name)
            self.runtime.record_error(app.name, str(e))
            return False

        if action is LaunchAction.CREATED:
            self.events.log(
                "INFO",
                f"Created container from image {self.settings.image_for(app.name)} with {app.path} at {self.settings.mount_path}",
                app_name=app.name,
            )
        elif action is LaunchAction.STARTED:
            self.events.log("INFO", "Started existing container", app_name=app.name)
        self.runtime.record_action(app.name, action, restarted=restarted)
        return True

    def _maybe_email(self, app_name: str, status: str, detail: str) -> None:
        if not self.settings.enable_email:
            return
        subject = f"{status}: {app_name}"
        body = f"App: {app_name}\nStatus: {status}\nDetail: {detail}"
        send_email(self.settings, subject, body)
