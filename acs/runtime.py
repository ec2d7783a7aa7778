from __future__ import annotations

from dataclasses import dataclass, field, replace
from threading import Lock

from .docker_ops import ContainerState, LaunchAction
from .events import utc_now


@dataclass(frozen=True)
class AppStatus:
    name: str
    state: ContainerState
    last_action: LaunchAction | None = None
    restart_count: int = 0
    last_error: str | None = None
    checked_at: str = field(default_factory=utc_now)


class RuntimeState:
    """Last observed status of every app, shared with the status API."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.apps: dict[str, AppStatus] = {}

    def observe(self, name: str, state: ContainerState) -> ContainerState | None:
        """Record a probe result.

        Returns the previously observed state (None on first sight).
        """
        with self.lock:
            prev = self.apps.get(name)
            if prev is None:
                self.apps[name] = AppStatus(name=name, state=state)
                return None
            err = None if state is ContainerState.RUNNING else prev.last_error
            self.apps[name] = replace(prev, state=state, last_error=err, checked_at=utc_now())
            return prev.state

    def record_action(self, name: str, action: LaunchAction, restarted: bool = False) -> None:
        with self.lock:
            prev = self.apps.get(name) or AppStatus(name=name, state=ContainerState.ABSENT)
            # The runtime accepted a start; the next probe confirms or reports a crash.
            state = prev.state if action is LaunchAction.NONE else ContainerState.RUNNING
            self.apps[name] = replace(
                prev,
                state=state,
                last_action=action,
                last_error=None,
                restart_count=prev.restart_count + (1 if restarted else 0),
                checked_at=utc_now(),
            )

    def record_error(self, name: str, message: str) -> None:
        with self.lock:
            prev = self.apps.get(name) or AppStatus(name=name, state=ContainerState.ABSENT)
            self.apps[name] = replace(prev, last_error=message, checked_at=utc_now())

    def prune(self, names: set[str]) -> list[str]:
        """Forget apps whose directory is gone. Returns the removed names."""
        with self.lock:
            gone = sorted(n for n in self.apps if n not in names)
            for n in gone:
                del self.apps[n]
            return gone

    def get(self, name: str) -> AppStatus | None:
        with self.lock:
            return self.apps.get(name)

    def list_apps(self) -> list[AppStatus]:
        with self.lock:
            return [self.apps[n] for n in sorted(self.apps)]
