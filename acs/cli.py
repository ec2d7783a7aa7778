from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace

import requests

from .docker_ops import ContainerStateProbe, DockerRuntime
from .errors import ConfigError, ProbeError
from .events import EventLog
from .registry import AppRegistry
from .settings import Settings, load_settings
from .supervisor import Supervisor


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _settings_from_args(args: argparse.Namespace) -> Settings:
    s = load_settings()
    overrides = {
        "apps_root": args.apps_root,
        "image_namespace": getattr(args, "namespace", None),
        "retry_limit": getattr(args, "retry_limit", None),
        "retry_delay_s": getattr(args, "retry_delay", None),
        "poll_interval_s": getattr(args, "poll_interval", None),
        "db_path": args.db_path,
    }
    return replace(s, **{k: v for k, v in overrides.items() if v is not None})


def _local_apps(settings: Settings) -> list[dict]:
    registry = AppRegistry(settings.apps_root)
    probe = ContainerStateProbe(DockerRuntime(timeout_s=settings.runtime_timeout_s))
    out: list[dict] = []
    for app in registry.list():
        try:
            state = probe.state(app.name)
        except ProbeError as e:
            out.append({"name": app.name, "path": str(app.path), "state": None, "error": str(e)})
            continue
        out.append(
            {
                "name": app.name,
                "path": str(app.path),
                "image": settings.image_for(app.name),
                "state": state.value,
            }
        )
    return out


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="App Container Supervisor")
    p.add_argument("--apps-root", default=None, help="Apps root directory (env ACS_APPS_ROOT)")
    p.add_argument("--db-path", default=None, help="Event log SQLite file; empty disables it (env ACS_DB_PATH)")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    def _loop_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--namespace", default=None, help="Image namespace (<namespace>/<app>:latest)")
        sp.add_argument("--retry-limit", type=int, default=None, help="Bring-up launch attempts per app")
        sp.add_argument("--retry-delay", type=float, default=None, help="Seconds between bring-up attempts")
        sp.add_argument("--poll-interval", type=float, default=None, help="Seconds between steady-state passes")

    s_run = sub.add_parser("run", help="Run the supervisor in the foreground")
    _loop_args(s_run)

    s_serve = sub.add_parser("serve", help="Run the supervisor with the read-only status API")
    _loop_args(s_serve)
    s_serve.add_argument("--host", default=None)
    s_serve.add_argument("--port", type=int, default=None)

    s_apps = sub.add_parser("apps", help="List apps and their container state")
    s_apps.add_argument("--api", default=None, help="Query a running status API instead of Docker")

    s_ev = sub.add_parser("events", help="Show recent events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--app", default=None, help="Only events for this app")
    s_ev.add_argument("--api", default=None, help="Query a running status API instead of the local event log")

    args = p.parse_args(argv)
    _setup_logging(args.verbose)
    settings = _settings_from_args(args)

    try:
        if args.cmd == "run":
            sup = Supervisor(settings)
            sup.install_signal_handlers()
            sup.run()
            return 0

        if args.cmd == "serve":
            import uvicorn

            from .api import create_app

            sup = Supervisor(settings)
            server = uvicorn.Server(
                uvicorn.Config(
                    create_app(settings, supervisor=sup),
                    host=args.host or settings.api_host,
                    port=args.port or settings.api_port,
                )
            )
            # A dead supervisor thread takes the API down with it so systemd restarts us.
            sup.on_fatal = lambda e: setattr(server, "should_exit", True)
            server.run()
            if isinstance(sup.error, ConfigError):
                raise sup.error
            return 1 if sup.error is not None else 0

        if args.cmd == "apps":
            if args.api:
                r = requests.get(f"{args.api.rstrip('/')}/apps", timeout=10)
                _print(r.json())
                return 0 if r.ok else 1
            _print(_local_apps(settings))
            return 0

        if args.cmd == "events":
            if args.api:
                params = {"limit": args.limit}
                if args.app:
                    params["app"] = args.app
                r = requests.get(f"{args.api.rstrip('/')}/events", params=params, timeout=10)
                _print(r.json())
                return 0 if r.ok else 1
            _print(EventLog(settings.db_path).latest(limit=args.limit, app_name=args.app))
            return 0
    except ConfigError as e:
        logging.getLogger("acs").error("%s", e)
        return 2

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
