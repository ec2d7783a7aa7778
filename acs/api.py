from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from .api_models import AppStatusOut, EventOut, HealthOut
from .runtime import AppStatus
from .settings import Settings, load_settings
from .supervisor import Supervisor


def _app_out(st: AppStatus, settings: Settings) -> AppStatusOut:
    return AppStatusOut(
        name=st.name,
        image=settings.image_for(st.name),
        state=st.state.value,
        last_action=st.last_action.value if st.last_action else None,
        restart_count=st.restart_count,
        last_error=st.last_error,
        checked_at=st.checked_at,
    )


def create_app(
    settings: Settings | None = None,
    supervisor: Supervisor | None = None,
    start_supervisor: bool = True,
) -> FastAPI:
    """Read-only status API. The supervisor loop runs in a background thread."""
    settings = settings or load_settings()
    supervisor = supervisor or Supervisor(settings)

    app = FastAPI(title="App Container Supervisor")
    app.state.supervisor = supervisor

    @app.on_event("startup")
    def startup() -> None:
        supervisor.events.init()
        if start_supervisor:
            supervisor.start_background()

    @app.on_event("shutdown")
    def shutdown() -> None:
        supervisor.stop()

    @app.get("/health", response_model=HealthOut)
    def health():
        # Once started, a supervisor thread that is gone means nothing is being reconciled.
        if supervisor.error is not None or (start_supervisor and not supervisor.running):
            body = HealthOut(status="degraded", supervisor_running=supervisor.running)
            return JSONResponse(status_code=503, content=body.model_dump())
        return HealthOut(status="healthy", supervisor_running=supervisor.running)

    @app.get("/apps", response_model=list[AppStatusOut])
    def list_apps() -> list[AppStatusOut]:
        return [_app_out(st, settings) for st in supervisor.runtime.list_apps()]

    @app.get("/apps/{name}", response_model=AppStatusOut)
    def get_app(name: str) -> AppStatusOut:
        st = supervisor.runtime.get(name)
        if st is None:
            raise HTTPException(status_code=404, detail=f"Unknown app '{name}'")
        return _app_out(st, settings)

    @app.get("/events", response_model=list[EventOut])
    def events(limit: int = Query(100, ge=1, le=1000), app_name: str | None = Query(None, alias="app")) -> list[dict]:
        return supervisor.events.latest(limit=limit, app_name=app_name)

    return app
