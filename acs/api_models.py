from __future__ import annotations

from pydantic import BaseModel, Field


class AppStatusOut(BaseModel):
    name: str = Field(..., description="App directory basename, also the container name")
    image: str = Field(..., description="Image the container is created from")
    state: str = Field(..., description="absent|created|running|stopped")
    last_action: str | None = Field(None, description="none|started|created")
    restart_count: int = Field(0, ge=0, description="Restarts after an observed crash")
    last_error: str | None = None
    checked_at: str


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    app_name: str | None = None
    message: str


class HealthOut(BaseModel):
    status: str
    supervisor_running: bool
