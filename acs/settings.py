from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DEFAULT_APPS_ROOT = os.path.join("~", "universal-linux-env", "apps")


@dataclass(frozen=True)
class Settings:
    # Core
    apps_root: str = DEFAULT_APPS_ROOT
    image_namespace: str = "universal-linux-env"
    mount_path: str = "/app"
    retry_limit: int = 5
    retry_delay_s: float = 10
    poll_interval_s: float = 30
    runtime_timeout_s: int = 60
    db_path: str = "acs.db"

    # Status API (only used by `acs serve`)
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Email alerting (optional)
    enable_email: bool = False
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    email_from: str | None = None
    email_to: str | None = None

    def image_for(self, app_name: str) -> str:
        return f"{self.image_namespace}/{app_name}:latest"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build the settings value from ACS_* environment variables.

    Invalid numbers fall back to the defaults.
    """
    env = os.environ if env is None else env
    d = Settings()
    return Settings(
        apps_root=env.get("ACS_APPS_ROOT", d.apps_root),
        image_namespace=env.get("ACS_IMAGE_NAMESPACE", d.image_namespace),
        mount_path=env.get("ACS_MOUNT_PATH", d.mount_path),
        retry_limit=max(0, _env_int(env, "ACS_RETRY_LIMIT", d.retry_limit)),
        retry_delay_s=max(0.0, _env_float(env, "ACS_RETRY_DELAY_S", d.retry_delay_s)),
        poll_interval_s=max(1.0, _env_float(env, "ACS_POLL_INTERVAL_S", d.poll_interval_s)),
        runtime_timeout_s=max(1, _env_int(env, "ACS_RUNTIME_TIMEOUT_S", d.runtime_timeout_s)),
        db_path=env.get("ACS_DB_PATH", d.db_path),
        api_host=env.get("ACS_API_HOST", d.api_host),
        api_port=_env_int(env, "ACS_API_PORT", d.api_port),
        enable_email=_env_bool(env, "ACS_ENABLE_EMAIL", d.enable_email),
        smtp_host=env.get("ACS_SMTP_HOST", d.smtp_host),
        smtp_port=_env_int(env, "ACS_SMTP_PORT", d.smtp_port),
        smtp_user=env.get("ACS_SMTP_USER"),
        smtp_password=env.get("ACS_SMTP_PASSWORD"),
        email_from=env.get("ACS_EMAIL_FROM"),
        email_to=env.get("ACS_EMAIL_TO"),
    )
