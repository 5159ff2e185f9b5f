"""Runtime configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class AppSettings:
    """Environment-backed settings for the capture pipeline, worker and web app."""

    database_url: str
    backend_url: str
    backend_anon_key: str
    backend_access_token: str | None
    storage_bucket: str
    work_offline: bool
    location_stamping: bool
    ai_photo_limit: int
    thumbnail_max_dimension: int
    signed_url_ttl_seconds: int
    summary_timeout_seconds: float
    upload_settle_seconds: float
    upload_poll_seconds: float
    label_timeout_seconds: float
    draft_debounce_seconds: float
    sync_interval_seconds: int


DEFAULT_DATABASE_URL = "sqlite:///fieldreport.db"
DEFAULT_BACKEND_URL = "http://localhost:54321"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {value}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float for {name}: {value}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {value}")


def load_settings() -> AppSettings:
    """Load all app settings from the environment."""
    return AppSettings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        backend_url=os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/"),
        backend_anon_key=os.getenv("BACKEND_ANON_KEY", ""),
        backend_access_token=os.getenv("BACKEND_ACCESS_TOKEN") or None,
        storage_bucket=os.getenv("STORAGE_BUCKET", "media"),
        work_offline=_env_bool("WORK_OFFLINE", False),
        location_stamping=_env_bool("LOCATION_STAMPING", True),
        ai_photo_limit=_env_int("AI_PHOTO_LIMIT", 25),
        thumbnail_max_dimension=_env_int("THUMBNAIL_MAX_DIMENSION", 512),
        signed_url_ttl_seconds=_env_int("SIGNED_URL_TTL_SECONDS", 3600),
        summary_timeout_seconds=_env_float("SUMMARY_TIMEOUT_SECONDS", 90.0),
        upload_settle_seconds=_env_float("UPLOAD_SETTLE_SECONDS", 15.0),
        upload_poll_seconds=_env_float("UPLOAD_POLL_SECONDS", 0.3),
        label_timeout_seconds=_env_float("LABEL_TIMEOUT_SECONDS", 30.0),
        draft_debounce_seconds=_env_float("DRAFT_DEBOUNCE_SECONDS", 2.0),
        sync_interval_seconds=_env_int("SYNC_INTERVAL_SECONDS", 60),
    )
