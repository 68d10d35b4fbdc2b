from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "https://localhost:3443",
    "http://127.0.0.1:3000",
    "https://127.0.0.1:3443",
)


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    lean_app_id: str
    lean_app_key: str
    lean_master_key: str
    lean_server_url: str
    admin_access_token: str | None
    admin_auth_disabled: bool
    rating_max_concurrency: int
    cors_origins: tuple[str, ...]


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise SettingsError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _require_url(name: str, value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SettingsError(f"Invalid URL for {name}: {value}")
    return value


def _flag_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes"}


def _positive_int_env(name: str, default: int) -> int:
    raw = _optional_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise SettingsError(f"Invalid integer for {name}: {raw}") from exc
    if value < 1:
        raise SettingsError(f"{name} must be >= 1, got {value}")
    return value


def origins_env(name: str = "CORS_ORIGINS") -> tuple[str, ...]:
    raw = _optional_env(name)
    if raw is None:
        return DEFAULT_CORS_ORIGINS
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def load_settings() -> Settings:
    lean_app_id = _require_env("LEAN_APP_ID")
    lean_app_key = _require_env("LEAN_APP_KEY")
    lean_master_key = _require_env("LEAN_MASTER_KEY")
    lean_server_url = _require_url(
        "LEAN_SERVER_URL",
        os.getenv("LEAN_SERVER_URL", "https://api.leancloud.cn").strip(),
    )
    admin_access_token = _optional_env("ADMIN_ACCESS_TOKEN")
    admin_auth_disabled = _flag_env("ADMIN_AUTH_DISABLED")
    rating_max_concurrency = _positive_int_env("RATING_MAX_CONCURRENCY", 8)
    cors_origins = origins_env()

    return Settings(
        lean_app_id=lean_app_id,
        lean_app_key=lean_app_key,
        lean_master_key=lean_master_key,
        lean_server_url=lean_server_url,
        admin_access_token=admin_access_token,
        admin_auth_disabled=admin_auth_disabled,
        rating_max_concurrency=rating_max_concurrency,
        cors_origins=cors_origins,
    )
