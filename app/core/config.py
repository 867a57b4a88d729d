from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    database_path: str
    upload_dir: str
    cloudinary_cloud_name: str | None
    cloudinary_api_key: str | None
    cloudinary_api_secret: str | None
    cloudinary_folder: str
    parser_endpoint: str | None
    parser_api_key: str | None
    parser_timeout_s: float
    smtp_host: str | None
    smtp_port: int
    smtp_user: str | None
    smtp_password: str | None
    smtp_from: str | None
    smtp_use_tls: bool
    smtp_fallback_ssl: bool


settings = Settings(
    api_key=_get_env("API_KEY"),
    rate_limit=_get_env("RATE_LIMIT", "10/minute") or "10/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    database_path=_get_env("DATABASE_PATH", "data/ats.db") or "data/ats.db",
    upload_dir=_get_env("UPLOAD_DIR", "uploads") or "uploads",
    cloudinary_cloud_name=_get_env("CLOUDINARY_CLOUD_NAME"),
    cloudinary_api_key=_get_env("CLOUDINARY_API_KEY"),
    cloudinary_api_secret=_get_env("CLOUDINARY_API_SECRET"),
    cloudinary_folder=_get_env("CLOUDINARY_FOLDER", "ats-resumes") or "ats-resumes",
    parser_endpoint=_get_env("PARSER_ENDPOINT"),
    parser_api_key=_get_env("PARSER_API_KEY"),
    parser_timeout_s=_get_env_float("PARSER_TIMEOUT_S", 30.0),
    smtp_host=_get_env("SMTP_HOST"),
    smtp_port=_get_env_int("SMTP_PORT", 587),
    smtp_user=_get_env("SMTP_USER"),
    smtp_password=_get_env("SMTP_PASSWORD"),
    smtp_from=_get_env("SMTP_FROM"),
    smtp_use_tls=_get_env_bool("SMTP_USE_TLS", True),
    smtp_fallback_ssl=_get_env_bool("SMTP_FALLBACK_SSL", True),
)
