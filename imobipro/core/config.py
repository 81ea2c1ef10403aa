"""Configuration module for the ImobiPRO application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from imobipro.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    JWT_SECRET: str
    JWT_ACCESS_TTL_MINUTES: int
    JWT_REFRESH_TTL_DAYS: int
    JWT_PERMISSIONS_VERSION: int
    PASSWORD_PEPPER: str
    API_HOST: str
    API_PORT: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str
    DEFAULT_TIMEZONE: str
    HTTP_TIMEOUT_SECONDS: int
    HTTP_MAX_RETRIES: int
    HTTP_BACKOFF_SECONDS: float
    N8N_LEAD_EVENTS_URL: str | None
    N8N_WHATSAPP_URL: str | None
    N8N_WEBHOOK_SECRET: str | None
    GOOGLE_CLIENT_ID: str | None
    GOOGLE_CLIENT_SECRET: str | None
    GOOGLE_REDIRECT_URI: str
    SMTP_SERVER: str | None
    SMTP_PORT: int
    SMTP_USERNAME: str | None
    SMTP_PASSWORD: str | None
    SMTP_FROM_EMAIL: str
    SMTP_SANDBOX_MODE: bool
    REDIS_URL: str
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    CELERY_TASK_ALWAYS_EAGER: bool
    ASSIGNMENT_MAX_OPEN_LEADS: int
    ASSIGNMENT_MAX_DAILY_LEADS: int
    FEATURE_AUTO_ASSIGN: bool
    FEATURE_N8N_EVENTS: bool

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    config = Config(
        APP_NAME="ImobiPRO",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./imobipro.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        JWT_SECRET=os.getenv("JWT_SECRET", "change_me_jwt_secret"),
        JWT_ACCESS_TTL_MINUTES=int(os.getenv("JWT_ACCESS_TTL_MINUTES", "15")),
        JWT_REFRESH_TTL_DAYS=int(os.getenv("JWT_REFRESH_TTL_DAYS", "14")),
        JWT_PERMISSIONS_VERSION=int(os.getenv("JWT_PERMISSIONS_VERSION", "1")),
        PASSWORD_PEPPER=os.getenv("PASSWORD_PEPPER", ""),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=int(os.getenv("API_PORT", "8000")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
        DEFAULT_TIMEZONE=os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo"),
        HTTP_TIMEOUT_SECONDS=int(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
        HTTP_MAX_RETRIES=int(os.getenv("HTTP_MAX_RETRIES", "3")),
        HTTP_BACKOFF_SECONDS=float(os.getenv("HTTP_BACKOFF_SECONDS", "0.5")),
        N8N_LEAD_EVENTS_URL=os.getenv("N8N_LEAD_EVENTS_URL"),
        N8N_WHATSAPP_URL=os.getenv("N8N_WHATSAPP_URL"),
        N8N_WEBHOOK_SECRET=os.getenv("N8N_WEBHOOK_SECRET"),
        GOOGLE_CLIENT_ID=os.getenv("GOOGLE_CLIENT_ID"),
        GOOGLE_CLIENT_SECRET=os.getenv("GOOGLE_CLIENT_SECRET"),
        GOOGLE_REDIRECT_URI=os.getenv(
            "GOOGLE_REDIRECT_URI", "http://localhost:8000/api/v1/calendar/google/callback"
        ),
        SMTP_SERVER=os.getenv("SMTP_SERVER"),
        SMTP_PORT=int(os.getenv("SMTP_PORT", "587")),
        SMTP_USERNAME=os.getenv("SMTP_USERNAME"),
        SMTP_PASSWORD=os.getenv("SMTP_PASSWORD"),
        SMTP_FROM_EMAIL=os.getenv("SMTP_FROM_EMAIL", "relatorios@imobipro.app"),
        SMTP_SANDBOX_MODE=_as_bool(os.getenv("SMTP_SANDBOX_MODE"), default=True),
        REDIS_URL=redis_url,
        CELERY_BROKER_URL=os.getenv("CELERY_BROKER_URL", redis_url),
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", redis_url),
        CELERY_TASK_ALWAYS_EAGER=_as_bool(os.getenv("CELERY_TASK_ALWAYS_EAGER")),
        ASSIGNMENT_MAX_OPEN_LEADS=int(os.getenv("ASSIGNMENT_MAX_OPEN_LEADS", "50")),
        ASSIGNMENT_MAX_DAILY_LEADS=int(os.getenv("ASSIGNMENT_MAX_DAILY_LEADS", "10")),
        FEATURE_AUTO_ASSIGN=_as_bool(os.getenv("FEATURE_AUTO_ASSIGN"), default=True),
        FEATURE_N8N_EVENTS=_as_bool(os.getenv("FEATURE_N8N_EVENTS"), default=True),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.HTTP_TIMEOUT_SECONDS < 1:
        raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be >= 1.")
    if config.HTTP_MAX_RETRIES < 0:
        raise ConfigurationError("HTTP_MAX_RETRIES must be >= 0.")
    if config.HTTP_BACKOFF_SECONDS < 0:
        raise ConfigurationError("HTTP_BACKOFF_SECONDS must be >= 0.")
    if config.JWT_ACCESS_TTL_MINUTES < 1:
        raise ConfigurationError("JWT_ACCESS_TTL_MINUTES must be >= 1.")
    if config.JWT_REFRESH_TTL_DAYS < 1:
        raise ConfigurationError("JWT_REFRESH_TTL_DAYS must be >= 1.")
    if config.ASSIGNMENT_MAX_OPEN_LEADS < 1 or config.ASSIGNMENT_MAX_DAILY_LEADS < 1:
        raise ConfigurationError("Assignment caps must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    try:
        ZoneInfo(config.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown DEFAULT_TIMEZONE: {config.DEFAULT_TIMEZONE}") from exc
    if config.is_production and "change_me" in config.JWT_SECRET:
        raise ConfigurationError("Production JWT_SECRET uses placeholder value.")
    if config.is_production and "change_me" in config.DATABASE_URL.lower():
        raise ConfigurationError("Production DATABASE_URL uses placeholder credentials.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
