"""Startup validation and bootstrap helpers."""

from __future__ import annotations

import logging

from imobipro.core.config import Config, get_config
from imobipro.core.logging_config import configure_logging
from imobipro.database.db import get_active_database_url, verify_database_connection

logger = logging.getLogger(__name__)


def _integration_warnings(config: Config) -> list[str]:
    warnings: list[str] = []
    if not config.N8N_WEBHOOK_SECRET:
        warnings.append("startup.n8n.webhook_secret_missing")
    if config.FEATURE_N8N_EVENTS and not config.N8N_LEAD_EVENTS_URL:
        warnings.append("startup.n8n.events_url_missing")
    if not (config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET):
        warnings.append("startup.google_calendar.credentials_missing")
    if not config.SMTP_SANDBOX_MODE and not config.SMTP_SERVER:
        warnings.append("startup.smtp.server_missing")
    return warnings


def validate_startup_config() -> None:
    """Fail-fast config and connectivity checks."""
    config = get_config()
    database_ok = verify_database_connection()
    active_database_url = get_active_database_url()
    if not database_ok and config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    if not database_ok:
        logger.warning(
            "startup.database.connectivity_optional_failed",
            extra={"event": "startup.database.connectivity_optional_failed"},
        )

    if config.is_production and active_database_url.startswith("sqlite"):
        logger.warning(
            "startup.production.sqlite_detected",
            extra={"event": "startup.production.sqlite_detected"},
        )

    for event in _integration_warnings(config):
        logger.warning(event, extra={"event": event})

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_url_scheme": active_database_url.split("://", 1)[0],
            "db_connectivity_required": config.DB_CONNECTIVITY_REQUIRED,
            "auto_assign_enabled": config.FEATURE_AUTO_ASSIGN,
        },
    )


def bootstrap() -> None:
    """Initialize logging and validate runtime configuration."""
    configure_logging()
    validate_startup_config()
