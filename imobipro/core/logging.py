"""Structured logging helpers for request and task scoped events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Normalized context fields expected in structured logs."""

    company_id: int | None = None
    user_id: int | None = None
    contact_id: int | None = None
    correlation_id: str | None = None
    task_name: str | None = None


def build_log_event(event: str, context: LogContext, **fields: Any) -> dict[str, Any]:
    """Build a normalized structured log payload."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "company_id": context.company_id,
        "user_id": context.user_id,
        "contact_id": context.contact_id,
        "correlation_id": context.correlation_id,
        "task_name": context.task_name,
    }
    payload.update(fields)
    return payload
