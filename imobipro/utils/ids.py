"""Identifier generation helpers."""

from __future__ import annotations

import uuid


def new_correlation_id() -> str:
    """Create a UUID4-based correlation identifier for outbound calls."""
    return str(uuid.uuid4())


def resolve_correlation_id(value: str | None) -> str:
    """Keep a caller supplied correlation id or mint a new one."""
    cleaned = (value or "").strip()
    return cleaned[:64] if cleaned else new_correlation_id()
