"""Deterministic validators and normalizers shared by services and schemas."""

from __future__ import annotations

import re
import unicodedata

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def sanitize_text(value: str | None, max_len: int = 20000) -> str:
    """Sanitize free-form content before persistence/display."""
    if value is None:
        return ""
    cleaned = str(value).replace("\x00", "").strip()
    cleaned = cleaned[:max_len]
    return cleaned


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return bool(EMAIL_PATTERN.match(value.strip()))


def normalize_email(value: str | None) -> str | None:
    cleaned = sanitize_text(value, 320).lower()
    return cleaned or None


def normalize_phone(value: str | None) -> str | None:
    """Keep digits only, preserving a leading plus sign.

    Brazilian numbers arrive as "+55 (11) 99999-0000", "5511999990000" or
    "11 99999-0000" depending on the n8n flow; all of them collapse to the
    digit string so that duplicate and WhatsApp matching compare equal.
    """
    if value is None:
        return None
    raw = str(value).strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return None
    if raw.startswith("+"):
        return f"+{digits}"
    if len(digits) in (10, 11):
        return f"+55{digits}"
    return f"+{digits}"


def is_valid_phone(value: str | None) -> bool:
    normalized = normalize_phone(value)
    if normalized is None:
        return False
    return 10 <= len(normalized) - 1 <= 15


def normalize_tag(value: str) -> str:
    """Uppercase ASCII tag used for agent specialization matching."""
    decomposed = unicodedata.normalize("NFKD", sanitize_text(value, 120))
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"\s+", "_", ascii_only.strip()).upper()


def normalize_tags(values: list[str] | tuple[str, ...] | None) -> list[str]:
    seen: list[str] = []
    for value in values or []:
        tag = normalize_tag(value)
        if tag and tag not in seen:
            seen.append(tag)
    return seen
