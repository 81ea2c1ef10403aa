"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, from_claims
from imobipro.auth.jwt import ACCESS, decode_jwt
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import AuthenticationError
from imobipro.database.db import get_db


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    role: str
    company_id: int
    permissions_version: int
    claims: dict[str, Any]


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_db_session() -> Generator[Session, None, None]:
    """Yield SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_current_user(token: str, settings: Config | None = None) -> CurrentUser:
    """Resolve current user from an access token."""
    cfg = settings or get_settings()
    claims = decode_jwt(token=token, secret=cfg.JWT_SECRET, expected_use=ACCESS)
    if int(claims.get("permissions_version", 0)) != cfg.JWT_PERMISSIONS_VERSION:
        raise AuthenticationError("Token permissions are outdated; log in again.")

    try:
        return CurrentUser(
            user_id=int(claims["sub"]),
            role=str(claims["role"]).lower(),
            company_id=int(claims["company_id"]),
            permissions_version=int(claims.get("permissions_version", 1)),
            claims=claims,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid auth claims.") from exc


def get_company_context(user: CurrentUser, header_company_id: int | None = None) -> CompanyContext:
    """Resolve company context with the dev_master-only company override."""
    return from_claims(claims=user.claims, header_company_id=header_company_id)
