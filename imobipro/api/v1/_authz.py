"""Shared authorization helpers for API v1 route modules."""

from __future__ import annotations

from imobipro.auth.company_context import CompanyContext
from imobipro.auth.rbac import require_scopes
from imobipro.core.config import get_config
from imobipro.core.dependencies import get_company_context, get_current_user
from imobipro.core.exceptions import AuthenticationError, ValidationError


def _extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def authorize(
    authorization: str | None,
    scopes: list[str],
    company_header: str | None = None,
) -> CompanyContext:
    """Authenticate the bearer token, check scopes and resolve the company context."""
    token = _extract_bearer_token(authorization)
    user = get_current_user(token=token, settings=get_config())
    require_scopes(user.role, scopes)
    header_company_id = None
    if company_header is not None and company_header.strip():
        try:
            header_company_id = int(company_header)
        except ValueError as exc:
            raise ValidationError("X-Company-Id must be an integer.") from exc
    return get_company_context(user, header_company_id=header_company_id)
