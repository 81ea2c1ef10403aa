"""Signed session and OAuth-state tokens (HS256 JWT)."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from imobipro.core.exceptions import AuthenticationError

ACCESS = "access"
REFRESH = "refresh"
OAUTH_STATE = "oauth_state"

_HEADER = {"alg": "HS256", "typ": "JWT"}


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _segment(obj: dict[str, Any]) -> str:
    return _b64(json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8"))


def _signature(signing_input: str, secret: str) -> str:
    return _b64(hmac.new(secret.encode("utf-8"), signing_input.encode("utf-8"), hashlib.sha256).digest())


def _require_secret(secret: str) -> None:
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def encode_jwt(payload: dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Sign `payload`, filling in `iat`, `exp` and `jti` when absent."""
    _require_secret(secret)
    issued = datetime.now(timezone.utc)
    claims = {
        "iat": int(issued.timestamp()),
        "exp": int((issued + ttl).timestamp()),
        "jti": uuid.uuid4().hex,
        **payload,
    }
    signing_input = f"{_segment(_HEADER)}.{_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input, secret)}"


def decode_jwt(
    token: str,
    secret: str,
    verify_exp: bool = True,
    expected_use: str | None = None,
) -> dict[str, Any]:
    """Verify signature, expiry and optionally `token_use`; return the claims."""
    _require_secret(secret)
    parts = token.split(".") if token else []
    if len(parts) != 3:
        raise AuthenticationError("Invalid token format.")
    header_segment, payload_segment, signature = parts

    if not hmac.compare_digest(_signature(f"{header_segment}.{payload_segment}", secret), signature):
        raise AuthenticationError("Invalid token signature.")
    try:
        header = json.loads(_unb64(header_segment))
        claims = json.loads(_unb64(payload_segment))
    except (json.JSONDecodeError, ValueError) as exc:
        raise AuthenticationError("Invalid token payload.") from exc
    if header.get("alg") != "HS256" or not isinstance(claims, dict):
        raise AuthenticationError("Unsupported token.")

    if verify_exp:
        if "exp" not in claims:
            raise AuthenticationError("Token is missing exp claim.")
        if int(claims["exp"]) < int(datetime.now(timezone.utc).timestamp()):
            raise AuthenticationError("Token has expired.")
    if expected_use is not None and claims.get("token_use") != expected_use:
        raise AuthenticationError(f"Expected a {expected_use} token.")
    return claims


def _session_claims(user_id: int, company_id: int, role: str, permissions_version: int, token_use: str) -> dict[str, Any]:
    return {
        "sub": str(user_id),
        "company_id": company_id,
        "role": role,
        "permissions_version": permissions_version,
        "token_use": token_use,
    }


def create_access_token(
    user_id: int,
    company_id: int,
    role: str,
    secret: str,
    permissions_version: int = 1,
    ttl_minutes: int = 15,
) -> str:
    claims = _session_claims(user_id, company_id, role, permissions_version, ACCESS)
    return encode_jwt(claims, secret=secret, ttl=timedelta(minutes=ttl_minutes))


def create_refresh_token(
    user_id: int,
    company_id: int,
    role: str,
    secret: str,
    permissions_version: int = 1,
    ttl_days: int = 14,
) -> str:
    claims = _session_claims(user_id, company_id, role, permissions_version, REFRESH)
    return encode_jwt(claims, secret=secret, ttl=timedelta(days=ttl_days))


def create_token_pair(
    user_id: int,
    company_id: int,
    role: str,
    secret: str,
    permissions_version: int = 1,
    access_ttl_minutes: int = 15,
    refresh_ttl_days: int = 14,
) -> TokenPair:
    """Issue the access/refresh pair returned by login and refresh."""
    common = {"user_id": user_id, "company_id": company_id, "role": role, "secret": secret, "permissions_version": permissions_version}
    return TokenPair(
        access_token=create_access_token(ttl_minutes=access_ttl_minutes, **common),
        refresh_token=create_refresh_token(ttl_days=refresh_ttl_days, **common),
    )


def create_state_token(user_id: int, company_id: int, secret: str, ttl_minutes: int = 10) -> str:
    """Signed OAuth `state` value binding a calendar connect flow to a user."""
    payload = {"sub": str(user_id), "company_id": company_id, "token_use": OAUTH_STATE}
    return encode_jwt(payload, secret=secret, ttl=timedelta(minutes=ttl_minutes))


def decode_state_token(state: str, secret: str) -> dict[str, Any]:
    try:
        return decode_jwt(state, secret=secret, expected_use=OAUTH_STATE)
    except AuthenticationError as exc:
        raise AuthenticationError("Invalid OAuth state.") from exc
