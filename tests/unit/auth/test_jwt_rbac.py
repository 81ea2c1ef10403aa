from __future__ import annotations

from datetime import timedelta

import pytest

from imobipro.auth.company_context import enforce_contact_access, from_claims
from imobipro.auth.jwt import create_token_pair, decode_jwt, encode_jwt
from imobipro.auth.rbac import can_manage_role, has_scopes, require_scopes
from imobipro.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from imobipro.models import Contact


def test_jwt_roundtrip_contains_required_claims():
    tokens = create_token_pair(user_id=10, company_id=20, role="admin", secret="test-secret")
    claims = decode_jwt(tokens.access_token, secret="test-secret")
    assert claims["sub"] == "10"
    assert claims["company_id"] == 20
    assert claims["role"] == "admin"
    assert "exp" in claims
    assert "iat" in claims
    assert "jti" in claims


def test_jwt_rejects_tampering_and_expiry():
    token = create_token_pair(user_id=1, company_id=1, role="agent", secret="test-secret").access_token
    with pytest.raises(AuthenticationError):
        decode_jwt(token, secret="other-secret")
    with pytest.raises(AuthenticationError):
        decode_jwt("abc.def", secret="test-secret")

    expired = encode_jwt({"sub": "1"}, secret="test-secret", ttl=timedelta(seconds=-10))
    with pytest.raises(AuthenticationError, match="expired"):
        decode_jwt(expired, secret="test-secret")


def test_rbac_blocks_missing_scope():
    require_scopes("agent", ["contacts.read"])
    with pytest.raises(AuthorizationError):
        require_scopes("agent", ["contacts.delete"])
    assert has_scopes("dev_master", ["anything.at.all"]) is True
    assert has_scopes("unknown", ["contacts.read"]) is False


def test_role_management_hierarchy():
    assert can_manage_role("dev_master", "admin") is True
    assert can_manage_role("admin", "agent") is True
    assert can_manage_role("admin", "admin") is False
    assert can_manage_role("agent", "agent") is False
    assert can_manage_role("dev_master", "dev_master") is False


def test_company_override_is_dev_master_only():
    claims = {"sub": "5", "company_id": 1, "role": "admin"}
    assert from_claims(claims).company_id == 1
    with pytest.raises(AuthorizationError):
        from_claims(claims, header_company_id=2)

    master = from_claims({"sub": "1", "company_id": 1, "role": "dev_master"}, header_company_id=2)
    assert master.company_id == 2
    with pytest.raises(AuthenticationError):
        from_claims({"sub": "1", "role": "admin"})


def test_contact_access_hides_foreign_rows():
    agent = from_claims({"sub": "5", "company_id": 1, "role": "agent"})
    own = Contact(company_id=1, agent_id=5, name="Meu")
    assert enforce_contact_access(own, agent) is own
    with pytest.raises(NotFoundError):
        enforce_contact_access(Contact(company_id=1, agent_id=6, name="Outro"), agent)
    with pytest.raises(NotFoundError):
        enforce_contact_access(Contact(company_id=2, agent_id=5, name="Outra empresa"), agent)
    with pytest.raises(NotFoundError):
        enforce_contact_access(None, agent)
