from __future__ import annotations

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["N8N_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["N8N_LEAD_EVENTS_URL"] = ""
os.environ["FEATURE_N8N_EVENTS"] = "false"
os.environ["FEATURE_AUTO_ASSIGN"] = "false"
os.environ["SMTP_SANDBOX_MODE"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from imobipro.auth.company_context import CompanyContext
from imobipro.auth.jwt import create_access_token
from imobipro.core.config import get_config
from imobipro.core.security import hash_password
from imobipro.database.db import enable_sqlite_foreign_keys
from imobipro.models import AgentProfile, Base, Company, User, UserRole

ALWAYS_ON = {"working_days": [0, 1, 2, 3, 4, 5, 6], "work_start": time(0, 0), "work_end": time(0, 0)}


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def company(db_session):
    row = Company(slug="imobiliaria-teste", name="Imobiliária Teste", timezone="America/Sao_Paulo")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def make_user(db_session, company):
    """Insert a user directly; agents get an always-on profile unless overridden."""

    def _make(email: str, role: UserRole = UserRole.AGENT, full_name: str | None = None, password: str = "secret123", **profile):
        user = User(
            company_id=company.id,
            email=email,
            full_name=full_name or email.split("@")[0].title(),
            hashed_password=hash_password(password, pepper=get_config().PASSWORD_PEPPER),
            role=role,
        )
        if role == UserRole.AGENT:
            settings = {"timezone": "America/Sao_Paulo", "specializations": [], **ALWAYS_ON}
            settings.update(profile)
            user.agent_profile = AgentProfile(**settings)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@imobiliaria.test", role=UserRole.ADMIN, full_name="Ana Admin")


@pytest.fixture
def agent(make_user):
    return make_user("bruno@imobiliaria.test", full_name="Bruno Corretor")


@pytest.fixture
def other_agent(make_user):
    return make_user("carla@imobiliaria.test", full_name="Carla Corretora")


@pytest.fixture
def admin_context(admin):
    return CompanyContext(company_id=admin.company_id, user_id=admin.id, role=UserRole.ADMIN.value)


@pytest.fixture
def agent_context(agent):
    return CompanyContext(company_id=agent.company_id, user_id=agent.id, role=UserRole.AGENT.value)


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        cfg = get_config()
        token = create_access_token(
            user_id=user.id,
            company_id=user.company_id,
            role=user.role.value,
            secret=cfg.JWT_SECRET,
            permissions_version=cfg.JWT_PERMISSIONS_VERSION,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from imobipro.core.dependencies import get_db_session
    from imobipro.main import app

    def _override():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _override
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
