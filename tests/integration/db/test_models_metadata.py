from __future__ import annotations

from sqlalchemy import inspect

from imobipro.models import Base


def test_metadata_contains_company_scoped_tables():
    expected = {
        "companies",
        "users",
        "agent_profiles",
        "contacts",
        "activities",
        "properties",
        "appointments",
        "calendar_credentials",
        "report_templates",
        "scheduled_reports",
        "report_runs",
    }
    assert expected.issubset(set(Base.metadata.tables.keys()))


def test_business_tables_carry_company_id():
    for name in ("users", "contacts", "activities", "properties", "appointments", "report_templates", "report_runs"):
        assert "company_id" in Base.metadata.tables[name].columns


def test_schema_creates_on_sqlite(session_factory):
    inspector = inspect(session_factory.kw["bind"])
    assert "contacts" in inspector.get_table_names()
    unique_names = {item["name"] for item in inspector.get_unique_constraints("contacts")}
    assert "uq_contacts_company_email" in unique_names
