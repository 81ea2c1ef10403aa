"""Seed a demo agency with an admin, two agents, listings and a few leads."""

import sys
from datetime import time
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import select

from imobipro.auth.company_context import CompanyContext
from imobipro.core.exceptions import ConflictError
from imobipro.core.startup import bootstrap
from imobipro.database.db import get_db_session
from imobipro.models import Company, LeadSource, LeadUrgency, PropertyType, UserRole
from imobipro.services.contact_service import ContactService
from imobipro.services.property_service import PropertyService
from imobipro.services.user_service import UserService

DEMO_SLUG = "imobiliaria-demo"
DEMO_PASSWORD = "demo-password-123"


def seed_demo() -> None:
    bootstrap()
    with get_db_session() as db:
        company = db.scalars(select(Company).where(Company.slug == DEMO_SLUG)).first()
        if company is not None:
            print(f"Demo company already exists (id {company.id}).")
            return

        company = Company(slug=DEMO_SLUG, name="Imobiliária Demo", timezone="America/Sao_Paulo")
        db.add(company)
        db.commit()
        print(f"Seeded company: {company.name} (id {company.id})")

        master = CompanyContext(company_id=company.id, user_id=None, role=UserRole.DEV_MASTER.value)
        users = UserService(db)
        admin = users.create_user(
            master,
            {"email": "admin@demo.imobipro.app", "full_name": "Ana Administradora", "password": DEMO_PASSWORD, "role": UserRole.ADMIN},
        )
        agents = [
            users.create_user(
                master,
                {
                    "email": "carlos@demo.imobipro.app",
                    "full_name": "Carlos Corretor",
                    "password": DEMO_PASSWORD,
                    "role": UserRole.AGENT,
                    "agent_profile": {"specializations": ["APARTMENT", "MOEMA"]},
                },
            ),
            users.create_user(
                master,
                {
                    "email": "beatriz@demo.imobipro.app",
                    "full_name": "Beatriz Corretora",
                    "password": DEMO_PASSWORD,
                    "role": UserRole.AGENT,
                    "agent_profile": {"work_start": time(8, 0), "work_end": time(20, 0), "working_days": [0, 1, 2, 3, 4, 5]},
                },
            ),
        ]
        print(f"Seeded users: {admin.email}, " + ", ".join(agent.email for agent in agents))

        admin_context = CompanyContext(company_id=company.id, user_id=admin.id, role=UserRole.ADMIN.value)
        properties = PropertyService(db)
        for code, title, kind, price, neighborhood in (
            ("AP-001", "Apartamento 3 quartos em Moema", PropertyType.APARTMENT, 850_000, "Moema"),
            ("CA-002", "Casa com quintal na Granja Viana", PropertyType.HOUSE, 1_200_000, "Granja Viana"),
            ("SL-003", "Sala comercial na Paulista", PropertyType.COMMERCIAL, 450_000, "Bela Vista"),
        ):
            properties.create_property(
                admin_context,
                {
                    "code": code,
                    "title": title,
                    "property_type": kind,
                    "price": price,
                    "city": "São Paulo",
                    "neighborhood": neighborhood,
                    "agent_id": agents[0].id,
                },
            )
        print("Seeded 3 properties.")

        contacts = ContactService(db)
        for name, email, phone, source, budget, urgency in (
            ("Mariana Souza", "mariana@example.com", "11987654321", LeadSource.REFERRAL, 900_000, LeadUrgency.HIGH),
            ("João Lima", "joao@example.com", "11912345678", LeadSource.WEBSITE, 400_000, LeadUrgency.MEDIUM),
            ("Paula Reis", None, "21998877665", LeadSource.INSTAGRAM, None, LeadUrgency.LOW),
        ):
            try:
                contact, assignment = contacts.create_contact(
                    admin_context,
                    {
                        "name": name,
                        "email": email,
                        "phone": phone,
                        "lead_source": source,
                        "budget": budget,
                        "urgency": urgency,
                        "property_type": PropertyType.APARTMENT,
                    },
                    auto_assign=True,
                )
            except ConflictError as exc:
                print(f"Skipped {name}: {exc}")
                continue
            status = assignment.status if assignment else "manual"
            print(f"Seeded contact: {contact.name} score={contact.lead_score} assignment={status}")

        print(f"Done. Log in as admin@demo.imobipro.app / {DEMO_PASSWORD}")


if __name__ == "__main__":
    seed_demo()
