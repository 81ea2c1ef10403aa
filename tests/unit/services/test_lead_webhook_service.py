from __future__ import annotations

from dataclasses import replace

import pytest
from pydantic import ValidationError as PydanticValidationError

from imobipro.core.config import get_config
from imobipro.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from imobipro.models import Activity, Contact, LeadSource, LeadUrgency, PropertyType
from imobipro.models.enums import ActivityDirection, ActivityType
from imobipro.schemas.webhooks import N8nActivityWebhook, N8nBulkLeadWebhook, N8nLeadWebhook, WhatsAppInboundMessage
from imobipro.services.lead_webhook_service import LeadWebhookService, verify_webhook_secret


def _lead(**overrides) -> N8nLeadWebhook:
    payload = {
        "name": "Maria Souza",
        "phone": "+55 11 98888-7777",
        "leadSource": "INDICACAO",
        "budget": 500000,
        "priority": "HIGH",
        "preferences": {"propertyType": "APARTMENT", "location": "Moema"},
        "autoAssign": False,
        "n8nWorkflowId": "wf-1",
    }
    payload.update(overrides)
    return N8nLeadWebhook.model_validate(payload)


def test_webhook_secret_is_checked():
    verify_webhook_secret("test-webhook-secret")
    with pytest.raises(AuthenticationError):
        verify_webhook_secret("wrong")
    with pytest.raises(AuthenticationError):
        verify_webhook_secret(None)
    with pytest.raises(AuthenticationError):
        verify_webhook_secret("anything", config=replace(get_config(), N8N_WEBHOOK_SECRET=None))


def test_lead_payload_requires_email_or_phone():
    with pytest.raises(PydanticValidationError):
        N8nLeadWebhook.model_validate({"name": "Sem Contato"})


def test_fractional_webhook_budget_rounds_up():
    assert _lead(budget=0.5).to_contact_data()["budget"] == 1
    assert _lead(budget=349_999.9).to_contact_data()["budget"] == 350_000

def test_ingest_lead_creates_scored_contact(db_session, company):
    result = LeadWebhookService(db_session).ingest_lead(company.id, _lead())

    assert result.success is True
    contact = db_session.get(Contact, result.contact_id)
    assert contact.lead_source == LeadSource.REFERRAL
    assert contact.urgency == LeadUrgency.HIGH
    assert contact.property_type == PropertyType.APARTMENT
    assert contact.preferred_location == "Moema"
    assert result.lead_score == contact.lead_score == 69
    note = db_session.query(Activity).filter_by(contact_id=contact.id).one()
    assert "n8n" in note.title


def test_ingest_lead_requires_a_known_company(db_session, company):
    service = LeadWebhookService(db_session)
    with pytest.raises(ValidationError):
        service.ingest_lead(None, _lead())
    with pytest.raises(NotFoundError):
        service.ingest_lead(company.id + 100, _lead())


def test_bulk_continues_past_bad_items(db_session, company):
    payload = N8nBulkLeadWebhook.model_validate(
        {
            "leads": [
                {"name": "Lead Um", "email": "um@example.com"},
                {"name": "Sem Canal"},
                {"name": "Lead Um Repetido", "email": "um@example.com"},
                {"name": "Lead Dois", "phone": "11 95555-4444"},
            ]
        }
    )

    result = LeadWebhookService(db_session).ingest_bulk(company.id, payload)

    assert (result.total, result.created, result.failed) == (4, 2, 2)
    assert [item.success for item in result.results] == [True, False, False, True]
    assert [item.index for item in result.results] == [0, 1, 2, 3]
    assert db_session.query(Contact).count() == 2


def test_bulk_stops_on_first_error_when_asked(db_session, company):
    payload = N8nBulkLeadWebhook.model_validate(
        {
            "leads": [{"name": "Sem Canal"}, {"name": "Lead Dois", "phone": "11 95555-4444"}],
            "continueOnError": False,
        }
    )

    result = LeadWebhookService(db_session).ingest_bulk(company.id, payload)

    assert result.created == 0
    assert len(result.results) == 1
    assert db_session.query(Contact).count() == 0


def test_ingest_activity_finds_contact_by_phone(db_session, company):
    service = LeadWebhookService(db_session)
    created = service.ingest_lead(company.id, _lead())

    activity = service.ingest_activity(
        company.id,
        N8nActivityWebhook.model_validate(
            {"phone": "5511988887777", "type": "EMAIL", "title": "E-mail de boas-vindas", "direction": "OUTBOUND"}
        ),
    )

    assert activity.contact_id == created.contact_id
    assert activity.channel == "n8n"
    assert "correlation_id" in activity.details
    with pytest.raises(ValidationError):
        service.ingest_activity(
            company.id,
            N8nActivityWebhook.model_validate({"contactId": created.contact_id, "type": "STAGE_CHANGE", "title": "x"}),
        )


def test_inbound_whatsapp_is_logged_as_interaction(db_session, company):
    service = LeadWebhookService(db_session)
    created = service.ingest_lead(company.id, _lead())

    activity = service.ingest_whatsapp_message(
        company.id,
        WhatsAppInboundMessage.model_validate({"from": "5511988887777", "message": "Ainda está disponível?"}),
    )

    assert activity.type == ActivityType.WHATSAPP
    assert activity.direction == ActivityDirection.INBOUND
    contact = db_session.get(Contact, created.contact_id)
    assert contact.interaction_count == 1

    with pytest.raises(NotFoundError):
        service.ingest_whatsapp_message(
            company.id,
            WhatsAppInboundMessage.model_validate({"from": "5521900001111", "message": "Oi"}),
        )
