from __future__ import annotations

SECRET = {"X-Webhook-Secret": "test-webhook-secret"}


def _lead(**overrides):
    payload = {
        "name": "Maria Souza",
        "phone": "+55 11 98888-7777",
        "leadSource": "INDICACAO",
        "budget": 500000,
        "priority": "HIGH",
        "autoAssign": False,
    }
    payload.update(overrides)
    return payload


def test_wrong_secret_is_rejected(client, company):
    response = client.post(
        "/api/v1/webhooks/n8n/leads",
        json=_lead(),
        headers={"X-Webhook-Secret": "nope", "X-Company-Id": str(company.id)},
    )
    assert response.status_code == 401
    assert response.json()["error_code"] == "authentication_error"


def test_lead_webhook_creates_contact(client, company):
    response = client.post(
        "/api/v1/webhooks/n8n/leads",
        json=_lead(),
        headers={**SECRET, "X-Company-Id": str(company.id)},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["success"] is True
    assert body["contact_id"] is not None
    assert body["lead_score"] > 0


def test_lead_webhook_needs_company_header(client, company):
    response = client.post("/api/v1/webhooks/n8n/leads", json=_lead(), headers=SECRET)
    assert response.status_code == 422


def test_bulk_webhook_reports_partial_failures(client, company):
    response = client.post(
        "/api/v1/webhooks/n8n/leads/bulk",
        json={"leads": [_lead(), {"name": "Sem Canal"}, _lead(name="Outra Pessoa", phone="11 95555-4444")]},
        headers={**SECRET, "X-Company-Id": str(company.id)},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["total"] == 3
    assert body["created"] == 2
    assert body["failed"] == 1


def test_inbound_whatsapp_message_is_logged(client, company):
    headers = {**SECRET, "X-Company-Id": str(company.id)}
    client.post("/api/v1/webhooks/n8n/leads", json=_lead(), headers=headers)

    response = client.post(
        "/api/v1/webhooks/whatsapp/messages",
        json={"from": "5511988887777", "message": "Ainda está disponível?"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    assert response.json()["type"] == "WHATSAPP"
