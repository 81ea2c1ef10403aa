from __future__ import annotations

import json
from dataclasses import replace

import pytest
import requests

from imobipro.core.config import get_config
from imobipro.core.exceptions import ConfigurationError, IntegrationError
from imobipro.models import Contact, LeadStage
from imobipro.services.n8n_client import LeadEventPublisher, N8nClient

HOOK_URL = "https://n8n.example.com/webhook/leads"


class _Response:
    def __init__(self, status_code: int, body: dict | None = None) -> None:
        self.status_code = status_code
        self.content = json.dumps(body).encode() if body is not None else b""
        self.text = self.content.decode()

    def json(self):
        return json.loads(self.content)


class _Session:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes, **overrides):
    config = replace(get_config(), HTTP_MAX_RETRIES=3, HTTP_BACKOFF_SECONDS=0.5, **overrides)
    session = _Session(outcomes)
    delays: list[float] = []
    return N8nClient(config=config, session=session, sleep=delays.append), session, delays


def test_post_json_returns_body_on_success():
    client, session, delays = _client([_Response(200, {"ok": True})])

    body = client.post_json(HOOK_URL, {"event": "lead.created"}, correlation_id="abc-123")

    assert body == {"ok": True}
    assert delays == []
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["json"] == {"event": "lead.created"}
    assert call["headers"]["X-Correlation-Id"] == "abc-123"
    assert call["headers"]["X-Webhook-Secret"] == "test-webhook-secret"
    assert call["timeout"] == get_config().HTTP_TIMEOUT_SECONDS


def test_retries_retryable_failures_with_exponential_backoff():
    client, session, delays = _client(
        [
            requests.exceptions.ConnectionError("refused"),
            _Response(503),
            _Response(429),
            _Response(201, {"id": "exec-1"}),
        ]
    )

    assert client.post_json(HOOK_URL, {}) == {"id": "exec-1"}
    assert len(session.calls) == 4
    assert delays == [0.5, 1.0, 2.0]


def test_client_errors_fail_without_retry():
    client, session, delays = _client([_Response(400, {"error": "bad"})])

    with pytest.raises(IntegrationError, match="HTTP 400"):
        client.post_json(HOOK_URL, {})
    assert len(session.calls) == 1
    assert delays == []


def test_gives_up_after_max_retries():
    client, session, delays = _client([_Response(500)] * 4)

    with pytest.raises(IntegrationError):
        client.post_json(HOOK_URL, {})
    assert len(session.calls) == 4
    assert len(delays) == 3


def test_missing_url_is_a_configuration_error():
    client, session, _ = _client([])
    with pytest.raises(ConfigurationError):
        client.post_json(None, {})
    assert session.calls == []


def test_send_whatsapp_normalizes_phone():
    client, session, _ = _client([_Response(200, {"messageId": "wamid.1"})], N8N_WHATSAPP_URL="https://n8n.example.com/whatsapp")

    assert client.send_whatsapp("11 98888-7777", "Olá!") == {"messageId": "wamid.1"}
    assert session.calls[0]["json"] == {"phone": "+5511988887777", "message": "Olá!", "type": "text"}


def _contact() -> Contact:
    return Contact(id=7, company_id=1, name="Maria", phone="+5511988887777", stage=LeadStage.NEW, lead_score=40, tags=[])


def test_publisher_sends_event_payload():
    client, session, _ = _client([_Response(200, {})], FEATURE_N8N_EVENTS=True, N8N_LEAD_EVENTS_URL=HOOK_URL)
    publisher = LeadEventPublisher(client=client, config=client.config)

    assert publisher.publish("lead.assigned", _contact(), changes={"agentId": 3}) is True
    payload = session.calls[0]["json"]
    assert payload["event"] == "lead.assigned"
    assert payload["data"]["leadStage"] == "NEW"
    assert payload["data"]["leadScore"] == 40
    assert payload["changes"] == {"agentId": 3}


def test_publisher_swallows_relay_failures():
    client, _, _ = _client([_Response(502)] * 4, FEATURE_N8N_EVENTS=True, N8N_LEAD_EVENTS_URL=HOOK_URL)
    publisher = LeadEventPublisher(client=client, config=client.config)

    assert publisher.publish("lead.created", _contact()) is False


def test_publisher_disabled_without_url():
    client, session, _ = _client([], FEATURE_N8N_EVENTS=True, N8N_LEAD_EVENTS_URL=None)
    publisher = LeadEventPublisher(client=client, config=client.config)

    assert publisher.enabled is False
    assert publisher.publish("lead.created", _contact()) is False
    assert session.calls == []
