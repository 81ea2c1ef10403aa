"""Outbound HTTP relay to n8n workflows (lead events and WhatsApp)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import requests

from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConfigurationError, IntegrationError
from imobipro.models.contact import Contact
from imobipro.services.http_client import backoff_delay, json_body, send_with_retries
from imobipro.utils.ids import resolve_correlation_id
from imobipro.utils.validators import normalize_phone

logger = logging.getLogger(__name__)


class N8nClient:
    """POST JSON to n8n webhooks with fixed exponential backoff."""

    def __init__(
        self,
        config: Config | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or get_config()
        self.session = session or requests.Session()
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return backoff_delay(self.config, attempt)

    def post_json(self, url: str | None, payload: dict[str, Any], correlation_id: str | None = None) -> dict[str, Any]:
        if not url:
            raise ConfigurationError("n8n webhook URL is not configured.")

        correlation = resolve_correlation_id(correlation_id)
        headers = {"Content-Type": "application/json", "X-Correlation-Id": correlation}
        if self.config.N8N_WEBHOOK_SECRET:
            headers["X-Webhook-Secret"] = self.config.N8N_WEBHOOK_SECRET

        response = send_with_retries(
            self.session,
            "POST",
            url,
            config=self.config,
            sleep=self._sleep,
            integration="n8n",
            correlation_id=correlation,
            json=payload,
            headers=headers,
        )
        return json_body(response)

    def send_whatsapp(self, phone: str, message: str, correlation_id: str | None = None) -> dict[str, Any]:
        """Ask the WhatsApp workflow to deliver a text message."""
        normalized = normalize_phone(phone)
        if normalized is None:
            raise IntegrationError("WhatsApp recipient has no usable phone number.")
        payload = {"phone": normalized, "message": message, "type": "text"}
        return self.post_json(self.config.N8N_WHATSAPP_URL, payload, correlation_id=correlation_id)


def serialize_contact(contact: Contact) -> dict[str, Any]:
    return {
        "id": contact.id,
        "companyId": contact.company_id,
        "name": contact.name,
        "email": contact.email,
        "phone": contact.phone,
        "leadStage": contact.stage.value,
        "leadScore": contact.lead_score,
        "leadSource": contact.lead_source.value if contact.lead_source else None,
        "budget": contact.budget,
        "urgency": contact.urgency.value if contact.urgency else None,
        "tags": list(contact.tags or []),
        "isQualified": contact.is_qualified,
        "agentId": contact.agent_id,
    }


class LeadEventPublisher:
    """Best-effort relay of lead lifecycle events.

    Events are sent after the change is committed; a failed relay is logged
    and never undoes the change.
    """

    def __init__(self, client: N8nClient | None = None, config: Config | None = None) -> None:
        self.config = config or get_config()
        self.client = client or N8nClient(config=self.config)

    @property
    def enabled(self) -> bool:
        return bool(self.config.FEATURE_N8N_EVENTS and self.config.N8N_LEAD_EVENTS_URL)

    def publish(
        self,
        event: str,
        contact: Contact,
        changes: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> bool:
        if not self.enabled:
            logger.debug("n8n.event.skipped", extra={"event": "n8n.event.skipped", "lead_event": event})
            return False

        payload: dict[str, Any] = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": serialize_contact(contact),
        }
        if changes:
            payload["changes"] = changes
        try:
            self.client.post_json(self.config.N8N_LEAD_EVENTS_URL, payload, correlation_id=correlation_id)
        except IntegrationError:
            logger.warning(
                "n8n.event.relay_failed",
                extra={"event": "n8n.event.relay_failed", "lead_event": event, "contact_id": contact.id},
            )
            return False
        logger.info(
            "n8n.event.sent",
            extra={"event": "n8n.event.sent", "lead_event": event, "contact_id": contact.id},
        )
        return True
