"""Ingestion of n8n lead/activity webhooks and inbound WhatsApp messages."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, system_context
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from imobipro.core.security import verify_shared_secret
from imobipro.models.company import Company
from imobipro.models.contact import Activity, Contact
from imobipro.models.enums import ActivityDirection, ActivityType
from imobipro.schemas.webhooks import (
    N8nActivityWebhook,
    N8nBulkLeadWebhook,
    N8nLeadWebhook,
    WebhookBulkResult,
    WebhookLeadResult,
    WhatsAppInboundMessage,
)
from imobipro.services.activity_service import SYSTEM_ACTIVITY_TYPES, append_activity
from imobipro.services.base_service import BaseService
from imobipro.services.contact_service import ContactService
from imobipro.services.n8n_client import LeadEventPublisher
from imobipro.utils.ids import resolve_correlation_id
from imobipro.utils.validators import normalize_email, normalize_phone

logger = logging.getLogger(__name__)


def verify_webhook_secret(provided: str | None, config: Config | None = None) -> None:
    cfg = config or get_config()
    if not verify_shared_secret(provided, cfg.N8N_WEBHOOK_SECRET):
        raise AuthenticationError("Invalid webhook secret.")


class LeadWebhookService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        events: LeadEventPublisher | None = None,
        contacts: ContactService | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.contacts = contacts or ContactService(self.db, config=self.config, events=events)

    def resolve_company(self, company_id: int | None) -> CompanyContext:
        if company_id is None:
            raise ValidationError("X-Company-Id header is required for webhooks.")
        company = self.db.get(Company, company_id)
        if company is None or not company.is_active:
            raise NotFoundError(f"Company not found: {company_id}")
        return system_context(company.id)

    def _find_contact(self, company_id: int, email: str | None, phone: str | None) -> Contact | None:
        normalized_phone = normalize_phone(phone)
        normalized_email = normalize_email(email)
        if normalized_phone:
            found = self.db.scalars(
                select(Contact).where(Contact.company_id == company_id, Contact.phone == normalized_phone).limit(1)
            ).first()
            if found is not None:
                return found
        if normalized_email:
            return self.db.scalars(
                select(Contact).where(Contact.company_id == company_id, Contact.email == normalized_email).limit(1)
            ).first()
        return None

    def ingest_lead(self, company_id: int | None, payload: N8nLeadWebhook) -> WebhookLeadResult:
        """Create a contact from an n8n lead payload."""
        context = self.resolve_company(company_id)
        correlation_id = resolve_correlation_id(payload.correlation_id)
        source_label = payload.lead_source.value
        contact, assignment = self.contacts.create_contact(
            context,
            payload.to_contact_data(),
            auto_assign=payload.auto_assign and payload.agent_id is None,
            initial_activity=f"Lead received via {payload.webhook_source} ({source_label})",
            correlation_id=correlation_id,
        )
        logger.info(
            "webhook.lead.created",
            extra={
                "event": "webhook.lead.created",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "correlation_id": correlation_id,
                "n8n_workflow_id": payload.n8n_workflow_id,
                "n8n_execution_id": payload.n8n_execution_id,
            },
        )
        return WebhookLeadResult(
            success=True,
            contact_id=contact.id,
            lead_score=contact.lead_score,
            agent_id=contact.agent_id,
            assignment_status=assignment.status if assignment else None,
        )

    def ingest_bulk(self, company_id: int | None, payload: N8nBulkLeadWebhook) -> WebhookBulkResult:
        self.resolve_company(company_id)
        results: list[WebhookLeadResult] = []
        for index, raw in enumerate(payload.leads):
            try:
                lead = N8nLeadWebhook.model_validate(raw)
                result = self.ingest_lead(company_id, lead)
            except PydanticValidationError as exc:
                result = WebhookLeadResult(success=False, error=f"invalid payload: {exc.error_count()} error(s)")
            except (ConflictError, ValidationError) as exc:
                self.db.rollback()
                result = WebhookLeadResult(success=False, error=str(exc))
            result.index = index
            results.append(result)
            if not result.success and not payload.continue_on_error:
                break

        created = sum(1 for item in results if item.success)
        logger.info(
            "webhook.lead.bulk",
            extra={
                "event": "webhook.lead.bulk",
                "company_id": company_id,
                "received": len(payload.leads),
                "created_count": created,
            },
        )
        return WebhookBulkResult(total=len(payload.leads), created=created, failed=len(results) - created, results=results)

    def ingest_activity(self, company_id: int | None, payload: N8nActivityWebhook) -> Activity:
        context = self.resolve_company(company_id)
        if payload.type in SYSTEM_ACTIVITY_TYPES:
            raise ValidationError(f"{payload.type.value} activities are recorded automatically.")

        if payload.contact_id is not None:
            contact = self.db.get(Contact, payload.contact_id)
            if contact is not None and contact.company_id != context.company_id:
                contact = None
        else:
            contact = self._find_contact(context.company_id, payload.email, payload.phone)
        if contact is None:
            raise NotFoundError("Contact not found.")

        details: dict[str, Any] = dict(payload.details)
        details["correlation_id"] = resolve_correlation_id(payload.correlation_id)
        activity = append_activity(
            self.db,
            contact,
            payload.type,
            payload.title,
            description=payload.description,
            direction=payload.direction,
            channel=payload.channel or "n8n",
            details=details,
        )
        self.commit()
        self.db.refresh(activity)
        return activity

    def ingest_whatsapp_message(self, company_id: int | None, payload: WhatsAppInboundMessage) -> Activity:
        """Log an inbound WhatsApp message as an interaction of the matching contact."""
        context = self.resolve_company(company_id)
        contact = self._find_contact(context.company_id, None, payload.phone)
        if contact is None:
            logger.info(
                "webhook.whatsapp.unknown_sender",
                extra={"event": "webhook.whatsapp.unknown_sender", "company_id": context.company_id},
            )
            raise NotFoundError("No contact matches this phone number.")

        activity = append_activity(
            self.db,
            contact,
            ActivityType.WHATSAPP,
            "WhatsApp message received",
            description=payload.message,
            direction=ActivityDirection.INBOUND,
            channel="whatsapp",
            details={"message_id": payload.message_id, "sender_name": payload.sender_name},
            occurred_at=payload.received_at,
        )
        self.commit()
        self.db.refresh(activity)
        return activity
