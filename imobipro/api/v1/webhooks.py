"""Inbound n8n and WhatsApp webhook endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from imobipro.core.dependencies import get_db_session
from imobipro.core.exceptions import ValidationError
from imobipro.schemas.activities import ActivityResponse
from imobipro.schemas.webhooks import (
    N8nActivityWebhook,
    N8nBulkLeadWebhook,
    N8nLeadWebhook,
    WebhookBulkResult,
    WebhookLeadResult,
    WhatsAppInboundMessage,
)
from imobipro.services.lead_webhook_service import LeadWebhookService, verify_webhook_secret

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _company_id(header: str | None) -> int | None:
    if header is None or not header.strip():
        return None
    try:
        return int(header)
    except ValueError as exc:
        raise ValidationError("X-Company-Id must be an integer.") from exc


@router.post("/n8n/leads", response_model=WebhookLeadResult, status_code=status.HTTP_201_CREATED)
def receive_lead(
    payload: N8nLeadWebhook,
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> WebhookLeadResult:
    verify_webhook_secret(x_webhook_secret)
    return LeadWebhookService(db).ingest_lead(_company_id(x_company_id), payload)


@router.post("/n8n/leads/bulk", response_model=WebhookBulkResult)
def receive_leads_bulk(
    payload: N8nBulkLeadWebhook,
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> WebhookBulkResult:
    verify_webhook_secret(x_webhook_secret)
    return LeadWebhookService(db).ingest_bulk(_company_id(x_company_id), payload)


@router.post("/n8n/activities", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def receive_activity(
    payload: N8nActivityWebhook,
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ActivityResponse:
    verify_webhook_secret(x_webhook_secret)
    activity = LeadWebhookService(db).ingest_activity(_company_id(x_company_id), payload)
    return ActivityResponse.model_validate(activity)


@router.post("/whatsapp/messages", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def receive_whatsapp_message(
    payload: WhatsAppInboundMessage,
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ActivityResponse:
    verify_webhook_secret(x_webhook_secret)
    activity = LeadWebhookService(db).ingest_whatsapp_message(_company_id(x_company_id), payload)
    return ActivityResponse.model_validate(activity)
