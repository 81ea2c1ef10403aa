"""Inbound n8n and WhatsApp webhook payloads.

Field names follow the camelCase JSON produced by the n8n flows; snake_case
names are accepted too.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from imobipro.models.enums import ActivityDirection, ActivityType, LeadSource, LeadUrgency, PropertyType, resolve_lead_source

MAX_BULK_LEADS = 100


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LeadPreferences(_CamelModel):
    property_type: PropertyType | None = Field(default=None, alias="propertyType")
    location: str | None = Field(default=None, max_length=120)
    bedrooms: int | None = Field(default=None, ge=0)
    min_price: float | None = Field(default=None, ge=0, alias="minPrice")
    max_price: float | None = Field(default=None, ge=0, alias="maxPrice")


class N8nLeadWebhook(_CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, min_length=10, max_length=32)
    lead_source: LeadSource = Field(default=LeadSource.N8N_AUTOMATION, alias="leadSource")
    lead_source_details: str | None = Field(default=None, max_length=500, alias="leadSourceDetails")
    budget: float | None = Field(default=None, gt=0)
    timeline: str | None = Field(default=None, max_length=100)
    priority: LeadUrgency | None = None
    preferences: LeadPreferences | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=5000)
    opt_in_whatsapp: bool = Field(default=False, alias="optInWhatsApp")
    agent_id: int | None = Field(default=None, alias="agentId")
    auto_assign: bool = Field(default=True, alias="autoAssign")
    n8n_workflow_id: str | None = Field(default=None, alias="n8nWorkflowId")
    n8n_execution_id: str | None = Field(default=None, alias="n8nExecutionId")
    webhook_source: str = Field(default="n8n", alias="webhookSource")
    correlation_id: str | None = Field(default=None, alias="correlationId")
    custom_fields: dict[str, Any] = Field(default_factory=dict, alias="customFields")

    @field_validator("lead_source", mode="before")
    @classmethod
    def _resolve_source(cls, value: Any) -> Any:
        return resolve_lead_source(value) or LeadSource.N8N_AUTOMATION

    @model_validator(mode="after")
    def _require_channel(self) -> "N8nLeadWebhook":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required.")
        return self

    def to_contact_data(self) -> dict[str, Any]:
        preferences = self.preferences or LeadPreferences()
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "lead_source": self.lead_source,
            "lead_source_details": self.lead_source_details,
            "budget": math.ceil(self.budget) if self.budget is not None else None,
            "urgency": self.priority,
            "timeline": self.timeline,
            "property_type": preferences.property_type,
            "preferred_location": preferences.location,
            "tags": self.tags,
            "notes": self.notes,
            "opt_in_whatsapp": self.opt_in_whatsapp,
            "agent_id": self.agent_id,
        }


class N8nBulkLeadWebhook(_CamelModel):
    # Items are validated one by one so a bad item does not reject the batch.
    leads: list[dict[str, Any]] = Field(min_length=1, max_length=MAX_BULK_LEADS)
    continue_on_error: bool = Field(default=True, alias="continueOnError")


class N8nActivityWebhook(_CamelModel):
    contact_id: int | None = Field(default=None, alias="contactId")
    email: str | None = None
    phone: str | None = None
    type: ActivityType
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    direction: ActivityDirection | None = None
    channel: str | None = Field(default=None, max_length=40)
    details: dict[str, Any] = Field(default_factory=dict)
    correlation_id: str | None = Field(default=None, alias="correlationId")

    @model_validator(mode="after")
    def _require_lookup(self) -> "N8nActivityWebhook":
        if self.contact_id is None and not self.email and not self.phone:
            raise ValueError("contactId, email or phone is required to locate the contact.")
        return self


class WhatsAppInboundMessage(_CamelModel):
    phone: str = Field(min_length=10, max_length=32, alias="from")
    message: str = Field(min_length=1, max_length=4096)
    sender_name: str | None = Field(default=None, max_length=100, alias="senderName")
    message_id: str | None = Field(default=None, max_length=120, alias="messageId")
    received_at: datetime | None = Field(default=None, alias="timestamp")


class WebhookLeadResult(BaseModel):
    index: int | None = None
    success: bool
    contact_id: int | None = None
    lead_score: int | None = None
    agent_id: int | None = None
    assignment_status: str | None = None
    error: str | None = None


class WebhookBulkResult(BaseModel):
    total: int
    created: int
    failed: int
    results: list[WebhookLeadResult]


class WhatsAppSendRequest(BaseModel):
    contact_id: int
    message: str = Field(min_length=1, max_length=4096)
