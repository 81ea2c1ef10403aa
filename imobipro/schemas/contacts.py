"""Contact request/response schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from imobipro.models.enums import (
    ContactCategory,
    LeadSource,
    LeadStage,
    LeadUrgency,
    PropertyType,
    resolve_lead_source,
)


class _ContactFields(BaseModel):
    @field_validator("lead_source", mode="before", check_fields=False)
    @classmethod
    def _resolve_source(cls, value: Any) -> Any:
        return resolve_lead_source(value)


class ContactCreateRequest(_ContactFields):
    name: str = Field(min_length=2, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    category: ContactCategory = ContactCategory.LEAD
    lead_source: LeadSource | None = None
    lead_source_details: str | None = Field(default=None, max_length=500)
    budget: int | None = Field(default=None, ge=0)
    urgency: LeadUrgency | None = None
    timeline: str | None = Field(default=None, max_length=100)
    property_type: PropertyType | None = None
    preferred_location: str | None = Field(default=None, max_length=120)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=5000)
    opt_in_whatsapp: bool = False
    agent_id: int | None = None
    auto_assign: bool | None = None


class ContactUpdateRequest(_ContactFields):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    category: ContactCategory | None = None
    lead_source: LeadSource | None = None
    lead_source_details: str | None = Field(default=None, max_length=500)
    budget: int | None = Field(default=None, ge=0)
    urgency: LeadUrgency | None = None
    timeline: str | None = Field(default=None, max_length=100)
    property_type: PropertyType | None = None
    preferred_location: str | None = Field(default=None, max_length=120)
    tags: list[str] | None = None
    notes: str | None = Field(default=None, max_length=5000)
    opt_in_whatsapp: bool | None = None


class StageAdvanceRequest(BaseModel):
    target_stage: LeadStage | None = None
    note: str | None = Field(default=None, max_length=2000)


class MarkLostRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ReopenRequest(BaseModel):
    note: str | None = Field(default=None, max_length=2000)


class ReassignRequest(BaseModel):
    agent_id: int | None = None


class AssignmentResponse(BaseModel):
    status: str
    contact_id: int
    agent_id: int | None = None
    agent_name: str | None = None
    reason: str = ""
    candidates_considered: int = 0


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    agent_id: int | None = None
    name: str
    email: str | None = None
    phone: str | None = None
    category: ContactCategory
    lead_source: LeadSource | None = None
    lead_source_details: str | None = None
    budget: int | None = None
    urgency: LeadUrgency | None = None
    timeline: str | None = None
    property_type: PropertyType | None = None
    preferred_location: str | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    opt_in_whatsapp: bool = False
    interaction_count: int = 0
    stage: LeadStage
    is_qualified: bool = False
    lead_score: int = 0
    score_breakdown: dict[str, Any] = Field(default_factory=dict)
    assigned_at: datetime | None = None
    last_interaction_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContactCreateResponse(BaseModel):
    contact: ContactResponse
    assignment: AssignmentResponse | None = None


class ContactStatsResponse(BaseModel):
    total: int
    open: int
    by_stage: dict[str, int]
    average_score: float
    conversion_rate: float
