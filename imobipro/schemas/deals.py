"""Deal (sales pipeline) request/response schemas for API contracts."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from imobipro.models.enums import DealStage, DealStatus


class DealCreateRequest(BaseModel):
    contact_id: int = Field(ge=1)
    title: str | None = Field(default=None, max_length=200)
    value: int = Field(default=0, ge=0)
    stage: DealStage = DealStage.LEAD_IN
    probability: int | None = Field(default=None, ge=0, le=100)
    agent_id: int | None = None
    property_id: int | None = None
    expected_close_date: date | None = None
    next_action: str | None = Field(default=None, max_length=255)
    next_action_date: date | None = None
    notes: str | None = Field(default=None, max_length=5000)


class DealUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    value: int | None = Field(default=None, ge=0)
    probability: int | None = Field(default=None, ge=0, le=100)
    agent_id: int | None = None
    property_id: int | None = None
    expected_close_date: date | None = None
    next_action: str | None = Field(default=None, max_length=255)
    next_action_date: date | None = None
    notes: str | None = Field(default=None, max_length=5000)


class DealMoveRequest(BaseModel):
    target_stage: DealStage | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    reason: str | None = Field(default=None, max_length=2000)


class DealCloseRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class DealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    contact_id: int
    agent_id: int | None = None
    property_id: int | None = None
    title: str
    value: int
    stage: DealStage
    status: DealStatus
    probability: int
    weighted_value: float
    stage_entered_at: datetime
    expected_close_date: date | None = None
    closed_at: datetime | None = None
    lost_reason: str | None = None
    next_action: str | None = None
    next_action_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DealStageChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deal_id: int
    from_stage: DealStage | None = None
    to_stage: DealStage
    reason: str | None = None
    days_in_previous_stage: int | None = None
    changed_by_id: int | None = None
    changed_at: datetime


class PipelineMetricsResponse(BaseModel):
    total_deals: int
    total_value: int
    average_deal_value: float
    conversion_rate: float
    win_rate: float
    deals_by_stage: dict[str, int]
    value_by_stage: dict[str, int]
    projected_revenue: float
    monthly_closed_deals: int
    monthly_revenue: int
    average_cycle_days: float
    average_days_in_stage: dict[str, float]


class StageConfigResponse(BaseModel):
    stage: DealStage
    label: str
    min_probability: int
    max_probability: int
    default_probability: int
    next_stages: list[DealStage]
    automations: list[str]
