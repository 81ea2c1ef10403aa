"""Sales pipeline (deal) endpoints for API v1."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import DealStage, DealStatus
from imobipro.schemas.common import PageResponse
from imobipro.schemas.deals import (
    DealCloseRequest,
    DealCreateRequest,
    DealMoveRequest,
    DealResponse,
    DealStageChangeResponse,
    DealUpdateRequest,
    PipelineMetricsResponse,
    StageConfigResponse,
)
from imobipro.services.deal_service import STAGE_CONFIGS, DealService
from imobipro.services.state_machine import DEAL_PIPELINE, PIPELINE_ORDER

router = APIRouter(prefix="/deals", tags=["deals"])


@router.post("", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
def create_deal(
    payload: DealCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    deal = DealService(db).create_deal(context, payload.model_dump(exclude_none=True))
    return DealResponse.model_validate(deal)


@router.get("", response_model=PageResponse)
def list_deals(
    stage: DealStage | None = None,
    deal_status: DealStatus | None = Query(default=None, alias="status"),
    agent_id: int | None = None,
    contact_id: int | None = None,
    min_value: int | None = Query(default=None, ge=0),
    max_value: int | None = Query(default=None, ge=0),
    search: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PageResponse:
    context = authorize(authorization, scopes=["deals.read"], company_header=x_company_id)
    items, total = DealService(db).list_deals(
        context,
        stage=stage,
        status=deal_status,
        agent_id=agent_id,
        contact_id=contact_id,
        min_value=min_value,
        max_value=max_value,
        search=search,
        limit=limit,
        offset=offset,
    )
    return PageResponse(
        items=[DealResponse.model_validate(item).model_dump(mode="json") for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stages", response_model=list[StageConfigResponse])
def list_stages(
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
) -> list[StageConfigResponse]:
    """Pipeline columns in board order, LOST last."""
    authorize(authorization, scopes=["deals.read"], company_header=x_company_id)
    return [
        StageConfigResponse(
            stage=stage,
            label=STAGE_CONFIGS[stage].label,
            min_probability=STAGE_CONFIGS[stage].min_probability,
            max_probability=STAGE_CONFIGS[stage].max_probability,
            default_probability=STAGE_CONFIGS[stage].default_probability,
            next_stages=sorted(DEAL_PIPELINE.allowed_targets(stage), key=lambda item: item.value),
            automations=list(STAGE_CONFIGS[stage].automations),
        )
        for stage in (*PIPELINE_ORDER, DealStage.LOST)
    ]


@router.get("/metrics", response_model=PipelineMetricsResponse)
def pipeline_metrics(
    agent_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PipelineMetricsResponse:
    context = authorize(authorization, scopes=["deals.read"], company_header=x_company_id)
    metrics = DealService(db).pipeline_metrics(context, agent_id=agent_id, start=start, end=end)
    return PipelineMetricsResponse(**metrics)


@router.get("/{deal_id}", response_model=DealResponse)
def get_deal(
    deal_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.read"], company_header=x_company_id)
    return DealResponse.model_validate(DealService(db).get_deal(context, deal_id))


@router.patch("/{deal_id}", response_model=DealResponse)
def update_deal(
    deal_id: int,
    payload: DealUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    deal = DealService(db).update_deal(context, deal_id, payload.model_dump(exclude_unset=True))
    return DealResponse.model_validate(deal)


@router.delete("/{deal_id}", response_model=DealResponse)
def cancel_deal(
    deal_id: int,
    reason: str | None = Query(default=None, max_length=500),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    """Cancel the deal; it stays readable with status CANCELLED."""
    context = authorize(authorization, scopes=["deals.delete"], company_header=x_company_id)
    return DealResponse.model_validate(DealService(db).cancel_deal(context, deal_id, reason=reason))


@router.post("/{deal_id}/move", response_model=DealResponse)
def move_deal(
    deal_id: int,
    payload: DealMoveRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    deal = DealService(db).move_deal(
        context,
        deal_id,
        target=payload.target_stage,
        reason=payload.reason,
        probability=payload.probability,
    )
    return DealResponse.model_validate(deal)


@router.post("/{deal_id}/won", response_model=DealResponse)
def mark_won(
    deal_id: int,
    payload: DealCloseRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    return DealResponse.model_validate(DealService(db).mark_won(context, deal_id, note=payload.reason))


@router.post("/{deal_id}/lost", response_model=DealResponse)
def mark_lost(
    deal_id: int,
    payload: DealCloseRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    return DealResponse.model_validate(DealService(db).mark_lost(context, deal_id, reason=payload.reason))


@router.post("/{deal_id}/reopen", response_model=DealResponse)
def reopen_deal(
    deal_id: int,
    payload: DealCloseRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> DealResponse:
    context = authorize(authorization, scopes=["deals.write"], company_header=x_company_id)
    return DealResponse.model_validate(DealService(db).reopen_deal(context, deal_id, note=payload.reason))


@router.get("/{deal_id}/history", response_model=list[DealStageChangeResponse])
def stage_history(
    deal_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[DealStageChangeResponse]:
    context = authorize(authorization, scopes=["deals.read"], company_header=x_company_id)
    return [DealStageChangeResponse.model_validate(item) for item in DealService(db).stage_history(context, deal_id)]
