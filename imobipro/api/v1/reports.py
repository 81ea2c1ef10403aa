"""Report template, generation and schedule endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import ReportType
from imobipro.schemas.reports import (
    GenerateReportRequest,
    ReportRunResponse,
    ReportTemplateCreateRequest,
    ReportTemplateResponse,
    ReportTemplateUpdateRequest,
    ScheduleCreateRequest,
    ScheduleResponse,
    ScheduleUpdateRequest,
    TemplateValidationRequest,
    TemplateValidationResponse,
)
from imobipro.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/templates/validate", response_model=TemplateValidationResponse)
def validate_template(
    payload: TemplateValidationRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> TemplateValidationResponse:
    authorize(authorization, scopes=["reports.read"])
    result = ReportService(db).validate_template(payload.body, payload.report_type)
    return TemplateValidationResponse(
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
        variables=result.variables,
    )


@router.post("/templates", response_model=ReportTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: ReportTemplateCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ReportTemplateResponse:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    return ReportTemplateResponse.model_validate(ReportService(db).create_template(context, payload.model_dump()))


@router.get("/templates", response_model=list[ReportTemplateResponse])
def list_templates(
    report_type: ReportType | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[ReportTemplateResponse]:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    return [ReportTemplateResponse.model_validate(item) for item in ReportService(db).list_templates(context, report_type)]


@router.get("/templates/{template_id}", response_model=ReportTemplateResponse)
def get_template(
    template_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ReportTemplateResponse:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    return ReportTemplateResponse.model_validate(ReportService(db).get_template(context, template_id))


@router.patch("/templates/{template_id}", response_model=ReportTemplateResponse)
def update_template(
    template_id: int,
    payload: ReportTemplateUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ReportTemplateResponse:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    template = ReportService(db).update_template(context, template_id, payload.model_dump(exclude_unset=True))
    return ReportTemplateResponse.model_validate(template)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> Response:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    ReportService(db).delete_template(context, template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/generate", response_model=ReportRunResponse, status_code=status.HTTP_201_CREATED)
def generate_report(
    payload: GenerateReportRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ReportRunResponse:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    run = ReportService(db).generate_report(
        context,
        payload.template_id,
        period_start=payload.period_start,
        period_end=payload.period_end,
    )
    return ReportRunResponse.model_validate(run)


@router.get("/runs", response_model=list[ReportRunResponse])
def list_runs(
    template_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[ReportRunResponse]:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    runs = ReportService(db).list_runs(context, template_id=template_id, limit=limit)
    return [ReportRunResponse.model_validate(item) for item in runs]


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ScheduleResponse:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    return ScheduleResponse.model_validate(ReportService(db).schedule_report(context, payload.model_dump()))


@router.get("/schedules", response_model=list[ScheduleResponse])
def list_schedules(
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[ScheduleResponse]:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    return [ScheduleResponse.model_validate(item) for item in ReportService(db).list_schedules(context)]


@router.get("/schedules/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(
    schedule_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ScheduleResponse:
    context = authorize(authorization, scopes=["reports.read"], company_header=x_company_id)
    return ScheduleResponse.model_validate(ReportService(db).get_schedule(context, schedule_id))


@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ScheduleResponse:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    schedule = ReportService(db).update_schedule(context, schedule_id, payload.model_dump(exclude_unset=True))
    return ScheduleResponse.model_validate(schedule)


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> Response:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    ReportService(db).delete_schedule(context, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/schedules/{schedule_id}/run", response_model=ReportRunResponse)
def run_schedule_now(
    schedule_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ReportRunResponse:
    context = authorize(authorization, scopes=["reports.manage"], company_header=x_company_id)
    service = ReportService(db)
    run = service.execute_schedule(service.get_schedule(context, schedule_id))
    return ReportRunResponse.model_validate(run)
