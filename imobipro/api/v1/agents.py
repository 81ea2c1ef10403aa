"""Agent workload endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.schemas.users import AgentWorkloadResponse
from imobipro.services.assignment_service import AssignmentService

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/workload", response_model=list[AgentWorkloadResponse])
def agent_workload(
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[AgentWorkloadResponse]:
    context = authorize(authorization, scopes=["agents.read"], company_header=x_company_id)
    return [AgentWorkloadResponse(**row) for row in AssignmentService(db).workload(context.company_id)]
