"""Contact, funnel and activity endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import LeadSource, LeadStage
from imobipro.schemas.activities import ActivityCreateRequest, ActivityResponse
from imobipro.schemas.common import PageResponse
from imobipro.schemas.contacts import (
    AssignmentResponse,
    ContactCreateRequest,
    ContactCreateResponse,
    ContactResponse,
    ContactStatsResponse,
    ContactUpdateRequest,
    MarkLostRequest,
    ReassignRequest,
    ReopenRequest,
    StageAdvanceRequest,
)
from imobipro.schemas.properties import PropertyResponse
from imobipro.services.activity_service import ActivityService
from imobipro.services.assignment_service import AssignmentService
from imobipro.services.contact_service import ContactService
from imobipro.services.property_service import PropertyService

router = APIRouter(prefix="/contacts", tags=["contacts"])


def _assignment_payload(result) -> AssignmentResponse | None:
    if result is None:
        return None
    return AssignmentResponse(
        status=result.status,
        contact_id=result.contact_id,
        agent_id=result.agent_id,
        agent_name=result.agent_name,
        reason=result.reason,
        candidates_considered=result.candidates_considered,
    )


@router.post("", response_model=ContactCreateResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    payload: ContactCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactCreateResponse:
    context = authorize(authorization, scopes=["contacts.write"], company_header=x_company_id)
    data = payload.model_dump(exclude={"auto_assign"}, exclude_none=True)
    contact, assignment = ContactService(db).create_contact(context, data, auto_assign=payload.auto_assign)
    return ContactCreateResponse(
        contact=ContactResponse.model_validate(contact),
        assignment=_assignment_payload(assignment),
    )


@router.get("", response_model=PageResponse)
def list_contacts(
    stage: LeadStage | None = None,
    lead_source: LeadSource | None = None,
    agent_id: int | None = None,
    min_score: int | None = Query(default=None, ge=0, le=100),
    max_score: int | None = Query(default=None, ge=0, le=100),
    search: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PageResponse:
    context = authorize(authorization, scopes=["contacts.read"], company_header=x_company_id)
    items, total = ContactService(db).list_contacts(
        context,
        stage=stage,
        lead_source=lead_source,
        agent_id=agent_id,
        min_score=min_score,
        max_score=max_score,
        search=search,
        limit=limit,
        offset=offset,
    )
    return PageResponse(
        items=[ContactResponse.model_validate(item).model_dump(mode="json") for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ContactStatsResponse)
def contact_stats(
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactStatsResponse:
    context = authorize(authorization, scopes=["contacts.read"], company_header=x_company_id)
    return ContactStatsResponse(**ContactService(db).stats(context))


@router.get("/{contact_id}", response_model=ContactResponse)
def get_contact(
    contact_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactResponse:
    context = authorize(authorization, scopes=["contacts.read"], company_header=x_company_id)
    return ContactResponse.model_validate(ContactService(db).get_contact(context, contact_id))


@router.patch("/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    payload: ContactUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactResponse:
    context = authorize(authorization, scopes=["contacts.write"], company_header=x_company_id)
    contact = ContactService(db).update_contact(context, contact_id, payload.model_dump(exclude_unset=True))
    return ContactResponse.model_validate(contact)


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(
    contact_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> Response:
    context = authorize(authorization, scopes=["contacts.delete"], company_header=x_company_id)
    ContactService(db).delete_contact(context, contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{contact_id}/stage/advance", response_model=ContactResponse)
def advance_stage(
    contact_id: int,
    payload: StageAdvanceRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactResponse:
    context = authorize(authorization, scopes=["contacts.write"], company_header=x_company_id)
    contact = ContactService(db).advance_stage(context, contact_id, target=payload.target_stage, note=payload.note)
    return ContactResponse.model_validate(contact)


@router.post("/{contact_id}/lost", response_model=ContactResponse)
def mark_lost(
    contact_id: int,
    payload: MarkLostRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactResponse:
    context = authorize(authorization, scopes=["contacts.write"], company_header=x_company_id)
    return ContactResponse.model_validate(ContactService(db).mark_lost(context, contact_id, reason=payload.reason))


@router.post("/{contact_id}/reopen", response_model=ContactResponse)
def reopen(
    contact_id: int,
    payload: ReopenRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ContactResponse:
    context = authorize(authorization, scopes=["contacts.write"], company_header=x_company_id)
    return ContactResponse.model_validate(ContactService(db).reopen(context, contact_id, note=payload.note))


@router.post("/{contact_id}/assign", response_model=AssignmentResponse)
def assign_contact(
    contact_id: int,
    payload: ReassignRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AssignmentResponse:
    """Reassign to a named agent, or run automatic assignment when none is given."""
    context = authorize(authorization, scopes=["contacts.assign"], company_header=x_company_id)
    service = AssignmentService(db)
    if payload.agent_id is not None:
        result = service.reassign_contact(context, contact_id, payload.agent_id)
    else:
        ContactService(db, assignment=service).get_contact(context, contact_id)
        result = service.assign_contact(context.company_id, contact_id, performed_by_id=context.user_id)
    return _assignment_payload(result)


@router.get("/{contact_id}/activities", response_model=PageResponse)
def list_activities(
    contact_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PageResponse:
    context = authorize(authorization, scopes=["contacts.read"], company_header=x_company_id)
    items, total = ActivityService(db).list_activities(context, contact_id, limit=limit, offset=offset)
    return PageResponse(
        items=[ActivityResponse.model_validate(item).model_dump(mode="json") for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/{contact_id}/activities", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def log_activity(
    contact_id: int,
    payload: ActivityCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ActivityResponse:
    context = authorize(authorization, scopes=["activities.write"], company_header=x_company_id)
    activity = ActivityService(db).log_activity(
        context,
        contact_id,
        payload.type,
        payload.title,
        description=payload.description,
        direction=payload.direction,
        channel=payload.channel,
        details=payload.details,
    )
    return ActivityResponse.model_validate(activity)


@router.get("/{contact_id}/matching-properties", response_model=list[PropertyResponse])
def matching_properties(
    contact_id: int,
    limit: int = Query(default=20, ge=1, le=100),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[PropertyResponse]:
    context = authorize(authorization, scopes=["contacts.read", "properties.read"], company_header=x_company_id)
    matches = PropertyService(db).match_properties_for_contact(context, contact_id, limit=limit)
    return [PropertyResponse.model_validate(item) for item in matches]
