"""Property listing endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import PropertyStatus, PropertyType
from imobipro.schemas.common import PageResponse
from imobipro.schemas.contacts import ContactResponse
from imobipro.schemas.properties import PropertyCreateRequest, PropertyResponse, PropertyUpdateRequest
from imobipro.services.property_service import PropertyService

router = APIRouter(prefix="/properties", tags=["properties"])


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
def create_property(
    payload: PropertyCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PropertyResponse:
    context = authorize(authorization, scopes=["properties.write"], company_header=x_company_id)
    return PropertyResponse.model_validate(PropertyService(db).create_property(context, payload.model_dump()))


@router.get("", response_model=PageResponse)
def list_properties(
    status_filter: PropertyStatus | None = Query(default=None, alias="status"),
    property_type: PropertyType | None = None,
    city: str | None = Query(default=None, max_length=120),
    min_price: int | None = Query(default=None, ge=0),
    max_price: int | None = Query(default=None, ge=0),
    min_bedrooms: int | None = Query(default=None, ge=0),
    agent_id: int | None = None,
    search: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PageResponse:
    context = authorize(authorization, scopes=["properties.read"], company_header=x_company_id)
    items, total = PropertyService(db).list_properties(
        context,
        status=status_filter,
        property_type=property_type,
        city=city,
        min_price=min_price,
        max_price=max_price,
        min_bedrooms=min_bedrooms,
        agent_id=agent_id,
        search=search,
        limit=limit,
        offset=offset,
    )
    return PageResponse(
        items=[PropertyResponse.model_validate(item).model_dump(mode="json") for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{property_id}", response_model=PropertyResponse)
def get_property(
    property_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PropertyResponse:
    context = authorize(authorization, scopes=["properties.read"], company_header=x_company_id)
    return PropertyResponse.model_validate(PropertyService(db).get_property(context, property_id))


@router.patch("/{property_id}", response_model=PropertyResponse)
def update_property(
    property_id: int,
    payload: PropertyUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> PropertyResponse:
    context = authorize(authorization, scopes=["properties.write"], company_header=x_company_id)
    prop = PropertyService(db).update_property(context, property_id, payload.model_dump(exclude_unset=True))
    return PropertyResponse.model_validate(prop)


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_property(
    property_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> Response:
    context = authorize(authorization, scopes=["properties.write"], company_header=x_company_id)
    PropertyService(db).delete_property(context, property_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{property_id}/matching-contacts", response_model=list[ContactResponse])
def matching_contacts(
    property_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[ContactResponse]:
    context = authorize(authorization, scopes=["properties.read", "contacts.read"], company_header=x_company_id)
    matches = PropertyService(db).match_contacts_for_property(context, property_id, limit=limit)
    return [ContactResponse.model_validate(item) for item in matches]
