"""User management and agent profile endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.models.enums import UserRole
from imobipro.schemas.users import (
    AgentProfilePayload,
    AgentProfileResponse,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)
from imobipro.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=[])
    return UserResponse.model_validate(UserService(db).get_user(context, context.user_id))


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=["users.manage"], company_header=x_company_id)
    data = payload.model_dump()
    if payload.agent_profile is not None:
        data["agent_profile"] = payload.agent_profile.model_dump(exclude_none=True)
    return UserResponse.model_validate(UserService(db).create_user(context, data))


@router.get("", response_model=list[UserResponse])
def list_users(
    role: UserRole | None = None,
    include_inactive: bool = True,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> list[UserResponse]:
    context = authorize(authorization, scopes=["users.read"], company_header=x_company_id)
    users = UserService(db).list_users(context, role=role, include_inactive=include_inactive)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=["users.read"], company_header=x_company_id)
    return UserResponse.model_validate(UserService(db).get_user(context, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=["users.manage"], company_header=x_company_id)
    service = UserService(db)
    changes = payload.model_dump(exclude_unset=True)
    active = changes.pop("is_active", None)
    user = service.update_user(context, user_id, changes)
    if active is not None:
        user = service.set_active(context, user_id, active)
    return UserResponse.model_validate(user)


@router.post("/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=["users.manage"], company_header=x_company_id)
    return UserResponse.model_validate(UserService(db).set_active(context, user_id, False))


@router.post("/{user_id}/activate", response_model=UserResponse)
def activate_user(
    user_id: int,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    context = authorize(authorization, scopes=["users.manage"], company_header=x_company_id)
    return UserResponse.model_validate(UserService(db).set_active(context, user_id, True))


@router.put("/{user_id}/agent-profile", response_model=AgentProfileResponse)
def upsert_agent_profile(
    user_id: int,
    payload: AgentProfilePayload,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> AgentProfileResponse:
    """Agents may edit their own profile; managers edit the profiles of agents they manage."""
    context = authorize(authorization, scopes=[], company_header=x_company_id)
    profile = UserService(db).upsert_agent_profile(context, user_id, payload.model_dump(exclude_unset=True))
    return AgentProfileResponse.model_validate(profile)
