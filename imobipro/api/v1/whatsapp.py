"""Outbound WhatsApp endpoint for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from imobipro.api.v1._authz import authorize
from imobipro.core.dependencies import get_db_session
from imobipro.schemas.activities import ActivityResponse
from imobipro.schemas.webhooks import WhatsAppSendRequest
from imobipro.services.whatsapp_service import WhatsAppService

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post("/send", response_model=ActivityResponse, status_code=status.HTTP_202_ACCEPTED)
def send_message(
    payload: WhatsAppSendRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_company_id: str | None = Header(default=None, alias="X-Company-Id"),
    db: Session = Depends(get_db_session),
) -> ActivityResponse:
    context = authorize(authorization, scopes=["whatsapp.send"], company_header=x_company_id)
    activity = WhatsAppService(db).send_to_contact(context, payload.contact_id, payload.message)
    return ActivityResponse.model_validate(activity)
