"""Outbound WhatsApp messages to contacts through the n8n workflow."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, enforce_contact_access
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ValidationError
from imobipro.models.contact import Activity, Contact
from imobipro.models.enums import ActivityDirection, ActivityType
from imobipro.services.activity_service import append_activity
from imobipro.services.base_service import BaseService
from imobipro.services.n8n_client import N8nClient
from imobipro.utils.ids import new_correlation_id
from imobipro.utils.validators import sanitize_text

logger = logging.getLogger(__name__)


class WhatsAppService(BaseService):
    def __init__(self, db: Session | None = None, config: Config | None = None, client: N8nClient | None = None) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.client = client or N8nClient(config=self.config)

    def send_to_contact(self, context: CompanyContext, contact_id: int, message: str) -> Activity:
        """Send a text and log it as an outbound interaction once n8n accepts it."""
        contact = enforce_contact_access(self.db.get(Contact, contact_id), context)
        if not contact.phone:
            raise ValidationError("Contact has no phone number.")
        if not contact.opt_in_whatsapp:
            raise ValidationError("Contact has not opted in to WhatsApp messages.")
        text = sanitize_text(message, 4096)
        if not text:
            raise ValidationError("Message is empty.")

        correlation_id = new_correlation_id()
        response = self.client.send_whatsapp(contact.phone, text, correlation_id=correlation_id)
        activity = append_activity(
            self.db,
            contact,
            ActivityType.WHATSAPP,
            "WhatsApp message sent",
            description=text,
            direction=ActivityDirection.OUTBOUND,
            channel="whatsapp",
            details={"correlation_id": correlation_id, "message_id": response.get("messageId")},
            performed_by_id=context.user_id,
        )
        self.commit()
        self.db.refresh(activity)
        logger.info(
            "whatsapp.message.sent",
            extra={
                "event": "whatsapp.message.sent",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "correlation_id": correlation_id,
            },
        )
        return activity
