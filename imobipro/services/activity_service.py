"""Append-only activity log attached to contacts."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, enforce_contact_access
from imobipro.core.exceptions import ValidationError
from imobipro.models.contact import Activity, Contact
from imobipro.models.enums import INTERACTION_ACTIVITY_TYPES, ActivityDirection, ActivityType
from imobipro.services.base_service import BaseService
from imobipro.services.lead_scoring import rescore_contact
from imobipro.utils.dates import utcnow
from imobipro.utils.validators import sanitize_text

logger = logging.getLogger(__name__)

# Written by the system itself; callers cannot log them directly.
SYSTEM_ACTIVITY_TYPES = frozenset({ActivityType.STAGE_CHANGE, ActivityType.ASSIGNMENT, ActivityType.SCORE_CHANGE})


def append_activity(
    db: Session,
    contact: Contact,
    activity_type: ActivityType,
    title: str,
    description: str | None = None,
    direction: ActivityDirection | None = None,
    channel: str | None = None,
    details: dict[str, Any] | None = None,
    performed_by_id: int | None = None,
    occurred_at: datetime | None = None,
) -> Activity:
    """Stage a new activity row; interactions also bump engagement and rescore."""
    activity = Activity(
        company_id=contact.company_id,
        contact_id=contact.id,
        type=activity_type,
        title=sanitize_text(title, 200),
        description=sanitize_text(description, 5000) or None,
        direction=direction,
        channel=channel,
        details=dict(details or {}),
        performed_by_id=performed_by_id,
        created_at=occurred_at or utcnow(),
    )
    db.add(activity)

    if activity_type in INTERACTION_ACTIVITY_TYPES:
        contact.interaction_count = (contact.interaction_count or 0) + 1
        contact.last_interaction_at = activity.created_at
        rescore_contact(db, contact, performed_by_id=performed_by_id)
    return activity


class ActivityService(BaseService):
    def log_activity(
        self,
        context: CompanyContext,
        contact_id: int,
        activity_type: ActivityType,
        title: str,
        description: str | None = None,
        direction: ActivityDirection | None = None,
        channel: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> Activity:
        if activity_type in SYSTEM_ACTIVITY_TYPES:
            raise ValidationError(f"{activity_type.value} activities are recorded automatically.")
        if not sanitize_text(title, 200):
            raise ValidationError("Activity title is required.")

        contact = enforce_contact_access(self.db.get(Contact, contact_id), context)
        activity = append_activity(
            self.db,
            contact,
            activity_type,
            title,
            description=description,
            direction=direction,
            channel=channel,
            details=details,
            performed_by_id=context.user_id,
        )
        self.commit()
        self.db.refresh(activity)
        logger.info(
            "activity.logged",
            extra={
                "event": "activity.logged",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "activity_type": activity_type.value,
            },
        )
        return activity

    def list_activities(
        self,
        context: CompanyContext,
        contact_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Activity], int]:
        enforce_contact_access(self.db.get(Contact, contact_id), context)
        base = select(Activity).where(Activity.contact_id == contact_id, Activity.company_id == context.company_id)
        total = self.db.scalar(select(func.count()).select_from(base.subquery())) or 0
        items = self.db.scalars(
            base.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit).offset(offset)
        ).all()
        return list(items), int(total)
