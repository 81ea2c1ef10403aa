"""Contact (lead) lifecycle: create, query, update, funnel moves and stats."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, enforce_contact_access, scope_contacts
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConflictError, ValidationError
from imobipro.models.contact import Contact
from imobipro.models.enums import (
    CLOSED_LEAD_STAGES,
    ActivityType,
    ContactCategory,
    LeadSource,
    LeadStage,
    UserRole,
)
from imobipro.models.user import User
from imobipro.services.activity_service import append_activity
from imobipro.services.assignment_service import AssignmentResult, AssignmentService
from imobipro.services.base_service import BaseService
from imobipro.services.lead_scoring import SCORING_ATTRIBUTES, rescore_contact
from imobipro.services.n8n_client import LeadEventPublisher
from imobipro.services.state_machine import (
    QUALIFIED_STAGES,
    assert_advance,
    assert_mark_lost,
    next_stage,
    reopen_target,
)
from imobipro.utils.dates import utcnow
from imobipro.utils.validators import (
    is_valid_email,
    is_valid_phone,
    normalize_email,
    normalize_phone,
    normalize_tags,
    sanitize_text,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "email",
        "phone",
        "category",
        "lead_source",
        "lead_source_details",
        "budget",
        "urgency",
        "timeline",
        "property_type",
        "preferred_location",
        "tags",
        "notes",
        "opt_in_whatsapp",
    }
)


class ContactService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        events: LeadEventPublisher | None = None,
        assignment: AssignmentService | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.events = events or LeadEventPublisher(config=self.config)
        self.assignment = assignment or AssignmentService(self.db, config=self.config, events=self.events)

    # -- helpers -----------------------------------------------------------

    def _normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        cleaned = dict(data)
        if "name" in cleaned:
            cleaned["name"] = sanitize_text(cleaned["name"], 255)
            if len(cleaned["name"]) < 2:
                raise ValidationError("name must have at least 2 characters.")
        if "email" in cleaned:
            cleaned["email"] = normalize_email(cleaned["email"])
            if cleaned["email"] is not None and not is_valid_email(cleaned["email"]):
                raise ValidationError("email is not a valid address.")
        if "phone" in cleaned:
            raw_phone = cleaned["phone"]
            cleaned["phone"] = normalize_phone(raw_phone)
            if raw_phone and not is_valid_phone(raw_phone):
                raise ValidationError("phone must have between 10 and 15 digits.")
        if "budget" in cleaned and cleaned["budget"] is not None:
            if cleaned["budget"] < 0:
                raise ValidationError("budget must be positive.")
            if cleaned["budget"] != int(cleaned["budget"]):
                raise ValidationError("budget must be a whole amount.")
            cleaned["budget"] = int(cleaned["budget"])
        if "tags" in cleaned:
            cleaned["tags"] = normalize_tags(cleaned["tags"])
        if "preferred_location" in cleaned:
            cleaned["preferred_location"] = sanitize_text(cleaned["preferred_location"], 120) or None
        for text_field, limit in (("notes", 5000), ("timeline", 100), ("lead_source_details", 500)):
            if text_field in cleaned:
                cleaned[text_field] = sanitize_text(cleaned[text_field], limit) or None
        return cleaned

    def find_duplicate(
        self,
        company_id: int,
        email: str | None,
        phone: str | None,
        exclude_id: int | None = None,
    ) -> Contact | None:
        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone:
            conditions.append(Contact.phone == phone)
        if not conditions:
            return None
        stmt = select(Contact).where(Contact.company_id == company_id, or_(*conditions))
        if exclude_id is not None:
            stmt = stmt.where(Contact.id != exclude_id)
        return self.db.scalars(stmt.limit(1)).first()

    def _validate_agent(self, company_id: int, agent_id: int) -> User:
        agent = self.db.get(User, agent_id)
        if agent is None or agent.company_id != company_id or agent.role != UserRole.AGENT or not agent.is_active:
            raise ValidationError("agent_id must reference an active agent of this company.")
        return agent

    def _load(self, context: CompanyContext, contact_id: int) -> Contact:
        return enforce_contact_access(self.db.get(Contact, contact_id), context)

    # -- CRUD --------------------------------------------------------------

    def create_contact(
        self,
        context: CompanyContext,
        data: dict[str, Any],
        auto_assign: bool | None = None,
        initial_activity: str | None = None,
        correlation_id: str | None = None,
    ) -> tuple[Contact, AssignmentResult | None]:
        """Create a contact, score it and optionally auto-assign it."""
        payload = self._normalize({key: value for key, value in data.items() if key in UPDATABLE_FIELDS | {"agent_id"}})
        if not payload.get("name"):
            raise ValidationError("name is required.")
        if not payload.get("email") and not payload.get("phone"):
            raise ValidationError("Either email or phone is required.")

        duplicate = self.find_duplicate(context.company_id, payload.get("email"), payload.get("phone"))
        if duplicate is not None:
            raise ConflictError(f"Contact already exists (id {duplicate.id}).")

        agent_id = payload.pop("agent_id", None)
        if context.is_agent:
            # Agents always own what they create.
            agent_id = context.user_id
        elif agent_id is not None:
            self._validate_agent(context.company_id, agent_id)

        contact = Contact(company_id=context.company_id, agent_id=agent_id, **payload)
        if agent_id is not None:
            contact.assigned_at = utcnow()
        rescore_contact(self.db, contact)
        self.db.add(contact)
        self.db.flush()

        append_activity(
            self.db,
            contact,
            ActivityType.NOTE,
            initial_activity or "Contact created",
            details={"source": contact.lead_source.value if contact.lead_source else None},
            performed_by_id=context.user_id,
        )

        should_assign = self.config.FEATURE_AUTO_ASSIGN if auto_assign is None else auto_assign
        assignment: AssignmentResult | None = None
        if agent_id is None and should_assign:
            assignment = self.assignment.assign_contact(
                context.company_id, contact.id, performed_by_id=context.user_id, commit=False
            )

        self.commit()
        self.db.refresh(contact)
        logger.info(
            "contact.created",
            extra={
                "event": "contact.created",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "lead_score": contact.lead_score,
                "assignment": assignment.status if assignment else None,
            },
        )
        self.events.publish("lead.created", contact, correlation_id=correlation_id)
        if assignment is not None and assignment.agent_id is not None and assignment.status == "assigned":
            self.events.publish("lead.assigned", contact, changes={"agentId": assignment.agent_id}, correlation_id=correlation_id)
        return contact, assignment

    def get_contact(self, context: CompanyContext, contact_id: int) -> Contact:
        return self._load(context, contact_id)

    def list_contacts(
        self,
        context: CompanyContext,
        stage: LeadStage | None = None,
        lead_source: LeadSource | None = None,
        agent_id: int | None = None,
        min_score: int | None = None,
        max_score: int | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Contact], int]:
        stmt = scope_contacts(select(Contact), context)
        if stage is not None:
            stmt = stmt.where(Contact.stage == stage)
        if lead_source is not None:
            stmt = stmt.where(Contact.lead_source == lead_source)
        if agent_id is not None:
            stmt = stmt.where(Contact.agent_id == agent_id)
        if min_score is not None:
            stmt = stmt.where(Contact.lead_score >= min_score)
        if max_score is not None:
            stmt = stmt.where(Contact.lead_score <= max_score)
        term = sanitize_text(search, 100)
        if term:
            pattern = f"%{term.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Contact.name).like(pattern),
                    func.lower(Contact.email).like(pattern),
                    Contact.phone.like(f"%{term}%"),
                )
            )

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(
            stmt.order_by(Contact.lead_score.desc(), Contact.id.asc()).limit(limit).offset(offset)
        ).all()
        return list(items), int(total)

    def update_contact(self, context: CompanyContext, contact_id: int, changes: dict[str, Any]) -> Contact:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
        contact = self._load(context, contact_id)
        cleaned = self._normalize(changes)
        if "name" in cleaned and not cleaned["name"]:
            raise ValidationError("name is required.")

        new_email = cleaned.get("email", contact.email)
        new_phone = cleaned.get("phone", contact.phone)
        if not new_email and not new_phone:
            raise ValidationError("Either email or phone is required.")
        if ("email" in cleaned or "phone" in cleaned) and self.find_duplicate(
            context.company_id,
            cleaned.get("email"),
            cleaned.get("phone"),
            exclude_id=contact.id,
        ):
            raise ConflictError("Another contact already uses this email or phone.")

        touched_scoring = False
        for key, value in cleaned.items():
            if getattr(contact, key) != value:
                setattr(contact, key, value)
                touched_scoring = touched_scoring or key in SCORING_ATTRIBUTES
        if touched_scoring:
            rescore_contact(self.db, contact, performed_by_id=context.user_id)
        self.commit()
        self.db.refresh(contact)
        return contact

    def delete_contact(self, context: CompanyContext, contact_id: int) -> None:
        contact = self._load(context, contact_id)
        self.db.delete(contact)
        self.commit()
        logger.info(
            "contact.deleted",
            extra={"event": "contact.deleted", "company_id": context.company_id, "contact_id": contact_id},
        )

    # -- funnel ------------------------------------------------------------

    def _record_stage_change(
        self,
        context: CompanyContext,
        contact: Contact,
        previous: LeadStage,
        note: str | None,
        extra_details: dict[str, Any] | None = None,
    ) -> None:
        details = {"from": previous.value, "to": contact.stage.value}
        details.update(extra_details or {})
        append_activity(
            self.db,
            contact,
            ActivityType.STAGE_CHANGE,
            f"Stage {previous.value} -> {contact.stage.value}",
            description=note,
            details=details,
            performed_by_id=context.user_id,
        )
        self.commit()
        self.db.refresh(contact)
        logger.info(
            "contact.stage_changed",
            extra={
                "event": "contact.stage_changed",
                "company_id": context.company_id,
                "contact_id": contact.id,
                "from_stage": previous.value,
                "to_stage": contact.stage.value,
            },
        )
        self.events.publish(
            "lead.stage_changed",
            contact,
            changes={"previous": {"leadStage": previous.value}, "current": {"leadStage": contact.stage.value}},
        )

    def advance_stage(
        self,
        context: CompanyContext,
        contact_id: int,
        target: LeadStage | None = None,
        note: str | None = None,
    ) -> Contact:
        """Move one step forward in the funnel; `target` must be that step."""
        contact = self._load(context, contact_id)
        previous = contact.stage
        resolved = target or next_stage(previous)
        assert_advance(previous, resolved)

        contact.stage = resolved
        if resolved in QUALIFIED_STAGES:
            contact.is_qualified = True
        if resolved == LeadStage.CONVERTED:
            contact.category = ContactCategory.CLIENT
        self._record_stage_change(context, contact, previous, note)
        return contact

    def mark_lost(self, context: CompanyContext, contact_id: int, reason: str | None = None) -> Contact:
        contact = self._load(context, contact_id)
        previous = contact.stage
        assert_mark_lost(previous)
        contact.stage_before_lost = previous
        contact.stage = LeadStage.LOST
        self._record_stage_change(context, contact, previous, reason, {"reason": reason})
        return contact

    def reopen(self, context: CompanyContext, contact_id: int, note: str | None = None) -> Contact:
        contact = self._load(context, contact_id)
        previous = contact.stage
        contact.stage = reopen_target(previous, contact.stage_before_lost)
        contact.stage_before_lost = None
        self._record_stage_change(context, contact, previous, note, {"reopened": True})
        return contact

    # -- reporting ---------------------------------------------------------

    def stats(self, context: CompanyContext) -> dict[str, Any]:
        scoped = scope_contacts(select(Contact), context).subquery()
        rows = self.db.execute(select(scoped.c.stage, func.count()).group_by(scoped.c.stage)).all()
        by_stage = {stage.value: 0 for stage in LeadStage}
        for stage, count in rows:
            key = stage.value if isinstance(stage, LeadStage) else str(stage)
            by_stage[key] = int(count)

        total = sum(by_stage.values())
        average = self.db.scalar(select(func.avg(scoped.c.lead_score))) or 0
        converted = by_stage[LeadStage.CONVERTED.value]
        open_count = total - sum(by_stage[stage.value] for stage in CLOSED_LEAD_STAGES)
        return {
            "total": total,
            "open": open_count,
            "by_stage": by_stage,
            "average_score": round(float(average), 2),
            "conversion_rate": round(converted / total * 100, 2) if total else 0.0,
        }
