"""Appointment scheduling with per-agent overlap checks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext, enforce_contact_access
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import ConflictError, IntegrationError, NotFoundError, ValidationError
from imobipro.models.appointment import Appointment
from imobipro.models.contact import Contact
from imobipro.models.enums import ActivityDirection, ActivityType, AppointmentStatus, UserRole
from imobipro.models.property import Property
from imobipro.models.user import User
from imobipro.services.activity_service import append_activity
from imobipro.services.base_service import BaseService
from imobipro.services.calendar_service import CalendarService
from imobipro.services.state_machine import APPOINTMENT_FLOW
from imobipro.utils.dates import as_utc
from imobipro.utils.validators import sanitize_text

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


class AppointmentService(BaseService):
    def __init__(
        self,
        db: Session | None = None,
        config: Config | None = None,
        calendar: CalendarService | None = None,
    ) -> None:
        super().__init__(db)
        self.config = config or get_config()
        self.calendar = calendar or CalendarService(self.db, config=self.config)

    def _load(self, context: CompanyContext, appointment_id: int) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None or appointment.company_id != context.company_id:
            raise NotFoundError("Appointment not found.")
        if context.is_agent and appointment.agent_id != context.user_id:
            raise NotFoundError("Appointment not found.")
        return appointment

    def _resolve_agent(self, context: CompanyContext, requested: int | None, contact: Contact) -> User:
        agent_id = context.user_id if context.is_agent else (requested or contact.agent_id)
        if agent_id is None:
            raise ValidationError("agent_id is required when the contact has no agent.")
        agent = self.db.get(User, agent_id)
        if agent is None or agent.company_id != context.company_id or agent.role != UserRole.AGENT or not agent.is_active:
            raise ValidationError("agent_id must reference an active agent of this company.")
        return agent

    def _resolve_property(self, context: CompanyContext, property_id: int | None) -> Property | None:
        if property_id is None:
            return None
        prop = self.db.get(Property, property_id)
        if prop is None or prop.company_id != context.company_id:
            raise ValidationError("property_id must reference a property of this company.")
        return prop

    def find_overlap(
        self,
        agent_id: int,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: int | None = None,
    ) -> Appointment | None:
        """Active appointment of the agent intersecting [starts_at, ends_at)."""
        stmt = select(Appointment).where(
            Appointment.agent_id == agent_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.starts_at < ends_at,
            Appointment.ends_at > starts_at,
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        return self.db.scalars(stmt.limit(1)).first()

    @staticmethod
    def _validate_window(starts_at: datetime, ends_at: datetime) -> tuple[datetime, datetime]:
        start, end = as_utc(starts_at), as_utc(ends_at)
        if end <= start:
            raise ValidationError("ends_at must be after starts_at.")
        return start, end

    def _try_sync(self, appointment: Appointment) -> None:
        try:
            self.calendar.sync_appointment(appointment)
        except IntegrationError:
            logger.warning(
                "appointment.calendar_sync.failed",
                extra={"event": "appointment.calendar_sync.failed", "appointment_id": appointment.id},
            )

    def create_appointment(self, context: CompanyContext, data: dict[str, Any], sync_calendar: bool = True) -> Appointment:
        contact = enforce_contact_access(self.db.get(Contact, data.get("contact_id")), context)
        agent = self._resolve_agent(context, data.get("agent_id"), contact)
        prop = self._resolve_property(context, data.get("property_id"))
        starts_at, ends_at = self._validate_window(data["starts_at"], data["ends_at"])

        clash = self.find_overlap(agent.id, starts_at, ends_at)
        if clash is not None:
            raise ConflictError(f"Agent already has appointment {clash.id} in this time slot.")

        title = sanitize_text(data.get("title"), 200) or f"Visita - {contact.name}"
        appointment = Appointment(
            company_id=context.company_id,
            contact_id=contact.id,
            agent_id=agent.id,
            property_id=prop.id if prop else None,
            title=title,
            notes=sanitize_text(data.get("notes"), 5000) or None,
            location=sanitize_text(data.get("location"), 255) or (prop.address if prop else None),
            starts_at=starts_at,
            ends_at=ends_at,
        )
        self.db.add(appointment)
        self.commit()
        self.db.refresh(appointment)
        logger.info(
            "appointment.created",
            extra={
                "event": "appointment.created",
                "company_id": context.company_id,
                "appointment_id": appointment.id,
                "agent_id": agent.id,
                "contact_id": contact.id,
            },
        )
        if sync_calendar:
            self._try_sync(appointment)
        return appointment

    def get_appointment(self, context: CompanyContext, appointment_id: int) -> Appointment:
        return self._load(context, appointment_id)

    def list_appointments(
        self,
        context: CompanyContext,
        agent_id: int | None = None,
        contact_id: int | None = None,
        status: AppointmentStatus | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Appointment], int]:
        stmt = select(Appointment).where(Appointment.company_id == context.company_id)
        if context.is_agent:
            stmt = stmt.where(Appointment.agent_id == context.user_id)
        elif agent_id is not None:
            stmt = stmt.where(Appointment.agent_id == agent_id)
        if contact_id is not None:
            stmt = stmt.where(Appointment.contact_id == contact_id)
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        if date_from is not None:
            stmt = stmt.where(Appointment.starts_at >= as_utc(date_from))
        if date_to is not None:
            stmt = stmt.where(Appointment.starts_at < as_utc(date_to))
        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(stmt.order_by(Appointment.starts_at.asc(), Appointment.id.asc()).limit(limit).offset(offset)).all()
        return list(items), int(total)

    def reschedule(self, context: CompanyContext, appointment_id: int, changes: dict[str, Any]) -> Appointment:
        appointment = self._load(context, appointment_id)
        if appointment.status not in ACTIVE_STATUSES:
            raise ValidationError(f"Appointment is {appointment.status.value} and cannot be changed.")
        starts_at, ends_at = self._validate_window(
            changes.get("starts_at") or appointment.starts_at,
            changes.get("ends_at") or appointment.ends_at,
        )
        clash = self.find_overlap(appointment.agent_id, starts_at, ends_at, exclude_id=appointment.id)
        if clash is not None:
            raise ConflictError(f"Agent already has appointment {clash.id} in this time slot.")

        appointment.starts_at = starts_at
        appointment.ends_at = ends_at
        for key, limit in (("title", 200), ("notes", 5000), ("location", 255)):
            if key in changes and changes[key] is not None:
                setattr(appointment, key, sanitize_text(changes[key], limit) or None)
        if "property_id" in changes:
            prop = self._resolve_property(context, changes["property_id"])
            appointment.property_id = prop.id if prop else None
        self.commit()
        self.db.refresh(appointment)
        self._try_sync(appointment)
        return appointment

    def change_status(
        self,
        context: CompanyContext,
        appointment_id: int,
        target: AppointmentStatus,
        note: str | None = None,
    ) -> Appointment:
        appointment = self._load(context, appointment_id)
        previous = appointment.status
        APPOINTMENT_FLOW.assert_transition(previous, target)
        appointment.status = target

        if target == AppointmentStatus.COMPLETED:
            append_activity(
                self.db,
                appointment.contact,
                ActivityType.VISIT,
                f"Visit completed: {appointment.title}",
                description=note,
                direction=ActivityDirection.OUTBOUND,
                channel="in_person",
                details={"appointment_id": appointment.id, "property_id": appointment.property_id},
                performed_by_id=context.user_id,
            )
        self.commit()
        self.db.refresh(appointment)
        logger.info(
            "appointment.status_changed",
            extra={
                "event": "appointment.status_changed",
                "appointment_id": appointment.id,
                "from_status": previous.value,
                "to_status": target.value,
            },
        )
        if target == AppointmentStatus.CANCELED:
            try:
                self.calendar.remove_appointment(appointment)
            except IntegrationError:
                logger.warning(
                    "appointment.calendar_remove.failed",
                    extra={"event": "appointment.calendar_remove.failed", "appointment_id": appointment.id},
                )
        return appointment

    def sync_to_calendar(self, context: CompanyContext, appointment_id: int) -> str | None:
        """Explicit sync; calendar failures surface as IntegrationError."""
        appointment = self._load(context, appointment_id)
        return self.calendar.sync_appointment(appointment)
