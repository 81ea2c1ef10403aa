"""Contact (lead) and activity model module."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobipro.core.exceptions import ImmutableRecordError
from imobipro.models.base import AuditMixin, Base, CompanyScopedMixin, utcnow
from imobipro.models.enums import (
    ActivityDirection,
    ActivityType,
    ContactCategory,
    LeadSource,
    LeadStage,
    LeadUrgency,
    PropertyType,
)


class Contact(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("company_id", "email", name="uq_contacts_company_email"),
        Index("idx_contacts_company_stage", "company_id", "stage"),
        Index("idx_contacts_company_agent", "company_id", "agent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(32), index=True)
    category: Mapped[ContactCategory] = mapped_column(Enum(ContactCategory), default=ContactCategory.LEAD, nullable=False)
    lead_source: Mapped[LeadSource | None] = mapped_column(Enum(LeadSource))
    lead_source_details: Mapped[str | None] = mapped_column(String(500))
    budget: Mapped[int | None] = mapped_column(Integer)
    urgency: Mapped[LeadUrgency | None] = mapped_column(Enum(LeadUrgency))
    timeline: Mapped[str | None] = mapped_column(String(100))
    property_type: Mapped[PropertyType | None] = mapped_column(Enum(PropertyType))
    preferred_location: Mapped[str | None] = mapped_column(String(120))
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    opt_in_whatsapp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    interaction_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stage: Mapped[LeadStage] = mapped_column(Enum(LeadStage), default=LeadStage.NEW, nullable=False)
    stage_before_lost: Mapped[LeadStage | None] = mapped_column(Enum(LeadStage))
    is_qualified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lead_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    score_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_interaction_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    agent = relationship("User")
    activities = relationship(
        "Activity",
        back_populates="contact",
        cascade="all, delete-orphan",
        order_by="Activity.created_at",
    )


class Activity(Base, CompanyScopedMixin):
    """Append-only log entry attached to a contact."""

    __tablename__ = "activities"
    __table_args__ = (Index("idx_activities_contact_created", "contact_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[ActivityType] = mapped_column(Enum(ActivityType), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    direction: Mapped[ActivityDirection | None] = mapped_column(Enum(ActivityDirection))
    channel: Mapped[str | None] = mapped_column(String(40))
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    performed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    contact = relationship("Contact", back_populates="activities")


@event.listens_for(Activity, "before_update")
def _reject_activity_update(mapper, connection, target: Activity) -> None:
    raise ImmutableRecordError(f"Activity {target.id} is append-only.")
