"""Deal (sales pipeline) model module."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobipro.core.exceptions import ImmutableRecordError
from imobipro.models.base import AuditMixin, Base, CompanyScopedMixin, utcnow
from imobipro.models.enums import DealStage, DealStatus


class Deal(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "deals"
    __table_args__ = (
        Index("idx_deals_company_stage", "company_id", "stage"),
        Index("idx_deals_company_agent", "company_id", "agent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Closed deals are revenue history; a contact that has any cannot be deleted.
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="RESTRICT"), nullable=False, index=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    property_id: Mapped[int | None] = mapped_column(ForeignKey("properties.id", ondelete="SET NULL"))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stage: Mapped[DealStage] = mapped_column(Enum(DealStage), default=DealStage.LEAD_IN, nullable=False)
    status: Mapped[DealStatus] = mapped_column(Enum(DealStatus), default=DealStatus.ACTIVE, nullable=False)
    probability: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    stage_before_lost: Mapped[DealStage | None] = mapped_column(Enum(DealStage))
    stage_entered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_close_date: Mapped[date | None] = mapped_column(Date)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lost_reason: Mapped[str | None] = mapped_column(String(500))
    next_action: Mapped[str | None] = mapped_column(String(255))
    next_action_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    contact = relationship("Contact")
    agent = relationship("User")
    listing = relationship("Property")
    history = relationship(
        "DealStageChange",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="DealStageChange.changed_at",
    )

    @property
    def weighted_value(self) -> float:
        return round((self.value or 0) * (self.probability or 0) / 100, 2)


class DealStageChange(Base, CompanyScopedMixin):
    """Append-only record of every stage a deal entered."""

    __tablename__ = "deal_stage_history"
    __table_args__ = (Index("idx_deal_stage_history_deal", "deal_id", "changed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    deal_id: Mapped[int] = mapped_column(ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    from_stage: Mapped[DealStage | None] = mapped_column(Enum(DealStage))
    to_stage: Mapped[DealStage] = mapped_column(Enum(DealStage), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    days_in_previous_stage: Mapped[int | None] = mapped_column(Integer)
    changed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    deal = relationship("Deal", back_populates="history")


@event.listens_for(DealStageChange, "before_update")
def _reject_history_update(mapper, connection, target: DealStageChange) -> None:
    raise ImmutableRecordError(f"Deal stage change {target.id} is append-only.")
