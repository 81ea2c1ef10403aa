"""Report template, schedule and run history model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobipro.models.base import AuditMixin, Base, CompanyScopedMixin, utcnow
from imobipro.models.enums import DeliveryChannel, ReportFrequency, ReportRunStatus, ReportType


class ReportTemplate(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "report_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    report_type: Mapped[ReportType] = mapped_column(Enum(ReportType), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))


class ScheduledReport(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "scheduled_reports"
    __table_args__ = (Index("idx_scheduled_reports_due", "is_active", "next_run_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("report_templates.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    frequency: Mapped[ReportFrequency] = mapped_column(Enum(ReportFrequency), nullable=False)
    channel: Mapped[DeliveryChannel] = mapped_column(Enum(DeliveryChannel), nullable=False)
    recipients: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    next_run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Day of month monthly runs aim for; shorter months clamp to their last day.
    anchor_day: Mapped[int | None] = mapped_column(Integer)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    template = relationship("ReportTemplate")


class ReportRun(Base, CompanyScopedMixin):
    """History row for every generated report."""

    __tablename__ = "report_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("report_templates.id", ondelete="SET NULL"))
    scheduled_report_id: Mapped[int | None] = mapped_column(ForeignKey("scheduled_reports.id", ondelete="SET NULL"))
    status: Mapped[ReportRunStatus] = mapped_column(Enum(ReportRunStatus), nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    content: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
