"""User and agent profile model module."""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, ForeignKey, Index, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobipro.models.base import AuditMixin, Base, CompanyScopedMixin
from imobipro.models.enums import UserRole


class User(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("idx_users_company_role", "company_id", "role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    company = relationship("Company")
    agent_profile = relationship("AgentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")


class AgentProfile(Base, AuditMixin):
    """Assignment settings of a user acting as a real-estate agent."""

    __tablename__ = "agent_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="America/Sao_Paulo", nullable=False)
    # datetime.weekday() numbers, Monday=0.
    working_days: Mapped[list[int]] = mapped_column(JSON, default=lambda: [0, 1, 2, 3, 4], nullable=False)
    work_start: Mapped[time] = mapped_column(Time, default=time(9, 0), nullable=False)
    work_end: Mapped[time] = mapped_column(Time, default=time(18, 0), nullable=False)
    specializations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    auto_assign_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_open_leads: Mapped[int | None] = mapped_column(Integer)
    max_daily_leads: Mapped[int | None] = mapped_column(Integer)
    last_assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Assignments received on `assignments_day` (agent local date), kept even if the lead later moves.
    assignments_day: Mapped[date | None] = mapped_column(Date)
    assignments_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user = relationship("User", back_populates="agent_profile")
