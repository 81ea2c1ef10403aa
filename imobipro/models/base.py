"""Shared SQLAlchemy base and common mixins for the domain models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from imobipro.utils.dates import utcnow


class Base(DeclarativeBase):
    """Declarative base class for the ImobiPRO schema."""


class AuditMixin:
    """Standard audit fields for mutable domain models."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CompanyScopedMixin:
    """Mixin enforcing company ownership of business rows."""

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True)
