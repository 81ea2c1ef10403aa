"""Property listing model module."""

from __future__ import annotations

from sqlalchemy import Enum, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from imobipro.models.base import AuditMixin, Base, CompanyScopedMixin
from imobipro.models.enums import PropertyStatus, PropertyType


class Property(Base, AuditMixin, CompanyScopedMixin):
    __tablename__ = "properties"
    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_properties_company_code"),
        Index("idx_properties_company_status", "company_id", "status"),
        Index("idx_properties_company_city", "company_id", "city"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    code: Mapped[str] = mapped_column(String(60), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    property_type: Mapped[PropertyType] = mapped_column(Enum(PropertyType), nullable=False)
    status: Mapped[PropertyStatus] = mapped_column(Enum(PropertyStatus), default=PropertyStatus.AVAILABLE, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    city: Mapped[str | None] = mapped_column(String(120))
    neighborhood: Mapped[str | None] = mapped_column(String(120))
    address: Mapped[str | None] = mapped_column(String(255))
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    bathrooms: Mapped[int | None] = mapped_column(Integer)
    area_m2: Mapped[float | None] = mapped_column(Float)

    agent = relationship("User")
