"""Modular SQLAlchemy model package for the company-scoped schema."""

from imobipro.models.appointment import Appointment, CalendarCredential
from imobipro.models.base import Base
from imobipro.models.company import Company
from imobipro.models.contact import Activity, Contact
from imobipro.models.deal import Deal, DealStageChange
from imobipro.models.enums import (
    ActivityDirection,
    ActivityType,
    AppointmentStatus,
    ContactCategory,
    DealStage,
    DealStatus,
    DeliveryChannel,
    LeadSource,
    LeadStage,
    LeadUrgency,
    PropertyStatus,
    PropertyType,
    ReportFrequency,
    ReportRunStatus,
    ReportType,
    UserRole,
)
from imobipro.models.property import Property
from imobipro.models.report import ReportRun, ReportTemplate, ScheduledReport
from imobipro.models.user import AgentProfile, User

__all__ = [
    "Activity",
    "ActivityDirection",
    "ActivityType",
    "AgentProfile",
    "Appointment",
    "AppointmentStatus",
    "Base",
    "CalendarCredential",
    "Company",
    "Contact",
    "ContactCategory",
    "Deal",
    "DealStage",
    "DealStageChange",
    "DealStatus",
    "DeliveryChannel",
    "LeadSource",
    "LeadStage",
    "LeadUrgency",
    "Property",
    "PropertyStatus",
    "PropertyType",
    "ReportFrequency",
    "ReportRun",
    "ReportRunStatus",
    "ReportTemplate",
    "ReportType",
    "ScheduledReport",
    "User",
    "UserRole",
]
