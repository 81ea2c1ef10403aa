"""Canonical enum values for the company-scoped schema."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    DEV_MASTER = "dev_master"
    ADMIN = "admin"
    AGENT = "agent"


class LeadStage(str, enum.Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    INTERESTED = "INTERESTED"
    NEGOTIATING = "NEGOTIATING"
    CONVERTED = "CONVERTED"
    LOST = "LOST"


class LeadSource(str, enum.Enum):
    REFERRAL = "REFERRAL"
    WEBSITE = "WEBSITE"
    WHATSAPP = "WHATSAPP"
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    GOOGLE_ADS = "GOOGLE_ADS"
    COLD_CALL = "COLD_CALL"
    EMAIL_MARKETING = "EMAIL_MARKETING"
    EVENT = "EVENT"
    PARTNER = "PARTNER"
    N8N_AUTOMATION = "N8N_AUTOMATION"
    OTHER = "OTHER"


class LeadUrgency(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ContactCategory(str, enum.Enum):
    LEAD = "LEAD"
    CLIENT = "CLIENT"
    PARTNER = "PARTNER"


class ActivityType(str, enum.Enum):
    CALL = "CALL"
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    MEETING = "MEETING"
    VISIT = "VISIT"
    SMS = "SMS"
    FOLLOW_UP = "FOLLOW_UP"
    NOTE = "NOTE"
    PROPOSAL_SENT = "PROPOSAL_SENT"
    CONTRACT_SENT = "CONTRACT_SENT"
    DOCUMENT_RECEIVED = "DOCUMENT_RECEIVED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    STAGE_CHANGE = "STAGE_CHANGE"
    ASSIGNMENT = "ASSIGNMENT"
    SCORE_CHANGE = "SCORE_CHANGE"


class ActivityDirection(str, enum.Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class PropertyType(str, enum.Enum):
    APARTMENT = "APARTMENT"
    HOUSE = "HOUSE"
    COMMERCIAL = "COMMERCIAL"
    LAND = "LAND"
    OTHER = "OTHER"


class PropertyStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    RENTED = "RENTED"
    INACTIVE = "INACTIVE"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    NO_SHOW = "NO_SHOW"


class ReportType(str, enum.Enum):
    LEAD_FUNNEL = "LEAD_FUNNEL"
    AGENT_PERFORMANCE = "AGENT_PERFORMANCE"
    APPOINTMENTS = "APPOINTMENTS"


class ReportFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class DeliveryChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"


class ReportRunStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DealStage(str, enum.Enum):
    LEAD_IN = "LEAD_IN"
    QUALIFICATION = "QUALIFICATION"
    PROPOSAL = "PROPOSAL"
    NEGOTIATION = "NEGOTIATION"
    WON = "WON"
    LOST = "LOST"


class DealStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


INTERACTION_ACTIVITY_TYPES = frozenset(
    {
        ActivityType.CALL,
        ActivityType.EMAIL,
        ActivityType.WHATSAPP,
        ActivityType.MEETING,
        ActivityType.VISIT,
        ActivityType.SMS,
    }
)

CLOSED_LEAD_STAGES = frozenset({LeadStage.CONVERTED, LeadStage.LOST})

CLOSED_DEAL_STAGES = frozenset({DealStage.WON, DealStage.LOST})

# Labels emitted by the n8n flows and the legacy web forms.
LEAD_SOURCE_ALIASES: dict[str, LeadSource] = {
    "INDICACAO": LeadSource.REFERRAL,
    "INDICAÇÃO": LeadSource.REFERRAL,
    "SITE": LeadSource.WEBSITE,
    "WEB": LeadSource.WEBSITE,
    "PARCEIRO": LeadSource.PARTNER,
    "EVENTO": LeadSource.EVENT,
    "OUTROS": LeadSource.OTHER,
    "GOOGLE ADS": LeadSource.GOOGLE_ADS,
    "COLD CALL": LeadSource.COLD_CALL,
    "EMAIL MARKETING": LeadSource.EMAIL_MARKETING,
    "N8N": LeadSource.N8N_AUTOMATION,
}


def resolve_lead_source(value: str | LeadSource | None) -> LeadSource | None:
    """Map a canonical value or a known alias to `LeadSource`."""
    if value is None or isinstance(value, LeadSource):
        return value
    key = str(value).strip().upper()
    if not key:
        return None
    if key in LeadSource.__members__:
        return LeadSource[key]
    if key in LEAD_SOURCE_ALIASES:
        return LEAD_SOURCE_ALIASES[key]
    raise ValueError(f"Unknown lead source: {value}")
