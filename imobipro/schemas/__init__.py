"""Pydantic schema package for API contracts."""

from imobipro.schemas.activities import ActivityCreateRequest, ActivityResponse
from imobipro.schemas.appointments import (
    AppointmentCreateRequest,
    AppointmentResponse,
    AppointmentStatusRequest,
    AppointmentUpdateRequest,
)
from imobipro.schemas.auth import LoginRequest, RefreshRequest, TokenClaims, TokenResponse
from imobipro.schemas.common import APIEnvelope, ErrorEnvelope, PageResponse, Pagination
from imobipro.schemas.contacts import (
    AssignmentResponse,
    ContactCreateRequest,
    ContactCreateResponse,
    ContactResponse,
    ContactStatsResponse,
    ContactUpdateRequest,
    MarkLostRequest,
    ReassignRequest,
    ReopenRequest,
    StageAdvanceRequest,
)
from imobipro.schemas.deals import (
    DealCloseRequest,
    DealCreateRequest,
    DealMoveRequest,
    DealResponse,
    DealStageChangeResponse,
    DealUpdateRequest,
    PipelineMetricsResponse,
)
from imobipro.schemas.properties import PropertyCreateRequest, PropertyResponse, PropertyUpdateRequest
from imobipro.schemas.reports import (
    GenerateReportRequest,
    ReportRunResponse,
    ReportTemplateCreateRequest,
    ReportTemplateResponse,
    ReportTemplateUpdateRequest,
    ScheduleCreateRequest,
    ScheduleResponse,
    ScheduleUpdateRequest,
    TemplateValidationRequest,
    TemplateValidationResponse,
)
from imobipro.schemas.users import (
    AgentProfilePayload,
    AgentProfileResponse,
    AgentWorkloadResponse,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)
from imobipro.schemas.webhooks import (
    N8nActivityWebhook,
    N8nBulkLeadWebhook,
    N8nLeadWebhook,
    WebhookBulkResult,
    WebhookLeadResult,
    WhatsAppInboundMessage,
    WhatsAppSendRequest,
)

__all__ = [
    "APIEnvelope",
    "ActivityCreateRequest",
    "ActivityResponse",
    "AgentProfilePayload",
    "AgentProfileResponse",
    "AgentWorkloadResponse",
    "AppointmentCreateRequest",
    "AppointmentResponse",
    "AppointmentStatusRequest",
    "AppointmentUpdateRequest",
    "AssignmentResponse",
    "ContactCreateRequest",
    "ContactCreateResponse",
    "ContactResponse",
    "ContactStatsResponse",
    "ContactUpdateRequest",
    "DealCloseRequest",
    "DealCreateRequest",
    "DealMoveRequest",
    "DealResponse",
    "DealStageChangeResponse",
    "DealUpdateRequest",
    "ErrorEnvelope",
    "GenerateReportRequest",
    "LoginRequest",
    "MarkLostRequest",
    "N8nActivityWebhook",
    "N8nBulkLeadWebhook",
    "N8nLeadWebhook",
    "PageResponse",
    "Pagination",
    "PipelineMetricsResponse",
    "PropertyCreateRequest",
    "PropertyResponse",
    "PropertyUpdateRequest",
    "ReassignRequest",
    "RefreshRequest",
    "ReopenRequest",
    "ReportRunResponse",
    "ReportTemplateCreateRequest",
    "ReportTemplateResponse",
    "ReportTemplateUpdateRequest",
    "ScheduleCreateRequest",
    "ScheduleResponse",
    "ScheduleUpdateRequest",
    "StageAdvanceRequest",
    "TemplateValidationRequest",
    "TemplateValidationResponse",
    "TokenClaims",
    "TokenResponse",
    "UserCreateRequest",
    "UserResponse",
    "UserUpdateRequest",
    "WebhookBulkResult",
    "WebhookLeadResult",
    "WhatsAppInboundMessage",
    "WhatsAppSendRequest",
]
