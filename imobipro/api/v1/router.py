"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from imobipro.api.v1 import (
    agents,
    appointments,
    auth,
    calendar,
    contacts,
    deals,
    health,
    properties,
    reports,
    users,
    webhooks,
    whatsapp,
)
from imobipro.core.config import get_config

api_router = APIRouter(prefix=get_config().API_PREFIX)
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(agents.router)
api_router.include_router(contacts.router)
api_router.include_router(deals.router)
api_router.include_router(properties.router)
api_router.include_router(appointments.router)
api_router.include_router(calendar.router)
api_router.include_router(webhooks.router)
api_router.include_router(whatsapp.router)
api_router.include_router(reports.router)


def get_api_router() -> APIRouter:
    return api_router
