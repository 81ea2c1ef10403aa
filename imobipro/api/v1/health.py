"""Health endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from imobipro.core.config import get_config
from imobipro.core.dependencies import get_db_session

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    cfg = get_config()
    return {"status": "ok", "service": cfg.APP_NAME, "version": cfg.APP_VERSION}


@router.get("/health/ready")
def readiness(db: Session = Depends(get_db_session)) -> dict:
    cfg = get_config()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "features": {"auto_assign": cfg.FEATURE_AUTO_ASSIGN, "n8n_events": cfg.FEATURE_N8N_EVENTS},
    }
