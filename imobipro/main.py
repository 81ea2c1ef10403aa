"""Application entrypoint: FastAPI app factory and error mapping."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from imobipro.api.v1.router import get_api_router
from imobipro.core.config import get_config
from imobipro.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    ImmutableRecordError,
    ImobiproException,
    IntegrationError,
    InvalidTransitionError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from imobipro.core.logging_config import configure_logging
from imobipro.schemas.common import ErrorEnvelope

logger = logging.getLogger(__name__)

# Looked up along the exception's MRO, so subclasses win over their bases.
ERROR_STATUS: dict[type[ImobiproException], tuple[int, str]] = {
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error"),
    InvalidTransitionError: (status.HTTP_409_CONFLICT, "invalid_transition"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    ConflictError: (status.HTTP_409_CONFLICT, "conflict"),
    ImmutableRecordError: (status.HTTP_409_CONFLICT, "immutable_record"),
    DatabaseError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "database_error"),
    ServiceError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "service_error"),
    IntegrationError: (status.HTTP_502_BAD_GATEWAY, "integration_error"),
    ConfigurationError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "configuration_error"),
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, "authentication_error"),
    AuthorizationError: (status.HTTP_403_FORBIDDEN, "authorization_error"),
}

GENERIC_DETAILS = {
    "database_error": "A database error occurred. Please try again.",
    "service_error": "The request could not be completed. Please try again.",
    "integration_error": "An external service is unavailable. Please try again later.",
    "configuration_error": "The server is misconfigured.",
}


def resolve_error(exc: ImobiproException) -> tuple[int, str]:
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS:
            return ERROR_STATUS[klass]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"


def _error_response(status_code: int, error_code: str, detail: str, errors: list | None = None) -> JSONResponse:
    envelope = ErrorEnvelope(error_code=error_code, detail=detail, errors=errors)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope.model_dump(exclude_none=True)))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ImobiproException)
    async def handle_domain_error(request: Request, exc: ImobiproException) -> JSONResponse:
        status_code, error_code = resolve_error(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "api.error",
            extra={
                "event": "api.error",
                "path": request.url.path,
                "status_code": status_code,
                "error_code": error_code,
                "reason": str(exc),
            },
        )
        return _error_response(status_code, error_code, GENERIC_DETAILS.get(error_code, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg", "")}
            for error in exc.errors()
        ]
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "validation_error",
            "Request validation failed.",
            errors=errors,
        )


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    configure_logging()
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION, debug=cfg.DEBUG)
    app.include_router(get_api_router())
    register_exception_handlers(app)

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Expose ASGI app for `uvicorn imobipro.main:app`.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    from imobipro.core.startup import bootstrap

    bootstrap()
    cfg = get_config()
    uvicorn.run("imobipro.main:app", host=cfg.API_HOST, port=cfg.API_PORT)
