"""Kakunin Backend - FastAPI application factory.

Identity document intake: upload, OCR field extraction, human review and the
nightly batch export. `app` is the ASGI entry point (uvicorn kakunin.main:app).
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .domain.documents.document_status import StateTransitionError
from .domain.documents.ports.object_storage_port import StorageError

from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router

from .documents.router import router as documents_router
from .ocr.router import router as ocr_router
from .batch_export.router import router as batch_export_router

API_PREFIX = "/api/v1"
API_VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"Kakunin API starting: env={settings.ENV}")
    if not settings.ocr_configured:
        logger.warning("GOOGLE_VISION_API_KEY is not set; OCR requests will fall back to manual entry")

    yield

    logger.info("Kakunin API shutting down")


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Input values are left out: they may hold personal data
        details = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
            for error in exc.errors()
        ]
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "validation_error",
            "Request validation failed",
            details=details,
        )

    @app.exception_handler(StateTransitionError)
    async def state_transition_exception_handler(request: Request, exc: StateTransitionError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "invalid_transition", str(exc))

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Object storage error on {request.method} {request.url.path}: {exc}")
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "storage_unavailable",
            "Object storage is unavailable. Please try again later.",
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "database_error",
            "A database error occurred. Please try again later.",
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred. Please try again later.",
        )


def create_app(settings: Settings = None) -> FastAPI:
    """Build the application: logging, middleware, error handlers and routers."""
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    docs_enabled = settings.ENV != "production"
    application = FastAPI(
        title="Kakunin API",
        description="Identity document intake with OCR field extraction and review workflow",
        version=API_VERSION,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    _register_exception_handlers(application)

    application.include_router(observability_router)
    for router in (documents_router, ocr_router, batch_export_router):
        application.include_router(router, prefix=API_PREFIX)

    @application.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {
            "name": "Kakunin API",
            "version": API_VERSION,
            "status": "running",
            "docs": "/docs" if docs_enabled else None,
        }

    return application


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "kakunin.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENV == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
