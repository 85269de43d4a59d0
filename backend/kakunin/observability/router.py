"""Observability API endpoints: metrics, health and readiness."""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from ..config import get_settings
from ..database import get_db
from ..storage import get_document_storage
from .health import (
    check_database_health,
    check_object_storage_health,
    check_ocr_health,
    get_overall_health,
    HealthStatus,
)

router = APIRouter(tags=["Observability"])


@router.get("/metrics", include_in_schema=False)
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/health", summary="Health check endpoint")
async def health_check(db: Session = Depends(get_db)):
    """Database, document storage and OCR configuration.

    200 while healthy or degraded (OCR off), 503 once a hard dependency fails.
    """
    components = {
        "database": check_database_health(db),
        "object_storage": await check_object_storage_health(get_document_storage),
        "ocr": check_ocr_health(get_settings()),
    }
    overall_status = get_overall_health(components)

    return JSONResponse(
        content={
            "status": overall_status.value,
            "components": {name: comp.to_dict() for name, comp in components.items()},
        },
        status_code=503 if overall_status == HealthStatus.UNHEALTHY else 200,
    )


@router.get("/ready", summary="Readiness check endpoint")
def readiness_check(db: Session = Depends(get_db)):
    """Ready when the database answers."""
    db_health = check_database_health(db)

    if db_health.status == HealthStatus.HEALTHY:
        return {"status": "ready", "message": "Application is ready to serve traffic"}
    return JSONResponse(
        content={"status": "not_ready", "message": db_health.message},
        status_code=503,
    )
