"""Component checks behind /health and /ready.

Database and object storage are hard dependencies: either one failing makes
the service unhealthy. OCR is soft: without a Vision API key uploads still
work and operators type the fields in by hand, so it only degrades.
"""

import time
from enum import Enum
from typing import Callable, Dict, Optional
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import Settings
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {"status": self.status.value, "message": self.message, "latency_ms": self.latency_ms}


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def check_database_health(db: Session) -> ComponentHealth:
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, f"Database error: {type(e).__name__}")
    return ComponentHealth(HealthStatus.HEALTHY, "Database connection OK", _elapsed_ms(start))


async def check_object_storage_health(
    storage_factory: Callable[[], ObjectStoragePort],
) -> ComponentHealth:
    """Build the document storage adapter and confirm its bucket answers."""
    start = time.perf_counter()
    try:
        storage = storage_factory()
        await storage.verify_bucket_exists()
    except Exception as e:
        logger.error(f"Object storage health check failed: {e}", exc_info=True)
        return ComponentHealth(HealthStatus.UNHEALTHY, f"Object storage error: {type(e).__name__}")
    return ComponentHealth(HealthStatus.HEALTHY, "Object storage connection OK", _elapsed_ms(start))


def check_ocr_health(settings: Settings) -> ComponentHealth:
    # Configuration only; probing the Vision API would spend quota
    if settings.ocr_configured:
        return ComponentHealth(HealthStatus.HEALTHY, "Vision API key configured")
    return ComponentHealth(HealthStatus.DEGRADED, "Vision API key not set; manual entry only")


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    statuses = {c.status for c in components.values()}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
