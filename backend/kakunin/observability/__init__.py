"""Observability module: structured logging, metrics and health checks."""

from .logging_config import configure_logging, get_logger
from .metrics import (
    ocr_requests_total,
    ocr_duration_seconds,
    document_transitions_total,
    batch_export_runs_total,
    batch_export_documents_total,
)
from .request_id import request_id_var, get_request_id, set_request_id, generate_request_id
from .health import HealthStatus, ComponentHealth
from .middleware import RequestIDMiddleware

__all__ = [
    "configure_logging",
    "get_logger",
    "ocr_requests_total",
    "ocr_duration_seconds",
    "document_transitions_total",
    "batch_export_runs_total",
    "batch_export_documents_total",
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    "HealthStatus",
    "ComponentHealth",
    "RequestIDMiddleware",
]
