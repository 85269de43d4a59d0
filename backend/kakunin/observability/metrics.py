"""Prometheus metrics for Kakunin.

Labels never carry user or document identifiers.
"""

from prometheus_client import Counter, Histogram

# OCR metrics
ocr_requests_total = Counter(
    "kakunin_ocr_requests_total",
    "Total OCR attempts by outcome",
    ["outcome"]  # success|OCR_RATE_LIMIT_EXCEEDED|OCR_NO_TEXT|OCR_API_ERROR|...
)

ocr_duration_seconds = Histogram(
    "kakunin_ocr_duration_seconds",
    "Time from OCR start to terminal outcome in seconds",
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Document lifecycle metrics
document_transitions_total = Counter(
    "kakunin_document_transitions_total",
    "Document history actions recorded",
    ["action"]
)

# Batch export metrics
batch_export_runs_total = Counter(
    "kakunin_batch_export_runs_total",
    "Batch export runs by final status",
    ["status"]  # success|failed
)

batch_export_documents_total = Counter(
    "kakunin_batch_export_documents_total",
    "Documents written to batch export CSVs"
)

# HTTP metrics, labelled by route template so path ids stay out of labels
http_requests_total = Counter(
    "kakunin_http_requests_total",
    "HTTP requests by method, route and status code",
    ["method", "route", "status_code"]
)

http_request_duration_seconds = Histogram(
    "kakunin_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "route"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)
