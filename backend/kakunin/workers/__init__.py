"""Celery workers: OCR on upload completion and the daily batch export."""

from .celery_app import celery_app

__all__ = ["celery_app"]
