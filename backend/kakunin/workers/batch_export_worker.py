"""Batch export worker - daily Celery beat task.

Scheduled just after JST midnight (see celery_app.beat_schedule) and exports
the JST day that has just ended. Every execution creates its own ledger row;
the CSV for the day is overwritten.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, Optional

from celery import shared_task

from ..batch_export.service import previous_jst_day, run_batch_export
from ..database import SessionLocal

logger = logging.getLogger(__name__)


@shared_task(name="batch_export.run_daily", bind=True)
def batch_export_task(self, target_date: Optional[str] = None) -> Dict[str, Any]:
    """Export the previous JST day's confirmed documents.

    Args:
        target_date: Optional YYYY-MM-DD to re-export a specific JST day

    Returns:
        Dict with success, document_count and csv_path (or error)
    """
    day = date.fromisoformat(target_date) if target_date else previous_jst_day()

    logger.info(f"Batch export task started for {day}")
    db = SessionLocal()
    try:
        result = asyncio.run(run_batch_export(db, target_date=day))
        return result.to_response()
    finally:
        db.close()
