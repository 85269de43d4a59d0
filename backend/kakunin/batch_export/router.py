"""Batch export endpoints (ADMIN): ledger listing and manual trigger."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_admin
from ..database import get_db
from ..models.user import User
from ..storage import get_export_storage
from ..domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from .service import list_runs, run_batch_export

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch-exports", tags=["batch-exports"])


def optional_export_storage() -> Optional[ObjectStoragePort]:
    """Export storage, or None; run_batch_export then records the build failure on the run."""
    try:
        return get_export_storage()
    except StorageError as e:
        logger.error(f"Export storage unavailable: {e}")
        return None


@router.get("")
def list_batch_exports(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Run ledger, newest first."""
    return {"items": [run.to_dict() for run in list_runs(db, limit)]}


@router.post("/run")
async def trigger_batch_export(
    target_date: Optional[date] = Query(None, description="JST day to export (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    storage: Optional[ObjectStoragePort] = Depends(optional_export_storage),
):
    """Run the export now. A failed run answers 500 with its error message."""
    result = await run_batch_export(db, storage=storage, target_date=target_date)

    status_code = status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=result.to_response())
