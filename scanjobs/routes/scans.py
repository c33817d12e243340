"""Scan routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from scanjobs.config import settings
from scanjobs.errors import Forbidden
from scanjobs.schemas.scan import ClearResponse, ScanRequest
from scanjobs.services.scan_service import ScanService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scans", tags=["scans"])


def get_scan_service(request: Request) -> ScanService:
    """Return the process-wide scan service held on the app."""
    return request.app.state.scan_service


def require_admin(
    x_api_key: Optional[str] = Header(default=None),
    x_actor: Optional[str] = Header(default=None),
) -> str:
    """Gateway check. Returns the identity of the calling actor."""
    if settings.ADMIN_API_KEY and x_api_key != settings.ADMIN_API_KEY:
        raise Forbidden()
    return x_actor or "admin"


@router.post("/run")
def start_scan(
    data: ScanRequest,
    actor: str = Depends(require_admin),
    service: ScanService = Depends(get_scan_service),
):
    """Queue a scan; batches run in the background."""
    status = service.start_scan(data, origin="admin", async_=True, initiated_by=actor)
    logger.info(f"Scan {status['id']} started by {actor}")
    return status


@router.get("/status")
def get_status(
    actor: str = Depends(require_admin),
    service: ScanService = Depends(get_scan_service),
):
    """Get current scan status, last run and next scheduled run."""
    return service.get_status()


@router.delete("/job", response_model=ClearResponse)
def clear_job(
    actor: str = Depends(require_admin),
    service: ScanService = Depends(get_scan_service),
):
    """Delete the current job and cancel pending batches."""
    service.clear_job()
    logger.info(f"Scan job cleared by {actor}")
    return ClearResponse(message="Scan job cleared")
