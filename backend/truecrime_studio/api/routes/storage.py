"""
Storage budget endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from truecrime_studio.api.deps import StorageContext, get_monitor, get_repository, get_retention, get_storage_context
from truecrime_studio.schemas.project import ProjectMetadata
from truecrime_studio.schemas.storage import CleanupRequest, CleanupResponse, OptimizeResponse, StorageStatus
from truecrime_studio.services.project_repository import ProjectRepository
from truecrime_studio.services.quota_monitor import QuotaMonitor
from truecrime_studio.services.retention import ProjectRetention

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/status", response_model=StorageStatus)
def get_storage_status(monitor: QuotaMonitor = Depends(get_monitor)):
    """Current usage of the whole store."""
    return monitor.get_status()


@router.get("/projects", response_model=List[ProjectMetadata])
def list_project_sizes(retention: ProjectRetention = Depends(get_retention)):
    """Stored projects with their sizes, oldest first."""
    return retention.list_metadata()


@router.post("/optimize", response_model=OptimizeResponse)
def optimize_projects(
    retention: ProjectRetention = Depends(get_retention),
    monitor: QuotaMonitor = Depends(get_monitor),
):
    """Strip storyboard preview images from every project."""
    optimized = retention.shrink_all()
    return OptimizeResponse(optimized=optimized, status=monitor.get_status())


@router.post("/projects/{project_id}/optimize")
def optimize_project(
    project_id: str,
    retention: ProjectRetention = Depends(get_retention),
    repository: ProjectRepository = Depends(get_repository),
):
    if repository.get(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not retention.shrink(project_id):
        raise HTTPException(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            detail="Optimized project could not be written",
        )
    return {"optimized": True, "id": project_id}


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_old_projects(
    payload: Optional[CleanupRequest] = None,
    ctx: StorageContext = Depends(get_storage_context),
):
    """Delete the oldest projects until usage is at or below the target. Destructive."""
    target = ctx.settings.storage_recovery_percentage
    if payload is not None and payload.target_percentage is not None:
        target = payload.target_percentage
    report = ctx.retention.evict_oldest(target)
    return CleanupResponse(report=report, status=ctx.monitor.get_status())
