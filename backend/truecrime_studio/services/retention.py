"""
Retention and size optimisation for stored projects.

Two ways to reclaim space:
- shrink: drop inline storyboard preview images, keep everything else (non-destructive)
- evict_oldest: delete whole projects, oldest first (DESTRUCTIVE, last resort)

Shrinking is not treated as a modification: `updatedAt` is left as it was.
"""
from datetime import timezone
from typing import Callable, List, Optional, Tuple

import structlog

from truecrime_studio.schemas.project import Project, ProjectMetadata
from truecrime_studio.schemas.storage import EvictionReport
from truecrime_studio.services.blob_offload import is_base64_data
from truecrime_studio.services.project_codec import project_size
from truecrime_studio.services.project_repository import ProjectRepository
from truecrime_studio.services.quota_monitor import QuotaMonitor

logger = structlog.get_logger()


def _age_key(indexed: Tuple[int, Project]) -> tuple:
    index, project = indexed
    created = project.created_at
    if created is None:
        # Undated records sort after every dated one.
        return (1, 0.0, index)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (0, created.timestamp(), index)


def oldest_first(projects: List[Project]) -> List[Project]:
    """Order by createdAt ascending; equal timestamps keep their stored order."""
    return [p for _, p in sorted(enumerate(projects), key=_age_key)]


def strip_preview_images(project: Project) -> bool:
    """
    Null out inline storyboard preview images in place. True if anything changed.

    Offloaded previews (URL plus object path) are kept so the remote object can
    still be released with the project.
    """
    storyboard = project.storyboard_data
    if storyboard is None:
        return False
    changed = False
    for scene in storyboard.scenes:
        image = scene.preview_image
        if not image or scene.preview_image_path or not is_base64_data(image):
            continue
        scene.preview_image = None
        changed = True
    return changed


class ProjectRetention:
    def __init__(
        self,
        repository: ProjectRepository,
        monitor: QuotaMonitor,
        *,
        on_evicted: Optional[Callable[[Project], None]] = None,
    ) -> None:
        self._repository = repository
        self._monitor = monitor
        self._on_evicted = on_evicted

    def list_metadata(self) -> List[ProjectMetadata]:
        return [
            ProjectMetadata(
                id=p.id or "",
                name=p.name or "Unnamed Project",
                created_at=p.created_at,
                size_bytes=project_size(p),
            )
            for p in oldest_first(self._repository.get_all())
        ]

    def evict_oldest(self, target_percentage: float) -> EvictionReport:
        """
        DESTRUCTIVE: delete whole projects, oldest first, until usage is at or
        below `target_percentage` or no projects remain.

        Terminates after at most one pass over the collection. The report's
        `exhausted` flag is set when the target could not be reached and every
        project is gone; callers must surface that to the user.
        """
        evicted: List[str] = []
        freed = 0

        for project in oldest_first(self._repository.get_all()):
            if self._monitor.get_usage().percentage_used <= target_percentage:
                break
            before = self._repository.namespace_size()
            if not self._repository.delete(project.id):
                logger.error("retention.evict_failed", project_id=project.id)
                continue
            released = max(before - self._repository.namespace_size(), 0)
            freed += released
            evicted.append(project.id)
            logger.warning(
                "retention.project_evicted",
                project_id=project.id,
                project_name=project.name,
                created_at=project.created_at.isoformat() if project.created_at else None,
                freed_bytes=released,
                destructive=True,
            )
            if self._on_evicted is not None:
                self._on_evicted(project)

        final = self._monitor.get_usage().percentage_used
        exhausted = final > target_percentage and not self._repository.get_all()
        if exhausted:
            logger.error(
                "retention.eviction_exhausted",
                target_percentage=target_percentage,
                final_percentage=final,
                evicted=len(evicted),
            )
        return EvictionReport(
            target_percentage=target_percentage,
            evicted_ids=evicted,
            freed_bytes=freed,
            final_percentage=final,
            exhausted=exhausted,
        )

    def shrink(self, project_id: str) -> bool:
        """Drop the preview images of one project. False if it does not exist or the write failed."""
        project = self._repository.get(project_id)
        if project is None:
            return False
        if not strip_preview_images(project):
            return True
        before = project.updated_at
        ok = self._repository.rewrite(project)
        if ok:
            logger.info("retention.project_shrunk", project_id=project_id, updated_at=str(before))
        return ok

    def shrink_all(self) -> int:
        """Strip preview images from every project in one write. Returns the number processed."""
        projects = self._repository.get_all()
        if not projects:
            return 0
        changed = [strip_preview_images(p) for p in projects]
        if not any(changed):
            return len(projects)
        if not self._repository.rewrite_all(projects):
            logger.error("retention.shrink_all_failed", count=len(projects))
            return 0
        logger.info("retention.projects_shrunk", count=len(projects), changed=sum(changed))
        return len(projects)
