"""
Project workspace: the live editing state of one pipeline run.

Holds the current project in memory, pushes every observed change through the
autosave scheduler and talks to the repository for explicit save/load/delete.
The repository is injected. The debounce defaults to AUTOSAVE_DEBOUNCE_SECONDS.
Generated media goes through the offloader, when one is given, before it is
stored on the project; deleting a project releases its offloaded objects.
"""
from __future__ import annotations

from typing import Any, List, Optional

import structlog

from truecrime_studio.core.config import get_settings
from truecrime_studio.schemas.project import DEFAULT_PROJECT_NAME, Project, ProjectConfig, VoiceoverData
from truecrime_studio.services.autosave import AutosaveScheduler
from truecrime_studio.services.blob_offload import MediaOffloader
from truecrime_studio.services.pipeline_client import PipelineClient
from truecrime_studio.services.project_repository import ProjectRepository

logger = structlog.get_logger()

OBSERVED_SLICES = frozenset(
    {
        "research_data",
        "script_text",
        "storyboard_data",
        "voiceover_data",
        "video_data",
        "current_phase",
        "name",
        "config",
    }
)


class ProjectWorkspace:
    def __init__(
        self,
        repository: ProjectRepository,
        *,
        autosave_delay_seconds: Optional[float] = None,
        offloader: Optional[MediaOffloader] = None,
    ) -> None:
        if autosave_delay_seconds is None:
            autosave_delay_seconds = get_settings().autosave_debounce_seconds
        self._repository = repository
        self._offloader = offloader
        self._project = Project()
        self._scheduler = AutosaveScheduler(self._autosave, autosave_delay_seconds)
        self.last_save_ok: Optional[bool] = None

    @property
    def project(self) -> Project:
        return self._project

    @property
    def project_id(self) -> Optional[str]:
        return self._project.id

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    def snapshot(self) -> Project:
        return self._project.model_copy(deep=True)

    def update(self, **changes: Any) -> None:
        """
        Apply changes to observed slices and restart the autosave window.

        Needs a running event loop when something changed; without one this
        raises RuntimeError and the project is left as it was.
        """
        unknown = set(changes) - OBSERVED_SLICES
        if unknown:
            raise AttributeError(f"Not an editable project slice: {', '.join(sorted(unknown))}")
        merged = self._project.model_dump()
        merged.update(changes)
        updated = Project.model_validate(merged)
        changed = any(getattr(updated, k) != getattr(self._project, k) for k in changes)
        if changed:
            self._scheduler.notify_change()
        self._project = updated

    def save_current(self) -> Optional[Project]:
        saved = self._repository.save(self._project)
        self.last_save_ok = saved is not None
        if saved is None:
            logger.warning("workspace.save_failed", project_id=self._project.id)
        return saved

    def load_project(self, project_id: str) -> bool:
        """Replace the workspace with a stored project. Loading does not schedule a save."""
        project = self._repository.get(project_id)
        if project is None:
            logger.info("workspace.project_not_found", project_id=project_id)
            return False
        self._scheduler.flush()
        self._scheduler.cancel()
        self._project = project
        return True

    async def delete_project(self, project_id: str) -> bool:
        project = self._repository.get(project_id)
        deleted = self._repository.delete(project_id)
        if self._project.id == project_id:
            self._scheduler.cancel()
            self._reset()
        if deleted and project is not None and self._offloader is not None:
            await self._offloader.release(project)
        return deleted

    async def generate_storyboard(self, client: PipelineClient, visual_style: str = "claymation") -> bool:
        """Storyboard the current script. Preview images are offloaded before they land on the project."""
        storyboard = await client.generate_storyboard(
            self._project.script_text, self._case_name(), visual_style=visual_style
        )
        if storyboard is None:
            return False
        if self._offloader is not None:
            storyboard = await self._offloader.offload_storyboard(storyboard)
        self.update(storyboard_data=storyboard)
        return True

    async def generate_voiceover(
        self,
        client: PipelineClient,
        *,
        voice_style: str = "dramatic",
        speed: float = 1.0,
        pitch: float = 1.0,
    ) -> bool:
        response = await client.generate_voiceover(
            self._project.script_text, voice_style=voice_style, speed=speed, pitch=pitch
        )
        if response is None:
            return False
        voiceover = VoiceoverData(
            audio_data=response.audio_data,
            duration=response.duration,
            voice_style=response.voice_style,
            speed=response.speed,
            pitch=response.pitch,
            generated_at=response.generated_at,
        )
        if self._offloader is not None:
            voiceover = await self._offloader.offload_voiceover(voiceover, self._project.name)
        self.update(voiceover_data=voiceover)
        return True

    def create_new_project(self) -> None:
        """Start an empty project. A pending save of the current one runs first."""
        self._scheduler.flush()
        self._reset()

    def list_projects(self) -> List[Project]:
        return self._repository.get_all()

    def close(self) -> None:
        self._scheduler.dispose()

    def _case_name(self) -> str:
        research = self._project.research_data
        if research is not None and research.case_name:
            return research.case_name
        return self._project.name

    def _reset(self) -> None:
        self._project = Project(name=DEFAULT_PROJECT_NAME, config=ProjectConfig())

    def _autosave(self) -> None:
        if not self._project.has_content():
            return
        self.save_current()
