"""
Client for the remote pipeline functions (research, script, storyboard,
voiceover, render).

Calls go through `with_retry`. Response bodies are validated; a body of the
wrong shape is logged and returned as None rather than raised. A body that
reports `success: false` raises PipelineServiceError.

Nothing in here is awaited by project persistence.
"""
from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from truecrime_studio.core.config import Settings, get_settings
from truecrime_studio.schemas.pipeline import (
    GeneratedScript,
    RenderProgress,
    RenderRequest,
    RenderSettings,
    RenderStatusRequest,
    RenderTicket,
    ResearchRequest,
    ScriptOptions,
    ScriptRequest,
    ScriptResearchInput,
    ScriptResponse,
    StoryboardRequest,
    StoryboardResponse,
    VoiceoverRequest,
    VoiceoverResponse,
)
from truecrime_studio.schemas.project import ResearchData, StoryboardData, VideoData
from truecrime_studio.services.retry import PipelineServiceError, RetryConfig, with_retry

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


def parse_response(model: Type[M], payload: Any, *, function: str) -> Optional[M]:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("pipeline.response_invalid", function=function, errors=e.error_count())
        return None


class PipelineClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: str = "",
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self._http = http
        self._api_key = api_key
        self._retry = retry or RetryConfig()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PipelineClient":
        settings = settings or get_settings()
        if not settings.pipeline_api_base_url:
            raise RuntimeError("PIPELINE_API_BASE_URL is not configured")
        http = httpx.AsyncClient(
            base_url=settings.pipeline_api_base_url.rstrip("/"),
            timeout=httpx.Timeout(settings.pipeline_timeout_seconds),
        )
        retry = RetryConfig(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )
        return cls(http, api_key=settings.pipeline_api_key, retry=retry)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _invoke(self, function: str, body: BaseModel) -> Any:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = body.model_dump(mode="json", by_alias=True)

        async def call() -> Any:
            logger.debug("pipeline.request", function=function)
            response = await self._http.post(f"/{function}", json=payload, headers=headers)
            if response.status_code >= 500 or response.status_code == 429:
                response.raise_for_status()
            data = response.json()
            if isinstance(data, dict) and (data.get("success") is False or response.is_error):
                raise PipelineServiceError(
                    str(data.get("error") or f"{function} failed"),
                    status_code=response.status_code,
                )
            response.raise_for_status()
            return data

        data = await with_retry(call, self._retry)
        logger.debug("pipeline.response", function=function)
        return data

    async def research_case(self, case_name: str, timeframe: str = "7_days") -> Optional[ResearchData]:
        data = await self._invoke("research-case", ResearchRequest(case_name=case_name, timeframe=timeframe))
        return parse_response(ResearchData, data, function="research-case")

    async def generate_script(
        self,
        research: ResearchData,
        *,
        target_duration: int = 10,
        style: str = "documentary",
    ) -> Optional[GeneratedScript]:
        body = ScriptRequest(
            research_data=ScriptResearchInput(
                case_name=research.case_name,
                summary=research.summary,
                timeline=research.timeline,
                key_people=research.key_people,
                locations=research.locations,
                outcomes=research.outcomes,
            ),
            config=ScriptOptions(target_duration=target_duration, style=style),
        )
        data = await self._invoke("generate-script", body)
        parsed = parse_response(ScriptResponse, data, function="generate-script")
        return parsed.script if parsed else None

    async def generate_storyboard(
        self, script: str, case_name: str, visual_style: str = "claymation"
    ) -> Optional[StoryboardData]:
        body = StoryboardRequest(script=script, case_name=case_name, visual_style=visual_style)
        data = await self._invoke("generate-storyboard", body)
        parsed = parse_response(StoryboardResponse, data, function="generate-storyboard")
        return parsed.storyboard if parsed else None

    async def generate_voiceover(
        self,
        text: str,
        *,
        voice_style: str = "dramatic",
        speed: float = 1.0,
        pitch: float = 1.0,
    ) -> Optional[VoiceoverResponse]:
        body = VoiceoverRequest(text=text, voice_style=voice_style, speed=speed, pitch=pitch)
        data = await self._invoke("generate-voiceover", body)
        return parse_response(VoiceoverResponse, data, function="generate-voiceover")

    async def render_video(self, video: VideoData) -> Optional[RenderTicket]:
        body = RenderRequest(
            scenes=video.scenes,
            audio_url=video.audio_url,
            settings=RenderSettings(resolution=video.resolution, fps=video.fps),
        )
        data = await self._invoke("render-video", body)
        return parse_response(RenderTicket, data, function="render-video")

    async def check_render_status(self, render_id: str) -> Optional[RenderProgress]:
        data = await self._invoke("check-render-status", RenderStatusRequest(render_id=render_id))
        return parse_response(RenderProgress, data, function="check-render-status")


def apply_render_ticket(video: VideoData, ticket: RenderTicket) -> VideoData:
    """Record render linkage on the project's video data."""
    update: dict[str, Any] = {"render_id": ticket.render_id}
    if ticket.status in {"completed", "done"}:
        update["render_status"] = "completed"
        update["rendered_video_url"] = ticket.video_url
    elif ticket.status == "failed":
        update["render_status"] = "failed"
    else:
        update["render_status"] = "processing"
    return video.model_copy(update=update)


def apply_render_progress(video: VideoData, progress: RenderProgress) -> VideoData:
    if progress.is_done:
        return video.model_copy(update={"render_status": "completed", "rendered_video_url": progress.video_url})
    if progress.is_failed:
        return video.model_copy(update={"render_status": "failed"})
    return video.model_copy(update={"render_status": "processing"})
