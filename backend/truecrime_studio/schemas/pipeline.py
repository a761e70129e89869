"""Request and response bodies for the remote pipeline functions."""
from typing import List, Literal, Optional

from pydantic import Field

from truecrime_studio.schemas.project import (
    CamelModel,
    KeyPerson,
    StoryboardData,
    TimelineEntry,
    VideoScene,
)


class ResearchRequest(CamelModel):
    case_name: str
    timeframe: str = "7_days"


class ScriptResearchInput(CamelModel):
    case_name: str = ""
    summary: str = ""
    timeline: List[TimelineEntry] = Field(default_factory=list)
    key_people: List[KeyPerson] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    outcomes: List[str] = Field(default_factory=list)


class ScriptOptions(CamelModel):
    target_duration: int = 10
    style: str = "documentary"


class ScriptRequest(CamelModel):
    research_data: ScriptResearchInput
    config: ScriptOptions = Field(default_factory=ScriptOptions)


class GeneratedScript(CamelModel):
    content: str
    word_count: int = 0
    estimated_duration: float = 0.0
    generated_at: Optional[str] = None


class ScriptResponse(CamelModel):
    success: bool = True
    script: GeneratedScript


class StoryboardRequest(CamelModel):
    script: str
    case_name: str = ""
    visual_style: str = "claymation"


class StoryboardResponse(CamelModel):
    success: bool = True
    storyboard: StoryboardData


class VoiceoverRequest(CamelModel):
    text: str
    voice_style: Literal["dramatic", "neutral", "mysterious"] = "dramatic"
    speed: float = 1.0
    pitch: float = 1.0


class VoiceoverResponse(CamelModel):
    success: bool = True
    audio_data: str
    duration: float = 0.0
    voice_style: Literal["dramatic", "neutral", "mysterious"] = "dramatic"
    speed: float = 1.0
    pitch: float = 1.0
    generated_at: Optional[str] = None


class RenderSettings(CamelModel):
    resolution: Literal["1080p", "4k"] = "1080p"
    fps: Literal[30, 60] = 30


class RenderRequest(CamelModel):
    scenes: List[VideoScene]
    audio_url: Optional[str] = None
    settings: RenderSettings = Field(default_factory=RenderSettings)


class RenderTicket(CamelModel):
    render_id: str
    status: str
    video_url: Optional[str] = None
    message: Optional[str] = None


class RenderStatusRequest(CamelModel):
    render_id: str


class RenderProgress(CamelModel):
    render_id: Optional[str] = None
    status: str
    progress: float = 0.0
    video_url: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.status in {"done", "completed"}

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"
