"""Persisted project aggregate.

Stored records use camelCase keys; the models expose snake_case attributes and
accept either spelling on input. Unknown keys are kept so a record survives a
load/save cycle unchanged.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class TimelineEntry(CamelModel):
    date: str = ""
    event: str = ""


class KeyPerson(CamelModel):
    name: str = ""
    role: str = ""


class ResearchSource(CamelModel):
    title: str = ""
    url: str = ""
    snippet: str = ""
    source: str = ""
    credibility: Literal["high", "medium", "low"] = "medium"


class ResearchData(CamelModel):
    case_name: str = ""
    summary: str = ""
    timeline: List[TimelineEntry] = Field(default_factory=list)
    key_people: List[KeyPerson] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    outcomes: List[str] = Field(default_factory=list)
    sources: List[ResearchSource] = Field(default_factory=list)
    sensitive_elements: List[str] = Field(default_factory=list)
    fact_checking_score: float = 0.0
    researched_at: Optional[str] = None


class StoryboardScene(CamelModel):
    scene_id: str = ""
    duration: float = 0.0
    script_excerpt: str = ""
    visual_prompt: str = ""
    camera_angle: str = ""
    camera_movement: str = ""
    lighting: str = ""
    mood: str = ""
    characters: List[str] = Field(default_factory=list)
    setting: str = ""
    editor_notes: str = ""
    # Inline data URI, or the URL returned by the blob gateway once offloaded.
    preview_image: Optional[str] = None
    preview_image_path: Optional[str] = None


class StoryboardData(CamelModel):
    scenes: List[StoryboardScene] = Field(default_factory=list)
    total_scenes: int = 0
    total_duration: float = 0.0
    global_style: str = ""
    generated_at: Optional[str] = None


class VoiceoverTimestamp(CamelModel):
    time: float = 0.0
    scene_id: str = ""
    label: str = ""


class VoiceoverData(CamelModel):
    audio_data: Optional[str] = None
    audio_url: Optional[str] = None
    audio_path: Optional[str] = None
    duration: float = 0.0
    voice_style: Literal["dramatic", "neutral", "mysterious"] = "dramatic"
    speed: float = 1.0
    pitch: float = 1.0
    timestamps: List[VoiceoverTimestamp] = Field(default_factory=list)
    generated_at: Optional[str] = None


class VideoScene(CamelModel):
    id: str = ""
    scene_id: str = ""
    image_url: str = ""
    duration: float = 0.0
    transition: Literal["fade", "dissolve", "cut", "wipe"] = "fade"
    audio_start: float = 0.0
    audio_end: float = 0.0
    order: int = 0


RenderStatus = Literal["pending", "processing", "completed", "failed"]


class VideoData(CamelModel):
    scenes: List[VideoScene] = Field(default_factory=list)
    total_duration: float = 0.0
    audio_url: Optional[str] = None
    export_format: Literal["mp4", "mov"] = "mp4"
    resolution: Literal["1080p", "4k"] = "1080p"
    fps: Literal[30, 60] = 30
    generated_at: Optional[str] = None
    render_id: Optional[str] = None
    render_status: Optional[RenderStatus] = None
    rendered_video_url: Optional[str] = None


class ProjectConfig(CamelModel):
    timeframe: str = "7_days"
    language: str = "English (US)"
    target_runtime: int = 10


DEFAULT_PROJECT_NAME = "Untitled Project"


class Project(CamelModel):
    id: Optional[str] = None
    name: str = DEFAULT_PROJECT_NAME
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    current_phase: int = Field(default=0, ge=0, le=7)
    config: ProjectConfig = Field(default_factory=ProjectConfig)
    research_data: Optional[ResearchData] = None
    script_text: str = ""
    storyboard_data: Optional[StoryboardData] = None
    voiceover_data: Optional[VoiceoverData] = None
    video_data: Optional[VideoData] = None

    def has_content(self) -> bool:
        """True when at least one pipeline output slice holds data."""
        return bool(
            self.research_data
            or self.script_text
            or self.storyboard_data
            or self.voiceover_data
            or self.video_data
        )


class ProjectMetadata(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None
    size_bytes: int

    @property
    def size_kb(self) -> int:
        return round(self.size_bytes / 1024)
