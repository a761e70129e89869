from truecrime_studio.schemas.project import (
    DEFAULT_PROJECT_NAME,
    KeyPerson,
    Project,
    ProjectConfig,
    ProjectMetadata,
    ResearchData,
    ResearchSource,
    StoryboardData,
    StoryboardScene,
    TimelineEntry,
    VideoData,
    VideoScene,
    VoiceoverData,
    VoiceoverTimestamp,
)
from truecrime_studio.schemas.storage import (
    CleanupRequest,
    CleanupResponse,
    EvictionReport,
    OptimizeResponse,
    StorageHealth,
    StorageStatus,
    StorageUsage,
    UploadResult,
)

__all__ = [
    "DEFAULT_PROJECT_NAME",
    "KeyPerson",
    "Project",
    "ProjectConfig",
    "ProjectMetadata",
    "ResearchData",
    "ResearchSource",
    "StoryboardData",
    "StoryboardScene",
    "TimelineEntry",
    "VideoData",
    "VideoScene",
    "VoiceoverData",
    "VoiceoverTimestamp",
    "CleanupRequest",
    "CleanupResponse",
    "EvictionReport",
    "OptimizeResponse",
    "StorageHealth",
    "StorageStatus",
    "StorageUsage",
    "UploadResult",
]
