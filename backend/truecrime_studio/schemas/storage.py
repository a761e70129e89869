from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class StorageHealth(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class StorageUsage(BaseModel):
    used_bytes: int
    capacity_bytes: int
    percentage_used: float

    @property
    def used_kb(self) -> int:
        return round(self.used_bytes / 1024)


class StorageStatus(BaseModel):
    used_bytes: int
    used_kb: int
    capacity_bytes: int
    percentage_used: float
    status: StorageHealth
    message: str


class EvictionReport(BaseModel):
    """Outcome of an oldest-first eviction pass."""

    target_percentage: float
    evicted_ids: List[str] = Field(default_factory=list)
    freed_bytes: int = 0
    final_percentage: float
    exhausted: bool = False

    @property
    def freed_kb(self) -> int:
        return round(self.freed_bytes / 1024)


class UploadResult(BaseModel):
    url: str
    path: str
    size: int


class CleanupRequest(BaseModel):
    target_percentage: Optional[float] = Field(default=None, ge=0.0, le=100.0)


class OptimizeResponse(BaseModel):
    optimized: int
    status: StorageStatus


class CleanupResponse(BaseModel):
    report: EvictionReport
    status: StorageStatus
