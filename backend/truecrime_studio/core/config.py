from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[2]
REPO_ROOT = BACKEND_DIR.parent
ENV_FILES = [REPO_ROOT / ".env", BACKEND_DIR / ".env"]

for env_path in ENV_FILES:
    if env_path.exists():
        load_dotenv(env_path, override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="allow", populate_by_name=True)

    app_name: str = Field(default="TrueCrime Clay Studio", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="2.0.0", alias="APP_VERSION")

    # Persistent key/value store
    store_backend: Literal["memory", "file", "redis"] = Field(default="file", alias="STORE_BACKEND")
    store_file_path: str = Field(default=".data/local_storage.json", alias="STORE_FILE_PATH")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_key_prefix: str = Field(default="truecrime", alias="REDIS_KEY_PREFIX")

    # Storage budget
    storage_namespace_key: str = Field(default="truecrime_projects", alias="STORAGE_NAMESPACE_KEY")
    storage_version_key: str = Field(default="app_version", alias="STORAGE_VERSION_KEY")
    storage_quota_bytes: int = Field(default=5 * 1024 * 1024, ge=1, alias="STORAGE_QUOTA_BYTES")
    storage_recovery_percentage: float = Field(
        default=70.0, ge=0.0, le=100.0, alias="STORAGE_RECOVERY_PERCENTAGE"
    )
    storage_poll_interval_seconds: float = Field(default=30.0, gt=0, alias="STORAGE_POLL_INTERVAL_SECONDS")
    autosave_debounce_seconds: float = Field(default=10.0, gt=0, alias="AUTOSAVE_DEBOUNCE_SECONDS")

    # Blob offload (MinIO / S3 compatible)
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: str | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_bucket: str = Field(default="truecrime-assets", alias="S3_BUCKET")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_secure: bool | None = Field(default=None, alias="S3_SECURE")
    s3_public_base_url: str | None = Field(default=None, alias="S3_PUBLIC_BASE_URL")
    offload_timeout_seconds: float = Field(default=30.0, gt=0, alias="OFFLOAD_TIMEOUT_SECONDS")

    # Remote pipeline services
    pipeline_api_base_url: str | None = Field(default=None, alias="PIPELINE_API_BASE_URL")
    pipeline_api_key: str = Field(default="", alias="PIPELINE_API_KEY")
    pipeline_timeout_seconds: float = Field(default=120.0, gt=0, alias="PIPELINE_TIMEOUT_SECONDS")

    # Retry settings
    retry_max_attempts: int = Field(default=3, ge=1, alias="RETRY_MAX_ATTEMPTS")
    retry_initial_delay_seconds: float = Field(default=1.0, ge=0, alias="RETRY_INITIAL_DELAY_SECONDS")
    retry_max_delay_seconds: float = Field(default=10.0, ge=0, alias="RETRY_MAX_DELAY_SECONDS")

    backend_cors_origins_raw: str = Field(default="http://localhost:5173", alias="BACKEND_CORS_ORIGINS")

    @property
    def backend_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins_raw.split(",") if origin.strip()]

    @property
    def offload_enabled(self) -> bool:
        return all([self.s3_endpoint_url, self.s3_access_key, self.s3_secret_key])


@lru_cache
def get_settings() -> Settings:
    return Settings()
