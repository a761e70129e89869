"""Blob offload: move large media payloads out of the project store into MinIO."""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import re
import time
from typing import Optional, Protocol, Set, Union
from urllib.parse import quote, urlparse

import structlog
import urllib3
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as Urllib3Error

from truecrime_studio.core.config import Settings, get_settings
from truecrime_studio.schemas.project import Project, StoryboardData, VoiceoverData
from truecrime_studio.schemas.storage import UploadResult

logger = structlog.get_logger()

BlobData = Union[str, bytes]

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+=*$")
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

# Unreachable endpoints surface as urllib3 errors (MaxRetryError), not S3Error.
MINIO_ERRORS = (S3Error, Urllib3Error)


class StorageConfigurationError(RuntimeError):
    """Raised when storage configuration is invalid."""


class BlobOffloadError(RuntimeError):
    """Raised when a payload could not be uploaded or removed."""


def strip_data_uri(data: str) -> str:
    return data.split(",", 1)[1] if "," in data else data


def is_base64_data(data: str) -> bool:
    return data.startswith("data:") or bool(_BASE64_RE.match(data[:100]))


def estimate_base64_size(data: str) -> int:
    """Decoded byte size of a base64 payload, data URI prefix ignored."""
    return (len(strip_data_uri(data)) * 3 + 3) // 4


def decode_blob(data: BlobData) -> bytes:
    if isinstance(data, bytes):
        return data
    try:
        return base64.b64decode(strip_data_uri(data), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise BlobOffloadError(f"Payload is not valid base64: {exc}") from exc


def safe_object_name(name: str) -> str:
    cleaned = _UNSAFE_NAME_RE.sub("-", name).strip("-")
    return cleaned or "blob"


class BlobOffloadGateway(Protocol):
    def upload_blob(self, data: BlobData, mime_type: str, suggested_name: str) -> UploadResult: ...

    def delete_blob(self, path: str) -> None: ...


class MinioBlobGateway:
    """Lightweight wrapper around MinIO for public media objects."""

    def __init__(
        self,
        *,
        client: Minio,
        bucket: str,
        public_base_url: str,
        ensure_bucket: bool = True,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")
        if ensure_bucket:
            self._ensure_bucket()

    @property
    def bucket(self) -> str:
        return self._bucket

    def _ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except MINIO_ERRORS as exc:
            raise StorageConfigurationError(
                f"Unable to ensure bucket '{self._bucket}': {exc}"
            ) from exc

    def generate_object_path(self, suggested_name: str) -> str:
        return f"{int(time.time() * 1000)}-{safe_object_name(suggested_name)}"

    def public_url(self, path: str) -> str:
        return f"{self._public_base_url}/{self._bucket}/{quote(path)}"

    def upload_blob(self, data: BlobData, mime_type: str, suggested_name: str) -> UploadResult:
        payload = decode_blob(data)
        path = self.generate_object_path(suggested_name)
        try:
            self._client.put_object(
                self._bucket,
                path,
                io.BytesIO(payload),
                length=len(payload),
                content_type=mime_type,
            )
        except MINIO_ERRORS as exc:
            raise BlobOffloadError(f"Failed to upload '{path}': {exc}") from exc
        logger.info("offload.uploaded", path=path, size=len(payload), mime_type=mime_type)
        return UploadResult(url=self.public_url(path), path=path, size=len(payload))

    def delete_blob(self, path: str) -> None:
        try:
            self._client.remove_object(self._bucket, path)
        except MINIO_ERRORS as exc:
            raise BlobOffloadError(f"Failed to delete '{path}': {exc}") from exc
        logger.info("offload.deleted", path=path)


def build_blob_gateway(settings: Settings | None = None) -> Optional[MinioBlobGateway]:
    """
    Gateway from settings, or None for local-only mode: offload not configured,
    or the endpoint could not be reached while ensuring the bucket.
    """

    settings = settings or get_settings()
    if not settings.offload_enabled:
        logger.info("offload.disabled")
        return None

    parsed = urlparse(str(settings.s3_endpoint_url))
    secure = settings.s3_secure if settings.s3_secure is not None else parsed.scheme == "https"
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(connect=5.0, read=settings.offload_timeout_seconds),
        retries=urllib3.Retry(
            total=settings.retry_max_attempts - 1,
            backoff_factor=0.2,
            status_forcelist=[500, 502, 503, 504],
        ),
    )
    client = Minio(
        parsed.netloc or parsed.path,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        secure=secure,
        region=settings.s3_region,
        http_client=http_client,
    )
    public_base = settings.s3_public_base_url or str(settings.s3_endpoint_url)
    try:
        return MinioBlobGateway(client=client, bucket=settings.s3_bucket, public_base_url=public_base)
    except StorageConfigurationError as exc:
        logger.warning("offload.unavailable", error=str(exc))
        return None


class MediaOffloader:
    """
    Offloads generated media before it reaches the project record.

    Every failure path returns the input unchanged so the payload stays inline.
    """

    def __init__(self, gateway: Optional[BlobOffloadGateway], *, timeout_seconds: float = 30.0) -> None:
        self._gateway = gateway
        self._timeout = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._gateway is not None

    async def _upload(self, data: BlobData, mime_type: str, name: str) -> Optional[UploadResult]:
        if self._gateway is None:
            return None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._gateway.upload_blob, data, mime_type, name),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("offload.timeout", name=name, timeout=self._timeout)
        except (BlobOffloadError, *MINIO_ERRORS, OSError) as exc:
            logger.warning("offload.failed", name=name, error=str(exc))
        return None

    async def offload_voiceover(self, voiceover: VoiceoverData, project_name: str) -> VoiceoverData:
        if not voiceover.audio_data or not is_base64_data(voiceover.audio_data):
            return voiceover
        result = await self._upload(voiceover.audio_data, "audio/mpeg", f"{project_name}-voiceover.mp3")
        if result is None:
            return voiceover
        return voiceover.model_copy(
            update={"audio_data": None, "audio_url": result.url, "audio_path": result.path}
        )

    async def offload_storyboard(self, storyboard: StoryboardData) -> StoryboardData:
        updated = storyboard.model_copy(deep=True)
        for scene in updated.scenes:
            image = scene.preview_image
            if not image or scene.preview_image_path or not is_base64_data(image):
                continue
            result = await self._upload(image, "image/png", f"{scene.scene_id or 'scene'}.png")
            if result is None:
                continue
            scene.preview_image = result.url
            scene.preview_image_path = result.path
        return updated

    async def release(self, project: Project) -> int:
        """Best-effort removal of a project's offloaded objects. Returns how many were removed."""
        if self._gateway is None:
            return 0
        paths = []
        if project.voiceover_data and project.voiceover_data.audio_path:
            paths.append(project.voiceover_data.audio_path)
        if project.storyboard_data:
            paths.extend(s.preview_image_path for s in project.storyboard_data.scenes if s.preview_image_path)

        removed = 0
        for path in paths:
            try:
                await asyncio.to_thread(self._gateway.delete_blob, path)
                removed += 1
            except (BlobOffloadError, *MINIO_ERRORS, OSError) as exc:
                logger.warning("offload.release_failed", path=path, error=str(exc))
        return removed

    def release_later(self, project: Project) -> None:
        """
        Release from synchronous code. Runs as a task on the running loop, or
        to completion right away when the caller has no loop (worker threads).
        """
        if self._gateway is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.release(project))
            return
        task = loop.create_task(self.release(project))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


def build_media_offloader(settings: Settings | None = None) -> MediaOffloader:
    settings = settings or get_settings()
    return MediaOffloader(build_blob_gateway(settings), timeout_seconds=settings.offload_timeout_seconds)
