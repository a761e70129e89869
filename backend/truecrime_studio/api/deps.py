from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends

from truecrime_studio.core.config import Settings, get_settings
from truecrime_studio.services.blob_offload import MediaOffloader, build_media_offloader
from truecrime_studio.services.cache_manager import CacheManager
from truecrime_studio.services.kv_store import KeyValueStore, build_store
from truecrime_studio.services.project_repository import ProjectRepository
from truecrime_studio.services.quota_monitor import QuotaMonitor
from truecrime_studio.services.retention import ProjectRetention
from truecrime_studio.services.storage_watchdog import StorageWatchdog


@dataclass
class StorageContext:
    settings: Settings
    store: KeyValueStore
    repository: ProjectRepository
    monitor: QuotaMonitor
    retention: ProjectRetention
    watchdog: StorageWatchdog
    cache_manager: CacheManager
    offloader: MediaOffloader


def build_storage_context(
    settings: Settings,
    store: KeyValueStore | None = None,
    offloader: MediaOffloader | None = None,
) -> StorageContext:
    store = store if store is not None else build_store(settings)
    offloader = offloader if offloader is not None else build_media_offloader(settings)
    repository = ProjectRepository(store, namespace_key=settings.storage_namespace_key)
    monitor = QuotaMonitor(store, capacity_bytes=settings.storage_quota_bytes)
    retention = ProjectRetention(repository, monitor, on_evicted=offloader.release_later)
    watchdog = StorageWatchdog(
        monitor,
        retention,
        recovery_percentage=settings.storage_recovery_percentage,
        interval_seconds=settings.storage_poll_interval_seconds,
    )
    cache_manager = CacheManager(store, settings.app_version, version_key=settings.storage_version_key)
    return StorageContext(
        settings=settings,
        store=store,
        repository=repository,
        monitor=monitor,
        retention=retention,
        watchdog=watchdog,
        cache_manager=cache_manager,
        offloader=offloader,
    )


@lru_cache
def get_storage_context() -> StorageContext:
    return build_storage_context(get_settings())


def get_repository(ctx: StorageContext = Depends(get_storage_context)) -> ProjectRepository:
    return ctx.repository


def get_monitor(ctx: StorageContext = Depends(get_storage_context)) -> QuotaMonitor:
    return ctx.monitor


def get_retention(ctx: StorageContext = Depends(get_storage_context)) -> ProjectRetention:
    return ctx.retention
