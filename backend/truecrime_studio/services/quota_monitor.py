"""
Storage usage against the assumed store capacity.

Usage is measured over every key in the store, since other features share it.
Values are measured by length only and never parsed, so a poll stays cheap.
"""
import structlog

from truecrime_studio.schemas.storage import StorageHealth, StorageStatus, StorageUsage
from truecrime_studio.services.kv_store import KeyValueStore, StorageError

logger = structlog.get_logger()

DEFAULT_CAPACITY_BYTES = 5 * 1024 * 1024

STORAGE_WARNING_THRESHOLD = 70.0
STORAGE_CRITICAL_THRESHOLD = 90.0


def classify(percentage_used: float) -> StorageHealth:
    if percentage_used >= STORAGE_CRITICAL_THRESHOLD:
        return StorageHealth.CRITICAL
    if percentage_used >= STORAGE_WARNING_THRESHOLD:
        return StorageHealth.WARNING
    return StorageHealth.HEALTHY


class QuotaMonitor:
    def __init__(self, store: KeyValueStore, capacity_bytes: int = DEFAULT_CAPACITY_BYTES) -> None:
        if capacity_bytes <= 0:
            raise ValueError("capacity_bytes must be positive")
        self._store = store
        self._capacity = capacity_bytes

    @property
    def capacity_bytes(self) -> int:
        return self._capacity

    def get_usage(self) -> StorageUsage:
        total = 0
        try:
            for key in self._store.keys():
                total += self._store.value_length(key) + len(key)
        except StorageError as e:
            logger.warning("quota.scan_failed", error=str(e), partial_bytes=total)
        percentage = min(total / self._capacity * 100, 100.0)
        return StorageUsage(used_bytes=total, capacity_bytes=self._capacity, percentage_used=percentage)

    def get_status(self) -> StorageStatus:
        usage = self.get_usage()
        status = classify(usage.percentage_used)
        summary = f"{usage.used_kb}KB used ({round(usage.percentage_used)}%)"
        if status is StorageHealth.CRITICAL:
            message = f"Critical: {summary}. Please delete old projects."
        elif status is StorageHealth.WARNING:
            message = f"Warning: {summary}. Consider deleting old projects."
        else:
            message = summary
        return StorageStatus(
            used_bytes=usage.used_bytes,
            used_kb=usage.used_kb,
            capacity_bytes=usage.capacity_bytes,
            percentage_used=usage.percentage_used,
            status=status,
            message=message,
        )
