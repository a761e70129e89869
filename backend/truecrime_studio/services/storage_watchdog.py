"""
Periodic storage check with automatic recovery.

When usage is critical the watchdog evicts the oldest projects down to the
recovery percentage without asking anyone. This trades stored projects for a
store that keeps accepting writes; every such run is logged as data loss.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

from truecrime_studio.schemas.storage import EvictionReport, StorageHealth, StorageStatus
from truecrime_studio.services.quota_monitor import QuotaMonitor
from truecrime_studio.services.retention import ProjectRetention

logger = structlog.get_logger()

DEFAULT_RECOVERY_PERCENTAGE = 70.0


class StorageWatchdog:
    def __init__(
        self,
        monitor: QuotaMonitor,
        retention: ProjectRetention,
        *,
        recovery_percentage: float = DEFAULT_RECOVERY_PERCENTAGE,
        interval_seconds: float = 30.0,
        on_warning: Optional[Callable[[StorageStatus], None]] = None,
        on_exhausted: Optional[Callable[[EvictionReport], None]] = None,
    ) -> None:
        self._monitor = monitor
        self._retention = retention
        self._recovery = recovery_percentage
        self._interval = interval_seconds
        self._on_warning = on_warning
        self._on_exhausted = on_exhausted
        self._task: Optional[asyncio.Task] = None
        self.last_status: Optional[StorageStatus] = None
        self.last_report: Optional[EvictionReport] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def check(self) -> StorageStatus:
        """One poll: classify, notify, auto-evict when critical."""
        status = self._monitor.get_status()
        self.last_status = status

        if status.status is not StorageHealth.HEALTHY and self._on_warning is not None:
            self._on_warning(status)

        if status.status is StorageHealth.CRITICAL:
            logger.warning(
                "storage.auto_evict_started",
                percentage_used=status.percentage_used,
                target_percentage=self._recovery,
                destructive=True,
            )
            report = self._retention.evict_oldest(self._recovery)
            self.last_report = report
            logger.warning(
                "storage.auto_evict_finished",
                evicted=report.evicted_ids,
                freed_kb=report.freed_kb,
                final_percentage=report.final_percentage,
            )
            if report.exhausted:
                logger.error(
                    "storage.auto_evict_exhausted",
                    final_percentage=report.final_percentage,
                    message="All projects were removed and storage is still above target",
                )
                if self._on_exhausted is not None:
                    self._on_exhausted(report)
            status = self._monitor.get_status()
            self.last_status = status
        return status

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                self.check()
            except Exception as e:
                logger.error("storage.poll_failed", error=str(e))
            await asyncio.sleep(self._interval)
