"""
Debounced autosave.

    IDLE --notify_change--> PENDING --(delay elapses)--> IDLE + save
    PENDING --notify_change--> PENDING (timer restarted)

Timers live on the running asyncio loop. A scheduler that has been disposed
never fires again.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


class AutosaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class AutosaveScheduler:
    def __init__(
        self,
        save: Callable[[], object],
        delay_seconds: float,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if delay_seconds <= 0:
            raise ValueError("delay_seconds must be positive")
        self._save = save
        self._delay = delay_seconds
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._disposed = False
        self.fired_count = 0

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def state(self) -> AutosaveState:
        return AutosaveState.PENDING if self._handle is not None else AutosaveState.IDLE

    @property
    def disposed(self) -> bool:
        return self._disposed

    def notify_change(self) -> None:
        """Restart the debounce window."""
        if self._disposed:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def flush(self) -> bool:
        """Run a pending save right now. False if nothing was pending."""
        if self._handle is None:
            return False
        self._cancel()
        self._run()
        return True

    def cancel(self) -> None:
        self._cancel()

    def dispose(self) -> None:
        self._disposed = True
        self._cancel()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if self._disposed:
            return
        self._run()

    def _run(self) -> None:
        self.fired_count += 1
        logger.debug("autosave.fired", count=self.fired_count)
        try:
            self._save()
        except Exception as e:
            logger.error("autosave.save_failed", error=str(e))
