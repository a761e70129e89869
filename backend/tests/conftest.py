"""Pytest configuration and fixtures for backend tests."""

from datetime import datetime, timedelta, timezone

import pytest

from truecrime_studio.services.kv_store import InMemoryKeyValueStore
from truecrime_studio.services.project_repository import ProjectRepository
from truecrime_studio.services.quota_monitor import QuotaMonitor
from truecrime_studio.services.retention import ProjectRetention


class StepClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def clock():
    """Deterministic clock starting at a fixed UTC instant."""
    return StepClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    """Unbounded in-memory store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store, clock):
    return ProjectRepository(store, clock=clock)


@pytest.fixture
def monitor(store):
    """Monitor with a small capacity so tests can reach the thresholds cheaply."""
    return QuotaMonitor(store, capacity_bytes=10_000)


@pytest.fixture
def retention(repository, monitor):
    return ProjectRetention(repository, monitor)
