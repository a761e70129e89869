"""
Project repository over a single namespace key.

Every write reads the whole collection, changes it in memory and writes the
whole collection back, so the cost of a save grows with everything stored, not
with the size of the project being saved. Two saves racing from different
processes resolve as last-write-wins.

Store failures never escape: save returns None, delete/rewrite return False and
reads return an empty collection.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog

from truecrime_studio.schemas.project import Project
from truecrime_studio.services.kv_store import KeyValueStore, QuotaExceededError, StorageError
from truecrime_studio.services.project_codec import decode_collection, encode_collection, record_size

logger = structlog.get_logger()

DEFAULT_NAMESPACE_KEY = "truecrime_projects"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectRepository:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        namespace_key: str = DEFAULT_NAMESPACE_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = namespace_key
        self._clock = clock

    @property
    def namespace_key(self) -> str:
        return self._key

    @property
    def store(self) -> KeyValueStore:
        return self._store

    # ------------------------------------------------------------------ reads

    def get_all(self) -> List[Project]:
        try:
            raw = self._store.get_item(self._key)
        except StorageError as e:
            logger.error("storage.load_failed", key=self._key, error=str(e))
            return []
        return decode_collection(raw)

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.get_all():
            if project.id == project_id:
                return project
        return None

    def namespace_size(self) -> int:
        try:
            raw = self._store.get_item(self._key)
        except StorageError as e:
            logger.warning("storage.size_failed", key=self._key, error=str(e))
            return 0
        return record_size(self._key, raw) if raw is not None else 0

    # ----------------------------------------------------------------- writes

    def save(self, project: Project) -> Optional[Project]:
        """
        Insert or replace `project` by id.

        On success the passed object receives its id and timestamps (the
        repository is the only writer of those) and is returned. createdAt is
        the clock at first insert; an incoming value is ignored. Returns None
        when the collection could not be written.
        """
        projects = self.get_all()
        now = _aware(self._clock())
        stored = project.model_copy(deep=True)

        if stored.id is None:
            stored.id = self._new_id(now, {p.id for p in projects})

        index = next((i for i, p in enumerate(projects) if p.id == stored.id), None)
        if index is not None:
            existing = projects[index]
            created_at = _aware(existing.created_at) or _aware(stored.created_at) or now
            previous = _latest(_aware(existing.updated_at), _aware(stored.updated_at))
        else:
            # createdAt is fixed by the first successful save, whatever the caller sent.
            created_at = now
            previous = None

        updated_at = now
        if previous is not None and updated_at <= previous:
            updated_at = previous + timedelta(microseconds=1)
        if updated_at < created_at:
            updated_at = created_at
        stored.created_at = created_at
        stored.updated_at = updated_at

        if index is not None:
            projects[index] = stored
        else:
            projects.append(stored)

        if not self._write(projects, action="save", project_id=stored.id):
            return None

        project.id = stored.id
        project.created_at = stored.created_at
        project.updated_at = stored.updated_at
        logger.info(
            "storage.project_saved",
            project_id=stored.id,
            created=index is None,
            total_projects=len(projects),
        )
        return project

    def rewrite(self, project: Project) -> bool:
        """Replace an existing record as-is, leaving its timestamps untouched."""
        projects = self.get_all()
        for i, existing in enumerate(projects):
            if existing.id == project.id:
                projects[i] = project
                return self._write(projects, action="rewrite", project_id=project.id)
        return False

    def rewrite_all(self, projects: List[Project]) -> bool:
        """Write `projects` back as the whole collection, timestamps untouched."""
        return self._write(projects, action="rewrite_all", project_id=None)

    def delete(self, project_id: str) -> bool:
        projects = self.get_all()
        remaining = [p for p in projects if p.id != project_id]
        if len(remaining) == len(projects):
            return False
        if not self._write(remaining, action="delete", project_id=project_id):
            return False
        logger.info("storage.project_deleted", project_id=project_id, remaining=len(remaining))
        return True

    # ---------------------------------------------------------------- helpers

    def _write(self, projects: List[Project], *, action: str, project_id: Optional[str]) -> bool:
        payload = encode_collection(projects)
        try:
            self._store.set_item(self._key, payload)
        except QuotaExceededError as e:
            logger.error(
                "storage.quota_exceeded",
                action=action,
                project_id=project_id,
                payload_bytes=record_size(self._key, payload),
                error=str(e),
            )
            return False
        except StorageError as e:
            logger.error("storage.write_failed", action=action, project_id=project_id, error=str(e))
            return False
        return True

    @staticmethod
    def _new_id(now: datetime, taken: set) -> str:
        millis = int(now.timestamp() * 1000)
        while f"project-{millis}" in taken:
            millis += 1
        return f"project-{millis}"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _latest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [v for v in values if v is not None]
    return max(present) if present else None
