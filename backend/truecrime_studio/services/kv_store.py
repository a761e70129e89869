"""
Synchronous string key/value stores.

Stands in for the per-origin browser store the projects used to live in:
- string keys, string values
- a byte budget that rejects writes once exhausted
- shared by every feature of the application, not only project storage
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Protocol

import redis
import structlog
from redis.exceptions import OutOfMemoryError, RedisError

from truecrime_studio.core.config import Settings, get_settings

logger = structlog.get_logger()


class StorageError(RuntimeError):
    """Raised when the backing store cannot complete an operation."""


class QuotaExceededError(StorageError):
    """Raised when a write would exceed the store's capacity."""


def entry_size(key: str, value: str) -> int:
    """Usage proxy for one record: key length plus value length."""
    return len(key) + len(value)


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def value_length(self, key: str) -> int: ...

    def clear(self) -> None: ...


class InMemoryKeyValueStore:
    """Dictionary-backed store with an optional capacity in characters."""

    def __init__(self, capacity_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._capacity = capacity_bytes

    @property
    def capacity_bytes(self) -> int | None:
        return self._capacity

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("values must be strings")
        if self._capacity is not None:
            current = self.used_bytes()
            previous = self._data.get(key)
            if previous is not None:
                current -= entry_size(key, previous)
            projected = current + entry_size(key, value)
            if projected > self._capacity:
                raise QuotaExceededError(
                    f"Writing '{key}' needs {projected} bytes, capacity is {self._capacity}"
                )
        updated = dict(self._data)
        updated[key] = value
        self._commit(updated)

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        updated = dict(self._data)
        del updated[key]
        self._commit(updated)

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def value_length(self, key: str) -> int:
        value = self._data.get(key)
        return len(value) if value is not None else 0

    def clear(self) -> None:
        self._commit({})

    def used_bytes(self) -> int:
        return sum(entry_size(k, v) for k, v in self._data.items())

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def _commit(self, data: dict[str, str]) -> None:
        """Persist first; the visible mapping only changes once that succeeded."""
        self._persist(data)
        self._data = data

    def _persist(self, data: dict[str, str]) -> None:
        """Hook for subclasses that mirror the data somewhere durable."""


class FileKeyValueStore(InMemoryKeyValueStore):
    """Store mirrored to a single JSON file, replaced atomically on each write."""

    def __init__(self, path: Path | str, capacity_bytes: int | None = None) -> None:
        super().__init__(capacity_bytes=capacity_bytes)
        self._path = Path(path)
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("kv_store.file_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            logger.warning("kv_store.file_not_a_mapping", path=str(self._path))
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _persist(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".kv-", suffix=".json")
        except OSError as e:
            raise StorageError(f"Unable to write {self._path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Unable to write {self._path}: {e}") from e


class RedisKeyValueStore:
    """
    Store backed by Redis strings under a key prefix.

    Capacity is whatever `maxmemory` allows; an OOM rejection surfaces as
    QuotaExceededError so callers see the same failure as a full local store.
    """

    def __init__(self, client: redis.Redis, prefix: str = "truecrime") -> None:
        self._client = client
        self._prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._client.get(self._full_key(key))
        except RedisError as e:
            raise StorageError(f"Redis get failed for '{key}': {e}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            self._client.set(self._full_key(key), value)
        except OutOfMemoryError as e:
            raise QuotaExceededError(f"Redis rejected write for '{key}': {e}") from e
        except RedisError as e:
            raise StorageError(f"Redis set failed for '{key}': {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._client.delete(self._full_key(key))
        except RedisError as e:
            raise StorageError(f"Redis delete failed for '{key}': {e}") from e

    def keys(self) -> list[str]:
        offset = len(self._prefix) + 1
        try:
            return [k[offset:] for k in self._client.scan_iter(match=f"{self._prefix}:*")]
        except RedisError as e:
            raise StorageError(f"Redis scan failed: {e}") from e

    def value_length(self, key: str) -> int:
        # STRLEN counts UTF-8 bytes; usage is measured in characters everywhere else.
        value = self.get_item(key)
        return len(value) if value is not None else 0

    def clear(self) -> None:
        keys = [self._full_key(k) for k in self.keys()]
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except RedisError as e:
            raise StorageError(f"Redis clear failed: {e}") from e


def build_store(settings: Settings | None = None) -> KeyValueStore:
    """Instantiate the configured store backend."""

    settings = settings or get_settings()
    if settings.store_backend == "redis":
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        logger.info("kv_store.redis_selected", url=settings.redis_url)
        return RedisKeyValueStore(client, prefix=settings.redis_key_prefix)
    if settings.store_backend == "file":
        logger.info("kv_store.file_selected", path=settings.store_file_path)
        return FileKeyValueStore(settings.store_file_path, capacity_bytes=settings.storage_quota_bytes)
    return InMemoryKeyValueStore(capacity_bytes=settings.storage_quota_bytes)
