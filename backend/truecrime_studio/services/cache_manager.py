"""
Installed-version marker for the shared store.

When the recorded version differs from the running one, the whole store is
wiped before the marker is rewritten. Project storage treats such a wipe as an
ordinary empty collection.
"""
from typing import Iterable, Optional

import structlog

from truecrime_studio.services.kv_store import KeyValueStore, StorageError

logger = structlog.get_logger()

DEFAULT_VERSION_KEY = "app_version"
PRESERVED_KEYS = ("user_preferences",)


class CacheManager:
    def __init__(self, store: KeyValueStore, version: str, *, version_key: str = DEFAULT_VERSION_KEY) -> None:
        self._store = store
        self._version = version
        self._version_key = version_key

    @property
    def version(self) -> str:
        return self._version

    def stored_version(self) -> Optional[str]:
        try:
            return self._store.get_item(self._version_key)
        except StorageError as e:
            logger.warning("cache.version_read_failed", error=str(e))
            return None

    def has_version_changed(self) -> bool:
        return self.stored_version() != self._version

    def clear_all(self) -> None:
        self._store.clear()
        self._store.set_item(self._version_key, self._version)

    def clear_project_data(self, keep: Iterable[str] = PRESERVED_KEYS) -> int:
        """Remove every key except the version marker and `keep`. Returns the number removed."""
        kept = {self._version_key, *keep}
        removed = 0
        for key in self._store.keys():
            if key in kept:
                continue
            self._store.remove_item(key)
            removed += 1
        logger.info("cache.project_data_cleared", removed=removed)
        return removed

    def initialize(self) -> bool:
        """Wipe the store on version change. True when a wipe happened."""
        previous = self.stored_version()
        try:
            if previous != self._version:
                logger.info("cache.version_changed", previous=previous, current=self._version)
                self.clear_all()
                return True
            self._store.set_item(self._version_key, self._version)
        except StorageError as e:
            logger.error("cache.initialize_failed", error=str(e))
        return False
