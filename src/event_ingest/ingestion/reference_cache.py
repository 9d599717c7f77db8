"""
Reference Cache.

Name -> entity map for one reference kind (Place, Artist or Tag), scoped to
a single ingestion run. Resolution is compute-if-absent per name: concurrent
callers asking for the same unseen name serialize on that name and exactly
one row is created.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from event_ingest.storage import EventStore
from event_ingest.storage.models import ReferenceModel

logger = logging.getLogger(__name__)


class ReferenceCache:
    """Concurrency-safe cache of reference entities keyed by name."""

    def __init__(self, model: ReferenceModel, store: EventStore):
        self.model = model
        self.store = store
        self.kind = model.__tablename__
        self._entities: dict[str, Any] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def preload(self) -> int:
        """
        Load every stored row of this kind into the cache.

        Returns:
            Number of cached entities
        """
        with self.store.lock:
            rows = self.store.all_references(self.model)
        with self._lock:
            self._entities = {row.name: row for row in rows}
            self._key_locks.clear()
        logger.info(f"Preloaded {len(rows)} {self.kind}")
        return len(rows)

    def _lock_for(self, name: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(name)
            if lock is None:
                lock = self._key_locks[name] = threading.Lock()
            return lock

    def resolve_or_create(self, name: str):
        """
        Return the entity for ``name``, creating its row if needed.

        A cache hit never touches storage.
        """
        entity = self.get(name)
        if entity is not None:
            return entity

        with self._lock_for(name):
            entity = self.get(name)
            if entity is not None:
                return entity

            with self.store.lock:
                entity = self.store.find_reference(self.model, name)
                if entity is None:
                    entity = self.store.create_reference(self.model, name)
                    logger.debug(f"Created {self.kind} row for {name!r}")

            with self._lock:
                self._entities[name] = entity
                self._key_locks.pop(name, None)
            return entity

    def get(self, name: str):
        with self._lock:
            return self._entities.get(name)

    def snapshot(self) -> dict[str, Any]:
        """Copy of the current name -> entity map."""
        with self._lock:
            return dict(self._entities)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entities

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)
