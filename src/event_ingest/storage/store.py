"""
Storage boundary for the ingestion engine.

EventStore wraps one SQLAlchemy Session and exposes only the operations the
ingestion run needs: natural-key lookups, inserts, link inserts, bulk reads
for cache preloading and the flush boundary.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from event_ingest.storage.models import (
    Artist,
    Event,
    Place,
    ReferenceModel,
    Tag,
    event_artists,
    event_tags,
)

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Storage is unavailable or a flush could not be made durable."""


class EventStore:
    """
    Session-backed access to events and their reference entities.

    The flush boundary commits everything written since the previous flush
    as one transaction and then releases the session's identity map.
    """

    def __init__(self, session: Session) -> None:
        """
        Initialize with an open session.

        Args:
            session: SQLAlchemy session owned by the caller
        """
        self.session = session
        # Serializes Session access across the ReferenceCaches bound to this store.
        self.lock = threading.Lock()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def find_event_by_url(self, url: str) -> Event | None:
        return self.session.scalars(sa.select(Event).where(Event.url == url)).first()

    def all_event_urls(self) -> set[str]:
        """Load every stored event URL."""
        return set(self.session.scalars(sa.select(Event.url)))

    def add_event(self, event: Event) -> Event:
        """Insert an event and flush so it receives its id."""
        self.session.add(event)
        self.session.flush()
        return event

    # ------------------------------------------------------------------
    # Reference entities
    # ------------------------------------------------------------------

    def find_reference(self, model: ReferenceModel, name: str):
        return self.session.scalars(sa.select(model).where(model.name == name)).first()

    def create_reference(self, model: ReferenceModel, name: str):
        """
        Insert a reference row inside its own savepoint.

        A failed insert leaves the surrounding transaction usable.
        """
        entity = model(name=name)
        with self.session.begin_nested():
            self.session.add(entity)
        return entity

    def all_references(self, model: ReferenceModel) -> list:
        return list(self.session.scalars(sa.select(model)))

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def has_artist_link(self, event_id: int, artist_id: int) -> bool:
        return self._link_exists(event_artists, "artist_id", event_id, artist_id)

    def add_artist_link(self, event_id: int, artist_id: int) -> None:
        self.session.execute(
            sa.insert(event_artists).values(event_id=event_id, artist_id=artist_id)
        )

    def has_tag_link(self, event_id: int, tag_id: int) -> bool:
        return self._link_exists(event_tags, "tag_id", event_id, tag_id)

    def add_tag_link(self, event_id: int, tag_id: int) -> None:
        self.session.execute(sa.insert(event_tags).values(event_id=event_id, tag_id=tag_id))

    def _link_exists(self, table: sa.Table, ref_column: str, event_id: int, ref_id: int) -> bool:
        stmt = (
            sa.select(sa.func.count())
            .select_from(table)
            .where(table.c.event_id == event_id, table.c[ref_column] == ref_id)
        )
        return (self.session.scalar(stmt) or 0) > 0

    # ------------------------------------------------------------------
    # Reverse lookups (read-only)
    # ------------------------------------------------------------------

    def events_for_place(self, place_id: int) -> list[Event]:
        return list(self.session.scalars(sa.select(Event).where(Event.place_id == place_id)))

    def events_for_artist(self, artist_id: int) -> list[Event]:
        stmt = (
            sa.select(Event)
            .join(event_artists, event_artists.c.event_id == Event.id)
            .where(event_artists.c.artist_id == artist_id)
        )
        return list(self.session.scalars(stmt))

    def events_for_tag(self, tag_id: int) -> list[Event]:
        stmt = (
            sa.select(Event)
            .join(event_tags, event_tags.c.event_id == Event.id)
            .where(event_tags.c.tag_id == tag_id)
        )
        return list(self.session.scalars(stmt))

    def count(self, model) -> int:
        return self.session.scalar(sa.select(sa.func.count()).select_from(model)) or 0

    def counts(self) -> dict[str, int]:
        """Row counts per entity kind."""
        return {
            "events": self.count(Event),
            "places": self.count(Place),
            "artists": self.count(Artist),
            "tags": self.count(Tag),
        }

    # ------------------------------------------------------------------
    # Transaction boundaries
    # ------------------------------------------------------------------

    @contextmanager
    def record_scope(self) -> Iterator[None]:
        """
        Savepoint around the writes of a single record.

        On error the record's rows are rolled back and the exception is
        re-raised to the caller.
        """
        with self.session.begin_nested():
            yield

    def flush(self) -> None:
        """
        Commit pending writes and release the session's working set.

        Raises:
            StorageError: If the commit fails. The transaction is rolled back.
        """
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Flush failed: {e}") from e
        self.session.expunge_all()
