"""
Relational storage for ingested events.

Usage:
    from event_ingest.storage import EventStore, create_db_engine, create_session_factory

    engine = create_db_engine("sqlite:///events.db")
    init_schema(engine)
    with create_session_factory(engine)() as session:
        store = EventStore(session)
"""

from .database import create_db_engine, create_session_factory, engine_from_settings, init_schema
from .models import Artist, Base, Event, Place, Tag
from .store import EventStore, StorageError

__all__ = [
    "Artist",
    "Base",
    "Event",
    "EventStore",
    "Place",
    "StorageError",
    "Tag",
    "create_db_engine",
    "create_session_factory",
    "engine_from_settings",
    "init_schema",
]
