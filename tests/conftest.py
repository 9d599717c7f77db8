"""
Shared pytest fixtures for the event ingestion test suite.

Provides an in-memory SQLite database, an EventStore bound to it, reference
caches and factories for CanonicalRecord test objects.
"""

import logging
from typing import Any

import pytest

from event_ingest.ingestion.engine import IngestionEngine
from event_ingest.ingestion.reference_cache import ReferenceCache
from event_ingest.monitoring.logging import ROOT_LOGGER_NAME
from event_ingest.schemas.event import CanonicalRecord
from event_ingest.storage import (
    Artist,
    EventStore,
    Place,
    Tag,
    create_db_engine,
    create_session_factory,
    init_schema,
)


@pytest.fixture(autouse=True)
def _propagate_package_logs():
    """Keep package logs visible to caplog even after setup_logging() ran."""
    pkg_logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers = list(pkg_logger.handlers)
    propagate = pkg_logger.propagate
    pkg_logger.propagate = True
    yield
    for h in list(pkg_logger.handlers):
        if h not in handlers:
            pkg_logger.removeHandler(h)
    pkg_logger.propagate = propagate


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_db_engine("sqlite:///:memory:")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as s:
        yield s


@pytest.fixture
def store(session):
    return EventStore(session)


@pytest.fixture
def caches(store):
    """Preloaded place/artist/tag caches bound to the test store."""
    result = {
        "place": ReferenceCache(Place, store),
        "artist": ReferenceCache(Artist, store),
        "tag": ReferenceCache(Tag, store),
    }
    for cache in result.values():
        cache.preload()
    return result


@pytest.fixture
def make_engine(store, caches):
    """
    Return a function that builds an IngestionEngine over the test store.

    Example:
        engine = make_engine(flush_threshold=2)
    """

    def _make_engine(**kwargs: Any) -> IngestionEngine:
        defaults: dict[str, Any] = {
            "place_cache": caches["place"],
            "artist_cache": caches["artist"],
            "tag_cache": caches["tag"],
            "seen_urls": store.all_event_urls(),
        }
        defaults.update(kwargs)
        return IngestionEngine(store, **defaults)

    return _make_engine


@pytest.fixture
def create_record():
    """
    Return a function that creates CanonicalRecord objects with sensible defaults.

    All defaults can be overridden via keyword arguments.

    Example:
        record = create_record(url="e/1", artist_names=["A", "B"])
    """

    def _create_record(url: str | None = "https://example.com/e/1", **kwargs: Any) -> CanonicalRecord:
        defaults: dict[str, Any] = {
            "name": "Test Event",
            "start_at": "1718481600",
            "end_at": "1718492400",
            "url": url,
            "location_text": "Warszawa",
            "category_text": "Koncerty",
            "source_name": "test",
        }
        defaults.update(kwargs)
        return CanonicalRecord(**defaults)

    return _create_record
