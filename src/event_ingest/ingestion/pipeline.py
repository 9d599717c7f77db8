"""
Ingestion run.

One IngestionRun per invocation. It owns everything whose lifetime is a
single run: the reference caches, the seen-URL set and the storage session.
Nothing here is process-global, so two runs never share state.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from event_ingest.configs.settings import Settings
from event_ingest.ingestion.adapters import BaseSourceAdapter
from event_ingest.ingestion.engine import IngestionEngine, IngestionStats
from event_ingest.ingestion.orchestrator import AdapterRunResult, SourceOrchestrator
from event_ingest.ingestion.reference_cache import ReferenceCache
from event_ingest.monitoring.logging import with_context
from event_ingest.schemas.event import CanonicalRecord
from event_ingest.storage import Artist, EventStore, Place, StorageError, Tag

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Summary of one ingestion run."""

    run_id: str
    started_at: datetime
    adapters: list[AdapterRunResult] = field(default_factory=list)
    records_fetched: int = 0
    stats: IngestionStats | None = None
    error: str | None = None

    @property
    def failed_sources(self) -> list[str]:
        return [r.source_id for r in self.adapters if not r.success]


class IngestionRun:
    """
    Fetch from every adapter, then dedup and persist the merged records.

    Usage:
        run = IngestionRun(adapters, session_factory, settings)
        report = run.execute()
    """

    def __init__(
        self,
        adapters: list[BaseSourceAdapter],
        session_factory: Callable[[], Session] | None = None,
        settings: Settings | None = None,
        orchestrator: SourceOrchestrator | None = None,
        run_id: str | None = None,
    ):
        self.adapters = adapters
        self.session_factory = session_factory
        self.settings = settings
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.orchestrator = orchestrator or SourceOrchestrator(
            max_workers=settings.MAX_WORKERS if settings else 5,
            adapter_timeout_s=settings.ADAPTER_TIMEOUT_S if settings else None,
        )
        self.log = with_context(logger, run_id=self.run_id)
        self.report = RunReport(run_id=self.run_id, started_at=datetime.now(UTC))

    def fetch(self) -> list[CanonicalRecord]:
        """Run every adapter and return the merged records."""
        self.log.info(f"Fetching from {len(self.adapters)} source(s)")
        records = self.orchestrator.run(self.adapters)
        self.report.adapters = list(self.orchestrator.last_results)
        self.report.records_fetched = len(records)
        return records

    def ingest(self, records: list[CanonicalRecord]) -> IngestionStats:
        """
        Persist records in a fresh session with freshly preloaded caches.

        Raises:
            StorageError: If storage is unavailable or a flush fails
        """
        if self.session_factory is None:
            raise ValueError("IngestionRun needs a session_factory to ingest")

        stats = self.report.stats = IngestionStats(total=len(records))
        try:
            with self.session_factory() as session:
                store = EventStore(session)
                engine = self._prepare_engine(store)
                engine.ingest(records, stats)
        except StorageError as e:
            self.report.error = str(e)
            raise
        return stats

    def execute(self) -> RunReport:
        """Fetch, then ingest. Always logs the final summary."""
        try:
            records = self.fetch()
            self.ingest(records)
        finally:
            self.log_summary()
        return self.report

    def _prepare_engine(self, store: EventStore) -> IngestionEngine:
        places = ReferenceCache(Place, store)
        artists = ReferenceCache(Artist, store)
        tags = ReferenceCache(Tag, store)
        try:
            for cache in (places, artists, tags):
                cache.preload()
            seen_urls = store.all_event_urls()
        except SQLAlchemyError as e:
            raise StorageError(f"Preload failed: {e}") from e
        self.log.info(f"Preloaded {len(seen_urls)} known event URLs")

        settings = self.settings
        return IngestionEngine(
            store,
            place_cache=places,
            artist_cache=artists,
            tag_cache=tags,
            seen_urls=seen_urls,
            batch_size=settings.BATCH_SIZE if settings else 20,
            flush_threshold=settings.FLUSH_THRESHOLD if settings else 50,
            progress_interval=settings.PROGRESS_INTERVAL if settings else 50,
        )

    def log_summary(self) -> None:
        for result in self.report.adapters:
            status = "ok" if result.success else f"FAILED ({result.error})"
            self.log.info(
                f"Source {result.source_id}: {status}, "
                f"{result.record_count} records in {result.duration_seconds:.1f}s"
            )
        stats = self.report.stats
        if stats is None:
            self.log.info(f"Run {self.run_id}: fetched {self.report.records_fetched} records, nothing ingested")
            return
        if self.report.error:
            self.log.error(
                f"Run {self.run_id} aborted: {self.report.error} "
                f"(fetched={self.report.records_fetched} processed={stats.processed} "
                f"success={stats.success} skipped={stats.skipped} errors={stats.errors} "
                f"flushes={stats.flushes})"
            )
            return
        self.log.info(
            f"Run {self.run_id}: fetched={self.report.records_fetched} processed={stats.processed} "
            f"success={stats.success} skipped={stats.skipped} errors={stats.errors}"
        )
