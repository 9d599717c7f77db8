"""
Ingestion Engine.

Reconciles canonical records against storage:
- records without a URL, or whose URL is already known, are skipped
- place/artist/tag names are resolved through run-scoped reference caches
- each new Event and its links are written inside a savepoint, so a failing
  record leaves nothing behind
- writes are committed in flushes, after every ``flush_threshold`` successes
  and at the end of every batch

Existing events are never updated.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from event_ingest.ingestion.reference_cache import ReferenceCache
from event_ingest.schemas.event import CanonicalRecord
from event_ingest.storage import Event, EventStore, StorageError

logger = logging.getLogger(__name__)

DEFAULT_DURATION = timedelta(hours=1)


class RecordOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class IngestionStats:
    """Counters for one ingest() call."""

    total: int = 0
    processed: int = 0
    success: int = 0
    skipped: int = 0
    errors: int = 0
    flushes: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse epoch seconds text into a naive UTC datetime.

    Returns None when the value is absent or not a valid timestamp.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
        return datetime.fromtimestamp(seconds, tz=UTC).replace(tzinfo=None)
    except (ValueError, OverflowError, OSError):
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class IngestionEngine:
    """
    Single-threaded dedup and persistence of canonical records.

    The caches and the seen-URL set are owned by the run and survive flushes.
    """

    def __init__(
        self,
        store: EventStore,
        place_cache: ReferenceCache,
        artist_cache: ReferenceCache,
        tag_cache: ReferenceCache,
        seen_urls: set[str] | None = None,
        batch_size: int = 20,
        flush_threshold: int = 50,
        progress_interval: int = 50,
    ):
        if batch_size < 1 or flush_threshold < 1 or progress_interval < 1:
            raise ValueError("batch_size, flush_threshold and progress_interval must be >= 1")
        self.store = store
        self.place_cache = place_cache
        self.artist_cache = artist_cache
        self.tag_cache = tag_cache
        self.seen_urls = seen_urls if seen_urls is not None else set()
        self.batch_size = batch_size
        self.flush_threshold = flush_threshold
        self.progress_interval = progress_interval

    def ingest(
        self, records: Sequence[CanonicalRecord], stats: IngestionStats | None = None
    ) -> IngestionStats:
        """
        Persist every new record.

        Args:
            records: Merged canonical records
            stats: Counters to update in place; a fresh one is created if omitted

        Returns:
            IngestionStats for this call

        Raises:
            StorageError: If a flush fails. Counts are still logged and
                ``stats`` holds them.
        """
        stats = stats if stats is not None else IngestionStats()
        stats.total = len(records)
        started = time.monotonic()
        since_flush = 0
        logger.info(f"Starting ingestion of {len(records)} records")

        try:
            for offset in range(0, len(records), self.batch_size):
                for record in records[offset : offset + self.batch_size]:
                    outcome = self._ingest_record(record)
                    stats.processed += 1
                    if outcome is RecordOutcome.SUCCESS:
                        stats.success += 1
                        since_flush += 1
                    elif outcome is RecordOutcome.SKIPPED:
                        stats.skipped += 1
                    else:
                        stats.errors += 1

                    if since_flush >= self.flush_threshold:
                        self._flush(stats)
                        since_flush = 0

                    if stats.processed % self.progress_interval == 0:
                        logger.info(
                            f"Progress: {stats.processed}/{stats.total} processed "
                            f"({stats.success} saved, {stats.skipped} skipped, {stats.errors} errors)"
                        )

                self._flush(stats)
                since_flush = 0
        finally:
            stats.duration_seconds = time.monotonic() - started
            logger.info(
                f"Ingestion finished: processed={stats.processed} success={stats.success} "
                f"skipped={stats.skipped} errors={stats.errors} flushes={stats.flushes} "
                f"in {stats.duration_seconds:.1f}s"
            )

        return stats

    def _flush(self, stats: IngestionStats) -> None:
        self.store.flush()
        stats.flushes += 1

    def _ingest_record(self, record: CanonicalRecord) -> RecordOutcome:
        url = record.url
        if url is None:
            logger.debug(f"Skipping record without URL: {record.name!r} ({record.source_name})")
            return RecordOutcome.SKIPPED
        if url in self.seen_urls:
            logger.debug(f"Skipping known URL: {url}")
            return RecordOutcome.SKIPPED

        try:
            place = self.place_cache.resolve_or_create(record.place_name) if record.place_name else None
            artists = [self.artist_cache.resolve_or_create(name) for name in record.artist_names]
            tags = [self.tag_cache.resolve_or_create(name) for name in record.tag_names]

            with self.store.record_scope():
                event = self.store.add_event(self.build_event(record, place.id if place else None))
                for artist in artists:
                    if not self.store.has_artist_link(event.id, artist.id):
                        self.store.add_artist_link(event.id, artist.id)
                for tag in tags:
                    if not self.store.has_tag_link(event.id, tag.id):
                        self.store.add_tag_link(event.id, tag.id)
        except StorageError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to ingest event url={url} name={record.name!r} "
                f"source={record.source_name}: {e}",
                exc_info=True,
            )
            return RecordOutcome.ERROR

        self.seen_urls.add(url)
        return RecordOutcome.SUCCESS

    @staticmethod
    def build_event(record: CanonicalRecord, place_id: int | None) -> Event:
        """Build the Event row, applying timestamp fallbacks."""
        start_at = parse_timestamp(record.start_at) or utc_now()
        end_at = parse_timestamp(record.end_at) or start_at + DEFAULT_DURATION
        return Event(
            url=record.url,
            name=record.name,
            start_at=start_at,
            end_at=end_at,
            thumbnail_url=record.thumbnail_url,
            location_text=record.location_text,
            category_text=record.category_text,
            description=record.description,
            source_name=record.source_name,
            place_id=place_id,
        )
