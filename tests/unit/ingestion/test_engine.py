"""
Unit tests for the ingestion engine.

Covers URL dedup, reference resolution, flush boundaries, per-record error
isolation and timestamp fallbacks against an in-memory SQLite database.
"""

import logging
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from event_ingest.ingestion.engine import (
    IngestionEngine,
    IngestionStats,
    parse_timestamp,
    utc_now,
)
from event_ingest.ingestion.reference_cache import ReferenceCache
from event_ingest.storage import Artist, Event, EventStore, Place, StorageError, Tag

# =============================================================================
# HELPERS
# =============================================================================


def run_once(session_factory, records, **kwargs) -> tuple[IngestionStats, dict[str, int]]:
    """Ingest records the way a fresh run does: new session, preloaded caches."""
    with session_factory() as session:
        store = EventStore(session)
        caches = [ReferenceCache(m, store) for m in (Place, Artist, Tag)]
        for cache in caches:
            cache.preload()
        engine = IngestionEngine(
            store,
            place_cache=caches[0],
            artist_cache=caches[1],
            tag_cache=caches[2],
            seen_urls=store.all_event_urls(),
            **kwargs,
        )
        stats = engine.ingest(records)
        return stats, store.counts()


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestScenarios:
    """End-to-end behaviour of single ingest() calls."""

    def test_single_record_creates_event_place_and_artists(self, make_engine, store, create_record):
        """A record with a place and two artists creates one row of each and links them."""
        record = create_record(url="e/1", name="Show", artist_names=["A", "B"], place_name="Hall")

        stats = make_engine().ingest([record])

        assert stats.success == 1
        assert store.counts() == {"events": 1, "places": 1, "artists": 2, "tags": 0}
        event = store.find_event_by_url("e/1")
        assert event.name == "Show"
        assert event.place.name == "Hall"
        assert sorted(a.name for a in event.artists) == ["A", "B"]

    def test_same_record_twice_in_one_run(self, make_engine, store, create_record):
        """The second occurrence of a URL is skipped and creates nothing."""
        record = create_record(url="e/1", name="Show", artist_names=["A", "B"], place_name="Hall")

        stats = make_engine().ingest([record, record])

        assert stats.success == 1
        assert stats.skipped == 1
        assert store.counts() == {"events": 1, "places": 1, "artists": 2, "tags": 0}

    def test_record_without_url_is_skipped(self, make_engine, store, create_record):
        """A record without a URL is counted as skipped and writes nothing."""
        stats = make_engine().ingest([create_record(url=None, artist_names=["A"])])

        assert stats.skipped == 1
        assert stats.success == 0
        assert stats.errors == 0
        assert store.count(Event) == 0

    def test_unparseable_start_uses_fallback(self, make_engine, store, create_record):
        """A bad start timestamp falls back to ingestion time, end to start + 1h."""
        record = create_record(url="e/d", start_at="next friday", end_at=None)

        before = utc_now()
        stats = make_engine().ingest([record])
        after = utc_now()

        assert stats.success == 1
        assert stats.errors == 0
        event = store.find_event_by_url("e/d")
        assert before - timedelta(seconds=1) <= event.start_at <= after + timedelta(seconds=1)
        assert event.end_at == event.start_at + timedelta(hours=1)

    def test_valid_timestamps_are_stored_as_utc(self, make_engine, store, create_record):
        make_engine().ingest([create_record(url="e/t", start_at="0", end_at="3600")])

        event = store.find_event_by_url("e/t")
        assert event.start_at == datetime(1970, 1, 1, 0, 0)
        assert event.end_at == datetime(1970, 1, 1, 1, 0)

    def test_missing_end_uses_start_plus_one_hour(self, make_engine, store, create_record):
        make_engine().ingest([create_record(url="e/e", start_at="1718481600", end_at=None)])

        event = store.find_event_by_url("e/e")
        assert event.end_at - event.start_at == timedelta(hours=1)

    def test_event_without_place(self, make_engine, store, create_record):
        make_engine().ingest([create_record(url="e/np", place_name=None)])

        event = store.find_event_by_url("e/np")
        assert event.place_id is None
        assert store.count(Place) == 0


class TestIdempotence:
    """Repeated runs over the same input."""

    def test_two_runs_yield_same_counts(self, session_factory, create_record):
        """A second full run over the same records adds no rows."""
        records = [
            create_record(url=f"e/{i}", artist_names=["A", f"X{i % 3}"], tag_names=["rock"], place_name=f"P{i % 2}")
            for i in range(10)
        ]

        first_stats, first_counts = run_once(session_factory, records)
        second_stats, second_counts = run_once(session_factory, records)

        assert first_stats.success == 10
        assert second_stats.success == 0
        assert second_stats.skipped == 10
        assert first_counts == second_counts
        assert first_counts == {"events": 10, "places": 2, "artists": 4, "tags": 1}

    def test_second_run_adds_only_new_events(self, session_factory, create_record):
        run_once(session_factory, [create_record(url="e/1", artist_names=["A"])])

        stats, counts = run_once(
            session_factory,
            [create_record(url="e/1", artist_names=["A"]), create_record(url="e/2", artist_names=["A", "B"])],
        )

        assert stats.success == 1
        assert stats.skipped == 1
        assert counts["events"] == 2
        assert counts["artists"] == 2


class TestUniqueness:
    """Reference rows are unique per name across a run."""

    def test_shared_names_create_one_row_each(self, make_engine, store, create_record):
        records = [
            create_record(
                url=f"e/{i}",
                artist_names=["Alpha", "Beta"] if i % 2 else ["Beta", "Gamma"],
                tag_names="rock, live",
                place_name="Arena",
            )
            for i in range(30)
        ]

        stats = make_engine(batch_size=7, flush_threshold=4).ingest(records)

        assert stats.success == 30
        assert store.count(Artist) == 3
        assert store.count(Tag) == 2
        assert store.count(Place) == 1
        assert len(store.events_for_place(store.find_reference(Place, "Arena").id)) == 30

    def test_duplicate_urls_across_batches(self, make_engine, store, create_record):
        """URL dedup holds across batch and flush boundaries."""
        records = [create_record(url=f"e/{i % 5}") for i in range(25)]

        stats = make_engine(batch_size=3, flush_threshold=2).ingest(records)

        assert stats.success == 5
        assert stats.skipped == 20
        assert store.count(Event) == 5

    def test_links_reference_existing_rows(self, make_engine, store, create_record):
        make_engine().ingest(
            [
                create_record(url="e/1", artist_names=["A"], tag_names=["t"]),
                create_record(url="e/2", artist_names=["A"], tag_names=["t"]),
            ]
        )

        artist = store.find_reference(Artist, "A")
        tag = store.find_reference(Tag, "t")
        assert {e.url for e in store.events_for_artist(artist.id)} == {"e/1", "e/2"}
        assert {e.url for e in store.events_for_tag(tag.id)} == {"e/1", "e/2"}


class TestFlushing:
    """Flush boundaries."""

    def test_flush_after_threshold_and_each_batch(self, make_engine, store, create_record):
        """Flushes happen after every threshold of successes and at each batch end."""
        records = [create_record(url=f"e/{i}") for i in range(5)]
        engine = make_engine(batch_size=5, flush_threshold=2)

        with patch.object(store, "flush", wraps=store.flush) as flush_spy:
            stats = engine.ingest(records)

        # after 2 and 4 successes, then end of batch
        assert flush_spy.call_count == 3
        assert stats.flushes == 3

    def test_flush_at_end_of_every_batch(self, make_engine, store, create_record):
        records = [create_record(url=f"e/{i}") for i in range(6)]
        engine = make_engine(batch_size=2, flush_threshold=50)

        with patch.object(store, "flush", wraps=store.flush) as flush_spy:
            engine.ingest(records)

        assert flush_spy.call_count == 3

    def test_skips_do_not_count_towards_threshold(self, make_engine, store, create_record):
        records = [create_record(url=None) for _ in range(4)]
        engine = make_engine(batch_size=10, flush_threshold=2)

        with patch.object(store, "flush", wraps=store.flush) as flush_spy:
            engine.ingest(records)

        assert flush_spy.call_count == 1

    def test_flush_releases_session_working_set(self, make_engine, store, create_record):
        make_engine(batch_size=10).ingest([create_record(url="e/1", artist_names=["A"])])

        assert len(store.session.identity_map) == 0

    def test_caches_survive_flush(self, make_engine, caches, create_record):
        make_engine(batch_size=1).ingest(
            [create_record(url="e/1", artist_names=["A"]), create_record(url="e/2", artist_names=["A"])]
        )

        assert "A" in caches["artist"]
        assert len(caches["artist"]) == 1

    def test_empty_input(self, make_engine):
        stats = make_engine().ingest([])

        assert stats == IngestionStats(total=0, duration_seconds=stats.duration_seconds)


class TestErrorIsolation:
    """A failing record never aborts the batch."""

    def test_failed_insert_is_counted_and_processing_continues(self, make_engine, store, create_record):
        real_add = store.add_event

        def flaky_add(event):
            if event.url == "e/bad":
                raise ValueError("boom")
            return real_add(event)

        records = [create_record(url="e/1"), create_record(url="e/bad"), create_record(url="e/2")]
        with patch.object(store, "add_event", side_effect=flaky_add):
            stats = make_engine().ingest(records)

        assert stats.success == 2
        assert stats.errors == 1
        assert store.find_event_by_url("e/bad") is None

    def test_failed_link_rolls_back_the_event(self, make_engine, store, create_record):
        """Event and links of one record are written all-or-nothing."""
        real_link = store.add_artist_link
        calls = {"n": 0}

        def flaky_link(event_id, artist_id):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("link failed")
            return real_link(event_id, artist_id)

        records = [
            create_record(url="e/1", artist_names=["A"]),
            create_record(url="e/2", artist_names=["B"]),
            create_record(url="e/3", artist_names=["C"]),
        ]
        with patch.object(store, "add_artist_link", side_effect=flaky_link):
            stats = make_engine().ingest(records)

        assert stats.success == 2
        assert stats.errors == 1
        assert store.find_event_by_url("e/2") is None
        assert store.all_event_urls() == {"e/1", "e/3"}

    def test_failed_record_url_is_not_marked_seen(self, make_engine, store, create_record):
        """A record that failed can be retried later in the same run."""
        real_add = store.add_event
        attempts = {"n": 0}

        def fail_first(event):
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise ValueError("transient")
            return real_add(event)

        with patch.object(store, "add_event", side_effect=fail_first):
            stats = make_engine().ingest([create_record(url="e/1"), create_record(url="e/1")])

        assert stats.errors == 1
        assert stats.success == 1

    def test_error_is_logged_with_record_context(self, make_engine, store, create_record, caplog):
        with patch.object(store, "add_event", side_effect=ValueError("boom")):
            with caplog.at_level(logging.ERROR, logger="event_ingest.ingestion.engine"):
                make_engine().ingest([create_record(url="e/x", name="Broken", source_name="eBilet")])

        message = caplog.records[0].getMessage()
        assert "e/x" in message
        assert "Broken" in message
        assert "eBilet" in message


class TestStorageFailure:
    """Flush failures abort the run."""

    def test_flush_failure_raises_storage_error(self, make_engine, store, create_record, caplog):
        error = OperationalError("COMMIT", {}, Exception("database is gone"))

        with patch.object(store.session, "commit", side_effect=error):
            with caplog.at_level(logging.INFO, logger="event_ingest.ingestion.engine"):
                with pytest.raises(StorageError):
                    make_engine().ingest([create_record(url="e/1")])

        assert any("Ingestion finished" in r.getMessage() for r in caplog.records)

    def test_progress_is_logged(self, make_engine, create_record, caplog):
        records = [create_record(url=f"e/{i}") for i in range(4)]

        with caplog.at_level(logging.INFO, logger="event_ingest.ingestion.engine"):
            make_engine(progress_interval=2).ingest(records)

        progress = [r for r in caplog.records if r.getMessage().startswith("Progress")]
        assert len(progress) == 2


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_epoch_text(self):
        assert parse_timestamp("86400") == datetime(1970, 1, 2)

    def test_fractional_seconds(self):
        assert parse_timestamp("1.5") == datetime(1970, 1, 1, 0, 0, 1, 500000)

    @pytest.mark.parametrize("value", [None, "soon", "1e400"])
    def test_invalid_returns_none(self, value):
        assert parse_timestamp(value) is None


class TestEngineInit:
    @pytest.mark.parametrize("field", ["batch_size", "flush_threshold", "progress_interval"])
    def test_rejects_non_positive_sizes(self, store, caches, field):
        with pytest.raises(ValueError):
            IngestionEngine(store, caches["place"], caches["artist"], caches["tag"], **{field: 0})
