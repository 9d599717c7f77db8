"""
Source Orchestrator.

Runs every source adapter concurrently on a bounded thread pool and merges
their normalized records. Each adapter is its own failure domain: an adapter
that raises or times out contributes nothing and the others are unaffected.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from event_ingest.ingestion.adapters import BaseSourceAdapter
from event_ingest.schemas.event import CanonicalRecord

logger = logging.getLogger(__name__)


class AdapterTimeoutError(Exception):
    """An adapter did not finish within the configured timeout."""


@dataclass
class AdapterRunResult:
    """Outcome of one adapter within a run."""

    source_id: str
    success: bool
    record_count: int = 0
    error: str | None = None
    duration_seconds: float = 0.0


class SourceOrchestrator:
    """
    Fan-out/fan-in over source adapters.

    Responsibilities:
    - Run each adapter's fetch_and_normalize() on a worker pool
    - Isolate adapter failures and optional per-adapter timeouts
    - Merge results in registration order
    """

    def __init__(self, max_workers: int = 5, adapter_timeout_s: float | None = None):
        """
        Initialize the orchestrator.

        Args:
            max_workers: Upper bound on concurrently running adapters
            adapter_timeout_s: Give up on an adapter after this many seconds of running
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.adapter_timeout_s = adapter_timeout_s
        self.last_results: list[AdapterRunResult] = []

    def run(self, adapters: list[BaseSourceAdapter]) -> list[CanonicalRecord]:
        """
        Run all adapters and return their merged records.

        Blocks until every adapter has finished, failed or timed out.
        """
        self.last_results = []
        if not adapters:
            logger.warning("No adapters registered, nothing to fetch")
            return []

        logger.info(f"Running {len(adapters)} adapter(s) with max_workers={self.max_workers}")
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="adapter") as executor:
            futures = [executor.submit(self._run_one, adapter) for adapter in adapters]
            outcomes = [fut.result() for fut in futures]

        merged: list[CanonicalRecord] = []
        for records, result in outcomes:
            merged.extend(records)
            self.last_results.append(result)

        succeeded = sum(1 for r in self.last_results if r.success)
        logger.info(
            f"Fetch phase complete: {succeeded}/{len(adapters)} adapters succeeded, "
            f"{len(merged)} records merged"
        )
        return merged

    def _run_one(self, adapter: BaseSourceAdapter) -> tuple[list[CanonicalRecord], AdapterRunResult]:
        started = time.monotonic()
        try:
            records = self._fetch(adapter)
        except AdapterTimeoutError as e:
            duration = time.monotonic() - started
            logger.error(f"Adapter {adapter.source_id} timed out after {duration:.1f}s")
            return [], AdapterRunResult(
                source_id=adapter.source_id,
                success=False,
                error=str(e),
                duration_seconds=duration,
            )
        except Exception as e:
            logger.error(f"Adapter {adapter.source_id} failed: {e}", exc_info=True)
            return [], AdapterRunResult(
                source_id=adapter.source_id,
                success=False,
                error=str(e),
                duration_seconds=time.monotonic() - started,
            )

        duration = time.monotonic() - started
        logger.info(f"Adapter {adapter.source_id} returned {len(records)} records in {duration:.1f}s")
        return list(records), AdapterRunResult(
            source_id=adapter.source_id,
            success=True,
            record_count=len(records),
            duration_seconds=duration,
        )

    def _fetch(self, adapter: BaseSourceAdapter) -> list[CanonicalRecord]:
        """
        Call fetch_and_normalize(), bounded by the adapter timeout if one is set.

        With a timeout the call runs on its own daemon thread. A call that
        overruns is abandoned, so its pool slot is released for the next
        adapter even though the thread itself cannot be interrupted.
        """
        if not self.adapter_timeout_s:
            return adapter.fetch_and_normalize()

        outcome: dict[str, Any] = {}

        def _target() -> None:
            try:
                outcome["records"] = adapter.fetch_and_normalize()
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=_target, name=f"fetch-{adapter.source_id}", daemon=True)
        worker.start()
        worker.join(self.adapter_timeout_s)

        if worker.is_alive():
            raise AdapterTimeoutError(f"timed out after {self.adapter_timeout_s}s")
        if "error" in outcome:
            raise outcome["error"]
        if "records" not in outcome:
            raise RuntimeError(f"Adapter {adapter.source_id} exited without a result")
        return outcome["records"]
