"""
Base Source Adapter.

Abstract base class defining the interface for all source adapters.
Each source is one adapter: it fetches raw listings from its transport and
normalizes them into CanonicalRecord objects.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from event_ingest.monitoring.logging import with_context
from event_ingest.schemas.event import CanonicalRecord


class SourceType(str, Enum):
    """Type of data source."""

    API = "api"
    BROWSER = "browser"


class SourceFetchError(RuntimeError):
    """A source produced no data because its fetch failed."""


@dataclass
class FetchResult:
    """
    Result of a data fetch operation.

    Provides a unified result format for both API and browser sources.
    """

    success: bool
    source_type: SourceType
    raw_data: list[dict[str, Any]] = field(default_factory=list)
    total_fetched: int = 0
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    fetch_started_at: datetime | None = None
    fetch_ended_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate fetch duration."""
        if self.fetch_started_at and self.fetch_ended_at:
            return (self.fetch_ended_at - self.fetch_started_at).total_seconds()
        return 0.0


@dataclass
class AdapterConfig:
    """
    Base configuration for source adapters.

    Extended by specific adapter types (API, browser).
    """

    source_id: str
    source_type: SourceType = SourceType.API
    base_url: str = ""
    request_timeout: int = 30
    max_retries: int = 3
    rate_limit_per_second: float = 1.0
    custom_config: dict[str, Any] = field(default_factory=dict)


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - fetch(): Fetch raw data from the source
        - normalize_record(): Map one raw record to a CanonicalRecord
        - _validate_config(): Validate adapter-specific configuration
    """

    def __init__(self, config: AdapterConfig):
        """
        Initialize the adapter.

        Args:
            config: AdapterConfig with source-specific settings
        """
        self.config = config
        self.logger = with_context(logging.getLogger(__name__), source_id=config.source_id)
        self._validate_config()

    @property
    def source_type(self) -> SourceType:
        """Get the source type."""
        return self.config.source_type

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self.config.source_id

    @abstractmethod
    def fetch(self) -> FetchResult:
        """
        Fetch raw data from the source.

        Returns:
            FetchResult with raw data and metadata
        """

    @abstractmethod
    def normalize_record(self, raw: dict[str, Any]) -> CanonicalRecord:
        """
        Map a single raw source record to the canonical shape.

        Args:
            raw: One raw record as returned by fetch()

        Returns:
            CanonicalRecord
        """

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate adapter-specific configuration.

        Raises:
            ValueError: If configuration is invalid
        """

    def normalize(self, raw_data: list[dict[str, Any]]) -> list[CanonicalRecord]:
        """Normalize raw records, dropping those that cannot be mapped."""
        self.logger.info(f"Starting to map events. Total events to map: {len(raw_data)}")
        records: list[CanonicalRecord] = []
        for idx, raw in enumerate(raw_data):
            try:
                records.append(self.normalize_record(raw))
            except Exception as e:
                self.logger.error(f"Error mapping event {idx}: {e}", exc_info=True)
        self.logger.info(f"Finished mapping events. Total mapped events: {len(records)}")
        return records

    def fetch_and_normalize(self) -> list[CanonicalRecord]:
        """
        Fetch and normalize in one step.

        Raises:
            SourceFetchError: If the fetch failed without returning any data
        """
        started = datetime.now(UTC)
        try:
            result = self.fetch()
        finally:
            self.close()

        if result.errors:
            if not result.raw_data:
                raise SourceFetchError(f"{self.source_id}: {'; '.join(result.errors)}")
            self.logger.warning(
                f"Fetch finished with {len(result.errors)} error(s): {result.errors}"
            )

        records = self.normalize(result.raw_data)
        elapsed = (datetime.now(UTC) - started).total_seconds()
        self.logger.info(
            f"Fetched {result.total_fetched} raw events, normalized {len(records)} in {elapsed:.1f}s"
        )
        return records

    def close(self) -> None:
        """
        Release any resources held by the adapter.

        Override in subclasses that hold resources (e.g., HTTP sessions).
        """

    def __enter__(self) -> BaseSourceAdapter:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
