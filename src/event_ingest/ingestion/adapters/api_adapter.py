"""
API Source Adapter.

Adapter for paginated HTTP JSON APIs. Pages are requested with an
offset/size pair until the API returns an empty page, answers with a
non-success status, or the configured page limit is reached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import requests

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType

logger = logging.getLogger(__name__)


@dataclass
class APIAdapterConfig(AdapterConfig):
    """Configuration for API-based adapters."""

    api_key: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)

    # Pagination
    page_size: int = 20
    max_pages: int = 100
    offset_param: str = "top"
    size_param: str = "size"
    items_key: str = "data"

    def __post_init__(self):
        """Set source type to API."""
        self.source_type = SourceType.API


class APIAdapter(BaseSourceAdapter):
    """
    Adapter for paginated JSON APIs.

    Supports:
    - Offset pagination terminated by an empty page
    - Rate limiting between requests
    - Retry with exponential backoff for transport errors
    - Custom headers and bearer authentication

    Subclasses provide normalize_record() for their source.
    """

    def __init__(
        self,
        config: APIAdapterConfig,
        response_parser: Callable[[dict], list[dict]] | None = None,
    ):
        """
        Initialize the API adapter.

        Args:
            config: APIAdapterConfig with API settings
            response_parser: Function to extract the item list from a page
        """
        self.response_parser = response_parser
        self._session: requests.Session | None = None
        super().__init__(config)

    @property
    def api_config(self) -> APIAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        """Validate API configuration."""
        if not self.api_config.base_url:
            raise ValueError("API adapter requires base_url")
        if self.api_config.page_size < 1 or self.api_config.max_pages < 1:
            raise ValueError("API adapter requires positive page_size and max_pages")

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
                    "Accept": "application/json",
                    **self.api_config.headers,
                }
            )
            if self.api_config.api_key:
                self._session.headers["Authorization"] = f"Bearer {self.api_config.api_key}"
        return self._session

    def build_query(self, offset: int) -> dict[str, Any]:
        """Build query parameters for the page starting at ``offset``."""
        return {
            **self.api_config.params,
            self.api_config.offset_param: offset,
            self.api_config.size_param: self.api_config.page_size,
        }

    def fetch(self) -> FetchResult:
        """
        Fetch every page from the API.

        Returns:
            FetchResult with the raw items of all pages
        """
        fetch_started = datetime.now(UTC)
        all_data: list[dict[str, Any]] = []
        errors: list[str] = []
        metadata: dict[str, Any] = {"pages_fetched": 0, "api_calls": 0}

        try:
            session = self._get_session()
            offset = 0

            while metadata["pages_fetched"] < self.api_config.max_pages:
                query = self.build_query(offset)
                response = self._make_request(session, query)
                metadata["api_calls"] += 1

                if response is None:
                    errors.append(f"Request failed at offset {offset}")
                    break

                items = self._parse_response(response)
                if not items:
                    logger.info(f"Empty page at offset {offset}, end of data")
                    break

                all_data.extend(items)
                metadata["pages_fetched"] += 1
                offset += self.api_config.page_size
            else:
                logger.warning(
                    f"Stopped after max_pages={self.api_config.max_pages} for {self.source_id}"
                )

        except Exception as e:
            logger.error(f"API fetch failed: {e}")
            errors.append(str(e))

        return FetchResult(
            success=len(all_data) > 0,
            source_type=SourceType.API,
            raw_data=all_data,
            total_fetched=len(all_data),
            errors=errors,
            metadata=metadata,
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(UTC),
        )

    def _make_request(
        self,
        session: requests.Session,
        query: dict[str, Any],
        retry_count: int = 0,
    ) -> dict | None:
        """
        Make an HTTP GET with retry logic.

        Transport errors are retried with exponential backoff. A non-success
        status or an unparseable body ends pagination.

        Args:
            session: HTTP session
            query: Request parameters
            retry_count: Current retry attempt

        Returns:
            Response JSON or None on failure
        """
        url = self.api_config.base_url

        try:
            time.sleep(1.0 / self.api_config.rate_limit_per_second)
            logger.info(f"Fetching data from URL: {url} params={query}")
            response = session.get(url, params=query, timeout=self.api_config.request_timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            if retry_count < self.api_config.max_retries:
                wait_time = 2**retry_count
                logger.warning(f"Request failed, retrying in {wait_time}s: {e}")
                time.sleep(wait_time)
                return self._make_request(session, query, retry_count + 1)

            logger.error(f"Request failed after {retry_count} retries: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Failed to fetch data. HTTP status code: {response.status_code}")
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            return None

    def _parse_response(self, response: Any) -> list[dict]:
        """Extract the item list from one page."""
        if self.response_parser:
            return self.response_parser(response)
        if isinstance(response, list):
            return response
        items = response.get(self.api_config.items_key)
        if items is None:
            return []
        return items if isinstance(items, list) else [items]

    def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            self._session.close()
            self._session = None
