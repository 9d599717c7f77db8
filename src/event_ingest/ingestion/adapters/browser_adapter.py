"""
Browser Source Adapter.

Adapter for sources that only expose their listings to a rendered page.
A headless Playwright page is opened on the listing URL and the JSON
responses the page itself requests are captured from the network. A
"load more" control is clicked until it disappears, the declared total has
been captured, or the interaction limit is hit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType

logger = logging.getLogger(__name__)


@dataclass
class BrowserAdapterConfig(AdapterConfig):
    """Configuration for browser-based adapters."""

    # Which network responses carry listing data
    response_url_fragment: str = ""
    items_key: str = "hits"
    total_key: str = "nbHits"

    # Paging by interaction
    load_more_selector: str = ""
    max_interactions: int = 50

    browser_name: str = "chromium"
    headless: bool = True
    timeout_s: float = 30.0

    def __post_init__(self):
        """Set source type to browser."""
        self.source_type = SourceType.BROWSER


class BrowserAdapter(BaseSourceAdapter):
    """
    Adapter that captures JSON listing responses from a rendered page.

    Subclasses provide normalize_record() for their source.
    """

    @property
    def browser_config(self) -> BrowserAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        """Validate browser configuration."""
        if not self.browser_config.base_url:
            raise ValueError("Browser adapter requires base_url")
        if not self.browser_config.response_url_fragment:
            raise ValueError("Browser adapter requires response_url_fragment")
        if self.browser_config.max_interactions < 0:
            raise ValueError("max_interactions must be >= 0")

    def fetch(self) -> FetchResult:
        """
        Open the listing page and collect captured listing responses.

        Returns:
            FetchResult with the raw items of every captured response
        """
        from playwright.sync_api import sync_playwright

        fetch_started = datetime.now(UTC)
        payloads: list[dict[str, Any]] = []
        errors: list[str] = []
        metadata: dict[str, Any] = {"responses_captured": 0, "interactions": 0}

        try:
            with sync_playwright() as pw:
                launcher = getattr(pw, self.browser_config.browser_name)
                browser = launcher.launch(headless=self.browser_config.headless)
                try:
                    page = browser.new_page()
                    page.set_default_timeout(self.browser_config.timeout_s * 1000)
                    page.on("response", lambda response: self._handle_response(response, payloads))

                    logger.info(f"Navigating to URL: {self.browser_config.base_url}")
                    page.goto(self.browser_config.base_url, wait_until="networkidle")

                    metadata["interactions"] = self._load_more(page, payloads)
                finally:
                    browser.close()
        except Exception as e:
            logger.error(f"Browser fetch failed for {self.source_id}: {e}")
            errors.append(str(e))

        items = self._extract_items(payloads)
        metadata["responses_captured"] = len(payloads)
        metadata["declared_total"] = self._declared_total(payloads)

        return FetchResult(
            success=len(items) > 0,
            source_type=SourceType.BROWSER,
            raw_data=items,
            total_fetched=len(items),
            errors=errors,
            metadata=metadata,
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(UTC),
        )

    # -------------------------
    # Network capture
    # -------------------------

    def is_relevant_response(self, response: Any) -> bool:
        """A listing response: matching URL, status 200, JSON body."""
        if self.browser_config.response_url_fragment not in response.url:
            return False
        if response.status != 200:
            return False
        content_type = (response.headers or {}).get("content-type", "").lower()
        return "application/json" in content_type

    def _handle_response(self, response: Any, payloads: list[dict[str, Any]]) -> None:
        try:
            if not self.is_relevant_response(response):
                logger.debug(f"Ignoring response from URL: {response.url}")
                return
            body = response.json()
            if isinstance(body, dict):
                payloads.append(body)
                logger.info(f"Captured listing response from {response.url}")
        except Exception as e:
            logger.error(f"Error processing response from URL {response.url}: {e}")

    def _extract_items(self, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for payload in payloads:
            page_items = payload.get(self.browser_config.items_key) or []
            items.extend(item for item in page_items if isinstance(item, dict))
        return items

    def _declared_total(self, payloads: list[dict[str, Any]]) -> int | None:
        for payload in reversed(payloads):
            total = payload.get(self.browser_config.total_key)
            if isinstance(total, int):
                return total
        return None

    # -------------------------
    # Interaction
    # -------------------------

    def _load_more(self, page: Any, payloads: list[dict[str, Any]]) -> int:
        """
        Click the load-more control until there is nothing left to load.

        Returns:
            Number of clicks performed
        """
        selector = self.browser_config.load_more_selector
        if not selector:
            return 0

        interactions = 0
        while interactions < self.browser_config.max_interactions:
            total = self._declared_total(payloads)
            captured = len(self._extract_items(payloads))
            if total is not None and captured >= total:
                logger.info(f"Captured {captured} of {total} declared items")
                break

            button = page.locator(selector).first
            if button.count() == 0 or not button.is_visible():
                logger.info("Load-more control no longer present")
                break

            button.click()
            page.wait_for_load_state("networkidle")
            interactions += 1
        else:
            logger.warning(
                f"Stopped after max_interactions={self.browser_config.max_interactions} "
                f"for {self.source_id}"
            )

        return interactions
