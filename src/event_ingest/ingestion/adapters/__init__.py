"""
Source adapters.

Two transport bases are provided:
- APIAdapter: paginated HTTP JSON APIs (requests)
- BrowserAdapter: network capture from a rendered page (Playwright)

Concrete sources live in event_ingest.ingestion.sources.
"""

from .api_adapter import APIAdapter, APIAdapterConfig
from .base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchResult,
    SourceFetchError,
    SourceType,
)
from .browser_adapter import BrowserAdapter, BrowserAdapterConfig

__all__ = [
    "APIAdapter",
    "APIAdapterConfig",
    "AdapterConfig",
    "BaseSourceAdapter",
    "BrowserAdapter",
    "BrowserAdapterConfig",
    "FetchResult",
    "SourceFetchError",
    "SourceType",
]
