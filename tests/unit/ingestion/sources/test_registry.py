"""
Unit tests for the source registry.

Tests for config-driven adapter creation from ingestion.yaml content.
"""

import pytest

from event_ingest.ingestion.adapters import APIAdapterConfig, BrowserAdapterConfig
from event_ingest.ingestion.sources import (
    SOURCE_REGISTRY,
    EbiletAdapter,
    GoingAppAdapter,
    build_adapter_config,
    build_adapters,
    list_sources,
)

CONFIG = {
    "sources": {
        "goingapp": {
            "enabled": True,
            "type": "browser",
            "base_url": "https://queue.goingapp.pl/szukaj",
            "response_url_fragment": "szukaj",
            "max_interactions": 5,
        },
        "ebilet": {
            "enabled": True,
            "type": "api",
            "base_url": "https://www.ebilet.pl/api/TitleListing/Search",
            "items_key": "titles",
            "page_size": 10,
            "params": {"currentTab": 2},
            "region": "pl",
        },
    }
}


class TestRegistry:
    def test_builtin_sources_registered(self):
        assert SOURCE_REGISTRY["ebilet"] is EbiletAdapter
        assert SOURCE_REGISTRY["goingapp"] is GoingAppAdapter


class TestBuildAdapterConfig:
    """Tests for build_adapter_config()."""

    def test_api_config(self):
        config = build_adapter_config("ebilet", CONFIG["sources"]["ebilet"])

        assert isinstance(config, APIAdapterConfig)
        assert config.source_id == "ebilet"
        assert config.page_size == 10
        assert config.params == {"currentTab": 2}
        assert config.custom_config == {"region": "pl"}

    def test_browser_config(self):
        config = build_adapter_config("goingapp", CONFIG["sources"]["goingapp"])

        assert isinstance(config, BrowserAdapterConfig)
        assert config.max_interactions == 5

    def test_unregistered_source(self):
        with pytest.raises(ValueError, match="no registered adapter"):
            build_adapter_config("nope", {"type": "api"})

    def test_type_mismatch(self):
        with pytest.raises(ValueError, match="configured as 'browser'"):
            build_adapter_config("ebilet", {**CONFIG["sources"]["ebilet"], "type": "browser"})

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown source type"):
            build_adapter_config("ebilet", {**CONFIG["sources"]["ebilet"], "type": "ftp"})


class TestBuildAdapters:
    """Tests for build_adapters()."""

    def test_configuration_order(self):
        adapters = build_adapters(CONFIG)

        assert [a.source_id for a in adapters] == ["goingapp", "ebilet"]

    def test_disabled_sources_skipped(self):
        config = {"sources": {**CONFIG["sources"], "goingapp": {**CONFIG["sources"]["goingapp"], "enabled": False}}}

        assert [a.source_id for a in build_adapters(config)] == ["ebilet"]

    def test_only_selects_sources(self):
        assert [a.source_id for a in build_adapters(CONFIG, only=["ebilet"])] == ["ebilet"]

    def test_only_unknown_source(self):
        with pytest.raises(ValueError, match="Unknown source"):
            build_adapters(CONFIG, only=["missing"])

    def test_list_sources(self):
        listing = list_sources(CONFIG)

        assert listing["ebilet"] == {"enabled": True, "type": "api", "registered": True}
        assert listing["goingapp"]["type"] == "browser"
