"""
Source registry and config-driven adapter creation.

Adapters register themselves under the source name used as the key in
ingestion.yaml. Adapters are created in the order the sources are listed in
the configuration, which is also the order their records are merged in.

Usage:
    from event_ingest.ingestion.sources import build_adapters

    config = Config.load_ingestion_config()
    adapters = build_adapters(config, only=["ebilet"])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import fields
from typing import Any

from event_ingest.ingestion.adapters import (
    APIAdapter,
    APIAdapterConfig,
    BaseSourceAdapter,
    BrowserAdapter,
    BrowserAdapterConfig,
    SourceType,
)

logger = logging.getLogger(__name__)

# Source registry - maps source names to adapter classes
SOURCE_REGISTRY: dict[str, type[BaseSourceAdapter]] = {}


def register_source(source_name: str):
    """
    Decorate an adapter class to register it for a source name.

    Usage:
        @register_source("ebilet")
        class EbiletAdapter(APIAdapter):
            ...
    """

    def decorator(adapter_cls: type[BaseSourceAdapter]) -> type[BaseSourceAdapter]:
        SOURCE_REGISTRY[source_name] = adapter_cls
        return adapter_cls

    return decorator


def _config_class(adapter_cls: type[BaseSourceAdapter]):
    if issubclass(adapter_cls, APIAdapter):
        return APIAdapterConfig, SourceType.API
    if issubclass(adapter_cls, BrowserAdapter):
        return BrowserAdapterConfig, SourceType.BROWSER
    raise ValueError(f"No transport config for adapter {adapter_cls.__name__}")


def build_adapter_config(source_name: str, source_config: dict[str, Any]):
    """
    Build the typed adapter config for one source.

    Keys matching config fields are passed through; anything else lands in
    custom_config.

    Raises:
        ValueError: If the source is not registered or its type does not
            match the registered adapter
    """
    adapter_cls = SOURCE_REGISTRY.get(source_name)
    if adapter_cls is None:
        raise ValueError(f"Source '{source_name}' has no registered adapter")

    config_cls, expected_type = _config_class(adapter_cls)
    declared = source_config.get("type", expected_type.value)
    try:
        declared_type = SourceType(declared)
    except ValueError as e:
        raise ValueError(f"Unknown source type '{declared}' for '{source_name}'") from e
    if declared_type is not expected_type:
        raise ValueError(
            f"Source '{source_name}' is configured as '{declared_type.value}' "
            f"but its adapter is '{expected_type.value}'"
        )

    field_names = {f.name for f in fields(config_cls)} - {"source_id", "source_type"}
    kwargs: dict[str, Any] = {}
    custom: dict[str, Any] = dict(source_config.get("custom_config") or {})
    for key, value in source_config.items():
        if key in ("enabled", "type", "custom_config"):
            continue
        if key in field_names:
            kwargs[key] = value
        else:
            custom[key] = value

    return config_cls(source_id=source_name, custom_config=custom, **kwargs)


def list_sources(config: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    List all configured sources with their status.

    Returns:
        Dict mapping source_name -> {enabled, type, registered}
    """
    return {
        name: {
            "enabled": (cfg or {}).get("enabled", True),
            "type": (cfg or {}).get("type", "api"),
            "registered": name in SOURCE_REGISTRY,
        }
        for name, cfg in config.get("sources", {}).items()
    }


def build_adapters(
    config: dict[str, Any],
    only: Iterable[str] | None = None,
) -> list[BaseSourceAdapter]:
    """
    Create adapters for every enabled source in configuration order.

    Args:
        config: Parsed ingestion configuration
        only: Restrict to these source names (disabled flags are ignored for them)

    Returns:
        Adapters in registration order

    Raises:
        ValueError: If a requested or enabled source cannot be created
    """
    sources: dict[str, Any] = config.get("sources", {})
    selected = list(only) if only else None
    if selected:
        unknown = [name for name in selected if name not in sources]
        if unknown:
            raise ValueError(f"Unknown source(s): {', '.join(unknown)}")

    adapters: list[BaseSourceAdapter] = []
    for source_name, source_config in sources.items():
        source_config = source_config or {}
        if selected is not None:
            if source_name not in selected:
                continue
        elif not source_config.get("enabled", True):
            logger.info(f"Source '{source_name}' is disabled, skipping")
            continue

        adapter_config = build_adapter_config(source_name, source_config)
        adapters.append(SOURCE_REGISTRY[source_name](adapter_config))
        logger.info(f"Created adapter: {source_name} (type: {adapter_config.source_type.value})")

    return adapters
