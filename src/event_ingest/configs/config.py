"""Source configuration loader for the ingestion run."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from event_ingest.configs.settings import Settings, get_settings


def _substitute_placeholders(content: str, settings: Settings) -> str:
    """Replace ``${KEY}`` placeholders with values from settings."""
    for key, value in settings.model_dump().items():
        placeholder = f"${{{key}}}"
        if placeholder in content:
            val_str = (
                value.get_secret_value()
                if hasattr(value, "get_secret_value")
                else str(value)
            )
            content = content.replace(placeholder, val_str)
    return content


class Config:
    """Configuration for source adapters."""

    @classmethod
    def load_ingestion_config(
        cls,
        path: Path | str | None = None,
        settings: Settings | None = None,
    ) -> dict[str, Any]:
        """
        Load the YAML configuration for source adapters.

        Args:
            path: Path to the YAML file. Defaults to settings.INGESTION_CONFIG_PATH
            settings: Settings used for placeholder substitution

        Returns:
            Parsed configuration dict (always has a "sources" mapping)
        """
        settings = settings or get_settings()
        config_path = Path(path) if path else settings.INGESTION_CONFIG_PATH
        if not config_path.exists():
            raise FileNotFoundError(f"Missing config at {config_path}")

        with open(config_path, encoding="utf-8") as f:
            content = _substitute_placeholders(f.read(), settings)

        data = yaml.safe_load(content) or {}
        data.setdefault("sources", {})
        return data
