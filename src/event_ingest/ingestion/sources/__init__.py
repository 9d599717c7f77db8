"""
Concrete event sources.

Importing this package registers every built-in source adapter.
"""

from .registry import SOURCE_REGISTRY, build_adapter_config, build_adapters, list_sources, register_source
from .ebilet import EbiletAdapter
from .goingapp import GoingAppAdapter

__all__ = [
    "SOURCE_REGISTRY",
    "EbiletAdapter",
    "GoingAppAdapter",
    "build_adapter_config",
    "build_adapters",
    "list_sources",
    "register_source",
]
