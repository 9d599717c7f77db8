"""Normalization helpers shared by source adapters."""

from .fields import (
    epoch_text,
    get_path,
    is_missing,
    iso_to_epoch_text,
    join_non_missing,
    name_list,
    text_or,
)

__all__ = [
    "epoch_text",
    "get_path",
    "is_missing",
    "iso_to_epoch_text",
    "join_non_missing",
    "name_list",
    "text_or",
]
