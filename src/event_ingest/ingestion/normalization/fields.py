"""
Field helpers shared by source adapters.

Sources disagree on how they say "no value": a missing key, JSON null, an
empty string, or the literal text "null". Everything in this module treats
all four the same way.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

_INDEX_RE = re.compile(r"^([^[]+)\[(\d+)\]$")


def is_missing(value: Any) -> bool:
    """Return True for None, blank strings and the literal "null"."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() == "null"
    return False


def get_path(data: Any, path: str) -> Any:
    """
    Extract a value using dot notation with optional list indexing.

    Supports:
    - "field"
    - "parent.child"
    - "items[0]" / "items[0].name"

    Returns None when any segment is absent.
    """
    current = data
    for segment in path.split("."):
        if current is None:
            return None
        index_match = _INDEX_RE.match(segment)
        if index_match:
            key, idx = index_match.group(1), int(index_match.group(2))
            items = current.get(key) if isinstance(current, dict) else None
            if not isinstance(items, list) or idx >= len(items):
                return None
            current = items[idx]
        elif isinstance(current, dict):
            current = current.get(segment)
        else:
            return None
    return current


def text_or(data: dict[str, Any], path: str, placeholder: str | None) -> str | None:
    """Return the text at ``path`` or ``placeholder`` when it is missing."""
    value = get_path(data, path)
    if is_missing(value):
        return placeholder
    return str(value).strip()


def name_list(value: Any) -> list[str]:
    """
    Normalize a list of names or a comma-joined string to an ordered set.

    Entries are trimmed, missing entries dropped and duplicates removed,
    keeping the first occurrence.
    """
    if is_missing(value):
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = [value]

    names: list[str] = []
    for item in items:
        if is_missing(item):
            continue
        name = str(item).strip()
        if name not in names:
            names.append(name)
    return names


def join_non_missing(values: Iterable[Any], separator: str = ", ") -> str:
    """
    Concatenate non-missing values in the given order.

    The trailing separator left by a skipped final value is trimmed.
    """
    out = ""
    for value in values:
        if is_missing(value):
            continue
        out += f"{str(value).strip()}{separator}"
    return out[: -len(separator)] if out.endswith(separator) else out


def iso_to_epoch_text(value: Any) -> str | None:
    """
    Convert an ISO-8601 local datetime to epoch seconds as text.

    Naive datetimes are interpreted as UTC. Parse failures are logged and
    returned as None.
    """
    if is_missing(value):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        logger.warning(f"Invalid date format: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return str(int(parsed.timestamp()))


def epoch_text(value: Any) -> str | None:
    """Return an epoch-seconds value as text, or None when it is missing."""
    if is_missing(value):
        return None
    if isinstance(value, float):
        return str(int(value))
    return str(value).strip()
