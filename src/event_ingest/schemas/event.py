"""
Canonical Record schema.

Every source adapter normalizes its raw listings into CanonicalRecord; it is
the only shape the ingestion engine understands. Text fields fall back to a
generic placeholder when a source leaves them empty, and adapters pass
source-specific placeholders where they have better ones.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from event_ingest.ingestion.normalization.fields import epoch_text, is_missing, name_list

UNKNOWN_EVENT = "Unknown Event"
NO_THUMBNAIL = "No thumbnail"
UNKNOWN_LOCATION = "Unknown Location"
UNKNOWN_CATEGORY = "Unknown Category"
NO_DESCRIPTION = "No description available"
UNKNOWN_SOURCE = "Unknown Source"


class CanonicalRecord(BaseModel):
    """Normalized, source-agnostic representation of one scraped event."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default=UNKNOWN_EVENT)
    start_at: str | None = Field(
        default=None, description="Epoch seconds as text; parsed at persistence time"
    )
    end_at: str | None = Field(
        default=None, description="Epoch seconds as text; parsed at persistence time"
    )
    thumbnail_url: str = Field(default=NO_THUMBNAIL)
    url: str | None = Field(
        default=None, description="Natural key of the stored event"
    )
    location_text: str = Field(default=UNKNOWN_LOCATION)
    category_text: str = Field(default=UNKNOWN_CATEGORY)
    description: str = Field(default=NO_DESCRIPTION)
    source_name: str = Field(default=UNKNOWN_SOURCE)
    place_name: str | None = None
    artist_names: list[str] = Field(default_factory=list)
    tag_names: list[str] = Field(default_factory=list)

    @field_validator(
        "name",
        "thumbnail_url",
        "location_text",
        "category_text",
        "description",
        "source_name",
        mode="before",
    )
    @classmethod
    def _placeholder_when_missing(cls, v: Any, info: ValidationInfo) -> Any:
        if is_missing(v):
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("url", "place_name", mode="before")
    @classmethod
    def _none_when_missing(cls, v: Any) -> Any:
        return None if is_missing(v) else v

    @field_validator("start_at", "end_at", mode="before")
    @classmethod
    def _timestamp_text(cls, v: Any) -> str | None:
        return epoch_text(v)

    @field_validator("artist_names", "tag_names", mode="before")
    @classmethod
    def _name_set(cls, v: Any) -> list[str]:
        return name_list(v)
