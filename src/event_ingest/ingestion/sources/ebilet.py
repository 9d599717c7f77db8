"""
eBilet source.

Listings come from eBilet's public title search API, paged with
``top``/``size``. Items are returned under ``titles``.
"""

from __future__ import annotations

from typing import Any

from event_ingest.ingestion.adapters import APIAdapter
from event_ingest.ingestion.normalization import (
    get_path,
    is_missing,
    iso_to_epoch_text,
    join_non_missing,
    name_list,
    text_or,
)
from event_ingest.ingestion.sources.registry import register_source
from event_ingest.schemas.event import CanonicalRecord

SOURCE_NAME = "eBilet"
SITE_URL = "https://www.ebilet.pl"
MEDIA_URL = f"{SITE_URL}/media"


@register_source("ebilet")
class EbiletAdapter(APIAdapter):
    """Adapter for the eBilet title search API."""

    def normalize_record(self, raw: dict[str, Any]) -> CanonicalRecord:
        start = iso_to_epoch_text(raw.get("dateFrom"))
        if start is None:
            self.logger.debug(f"dateFrom missing or invalid for {raw.get('slug')}")
        end = iso_to_epoch_text(raw.get("dateTo"))

        image = raw.get("imageLandscape")
        thumbnail = None if is_missing(image) else f"{MEDIA_URL}{image}"

        return CanonicalRecord(
            name=raw.get("title"),
            artist_names=name_list(raw.get("artists")),
            start_at=start,
            end_at=end,
            thumbnail_url=thumbnail,
            url=self.build_url(raw),
            location_text=text_or(raw, "nextEventPlace.city", "Unknown City"),
            place_name=text_or(raw, "nextEventPlace.customName", None),
            category_text=raw.get("categoryName"),
            tag_names=join_non_missing(
                [raw.get("subcategoryName"), raw.get("category"), raw.get("subcategory")]
            ),
            description=raw.get("metaDescription"),
            source_name=SOURCE_NAME,
        )

    @staticmethod
    def build_url(raw: dict[str, Any]) -> str | None:
        """
        Event URL: ``linkTo`` verbatim, else built from category/subcategory/slug.

        Returns None when neither is available.
        """
        link = get_path(raw, "linkTo")
        if not is_missing(link):
            return str(link).strip()

        category = raw.get("category")
        subcategory = raw.get("subcategory")
        slug = raw.get("slug")
        if any(is_missing(part) for part in (category, subcategory, slug)):
            return None
        subcategory = str(subcategory).replace('"', "")
        return f"{SITE_URL}/{category}/{subcategory}/{slug}"
