"""
GoingApp source.

GoingApp renders its search page client-side; listings are captured from
the JSON search responses the page requests while "load more" is clicked.
"""

from __future__ import annotations

from typing import Any

from event_ingest.ingestion.adapters import BrowserAdapter
from event_ingest.ingestion.normalization import is_missing, name_list, text_or
from event_ingest.ingestion.sources.registry import register_source
from event_ingest.schemas.event import CanonicalRecord

SOURCE_NAME = "GoingApp"
EVENT_URL = "https://queue.goingapp.pl/wydarzenie"
THUMBNAIL_URL = (
    "https://res.cloudinary.com/dr89d8ldb/image/upload/"
    "c_fill,h_350,w_405/f_webp/q_auto:eco/v1/rundate/"
)


@register_source("goingapp")
class GoingAppAdapter(BrowserAdapter):
    """Adapter for GoingApp search results."""

    def normalize_record(self, raw: dict[str, Any]) -> CanonicalRecord:
        thumbnail = raw.get("thumbnail")
        slug, rundate_slug = raw.get("slug"), raw.get("rundate_slug")
        url = None
        if not is_missing(slug) and not is_missing(rundate_slug):
            url = f"{EVENT_URL}/{slug}/{rundate_slug}"

        return CanonicalRecord(
            name=raw.get("name_pl"),
            artist_names=name_list(raw.get("artists_names")),
            start_at=raw.get("start_date_timestamp"),
            end_at=raw.get("end_date_timestamp"),
            thumbnail_url=(
                "Unknown Thumbnail"
                if is_missing(thumbnail)
                else THUMBNAIL_URL + str(thumbnail).replace(" ", "%20")
            ),
            url=url,
            location_text=text_or(raw, "locations_names[0]", None),
            place_name=raw.get("place_name"),
            category_text=raw.get("category_name"),
            tag_names=name_list(raw.get("tags_names")),
            description=text_or(raw, "description_pl", "No Description"),
            source_name=SOURCE_NAME,
        )
