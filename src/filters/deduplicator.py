# src/filters/deduplicator.py

"""Media and slug deduplication for reconciled records."""

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from src.filters.text_cleaner import normalize_media_url
from src.models.property import MediaItem

logger = logging.getLogger("listing_hub.filters")

T = TypeVar("T")


class MediaDeduplicator:
    """Remove repeated images while keeping first-seen order."""

    @staticmethod
    def deduplicate(
        items: Iterable[MediaItem],
    ) -> tuple[list[MediaItem], int]:
        """Drop items whose URL was already seen.

        URLs are compared after :func:`normalize_media_url`, so only the
        scheme and legacy host are folded; path and query stay
        significant. Items with an empty URL are dropped too. Returns
        the kept list and the number of removed entries.
        """
        seen: set[str] = set()
        kept: list[MediaItem] = []
        removed = 0

        for item in items:
            key = normalize_media_url(item.url)
            if not key or key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(item)

        if removed:
            logger.debug(
                "Media deduplication removed %d entries", removed
            )
        return kept, removed


def unique_by_slug(
    records: Iterable[T],
    slug_of: Callable[[T], str] | None = None,
) -> list[T]:
    """Keep the first record for every slug.

    *slug_of* extracts the slug (defaults to the ``slug`` attribute).
    Records with an empty slug are kept as-is.
    """
    get_slug = slug_of or (lambda r: getattr(r, "slug", ""))
    seen: set[str] = set()
    kept: list[T] = []
    dropped = 0
    for record in records:
        slug = get_slug(record)
        if slug and slug in seen:
            dropped += 1
            continue
        if slug:
            seen.add(slug)
        kept.append(record)
    if dropped:
        logger.warning("Dropped %d records with duplicate slugs", dropped)
    return kept
