# src/filters/content_normalizer.py

"""Turn raw CMS taxonomy terms and posts into Zone and BlogPost models."""

import logging
from collections.abc import Mapping
from typing import Any

from src.config.settings import Settings
from src.filters.attribute_reconciler import (
    parse_count,
    parse_date,
    parse_flag,
    rendered_text,
)
from src.filters.text_cleaner import (
    clean_plain_text,
    first_content_image,
    make_excerpt,
    normalize_media_url,
    sanitize_html,
)
from src.models.blog_post import Author, BlogPost
from src.models.property import MediaItem
from src.models.zone import Zone

logger = logging.getLogger("listing_hub.content")


def default_zone_image(slug: str) -> str:
    """Stock cover for a zone, picked by a keyword in its slug."""
    lowered = slug.lower()
    for keyword, url in Settings.ZONE_DEFAULT_IMAGES.items():
        if keyword != "default" and keyword in lowered:
            return url
    return Settings.ZONE_DEFAULT_IMAGES["default"]


def _term_image(acf: Mapping[str, Any]) -> str | None:
    image = acf.get("imagen") or acf.get("image")
    if isinstance(image, str) and image.strip():
        return normalize_media_url(image)
    if isinstance(image, Mapping):
        node = image.get("node") if isinstance(image.get("node"), Mapping) else image
        sizes = node.get("sizes") if isinstance(node.get("sizes"), Mapping) else {}
        url = (
            node.get("url")
            or node.get("source_url")
            or node.get("sourceUrl")
            or sizes.get("large")
        )
        if url:
            return normalize_media_url(str(url))
    return None


def parse_zone(term: Mapping[str, Any]) -> Zone:
    """Zone from a taxonomy term and its custom fields."""
    acf = term.get("acf") if isinstance(term.get("acf"), Mapping) else {}
    slug = str(term.get("slug") or "")
    order = acf.get("order")
    try:
        order = int(order) if order not in (None, "") else None
    except (TypeError, ValueError):
        order = None
    short = acf.get("description_short") or term.get("description")
    return Zone(
        id=int(term.get("id") or 0),
        name=clean_plain_text(str(term.get("name") or "")),
        slug=slug,
        image_url=_term_image(acf) or default_zone_image(slug),
        short_description=clean_plain_text(str(short or "")) or None,
        featured=bool(parse_flag(acf.get("destacado"))),
        order=order,
        count=parse_count(term.get("count")) or 0,
    )


def sort_zones(zones: list[Zone]) -> list[Zone]:
    """Explicit ``order`` first (ascending), then by name."""
    return sorted(
        zones,
        key=lambda z: (
            z.order is None,
            z.order if z.order is not None else 0,
            z.name.lower(),
        ),
    )


def _author(embedded: Mapping[str, Any]) -> Author | None:
    authors = embedded.get("author") or []
    if not authors or not isinstance(authors[0], Mapping):
        return None
    data = authors[0]
    avatars = data.get("avatar_urls") or {}
    avatar = ""
    if isinstance(avatars, Mapping) and avatars:
        # Largest size key wins ("24", "48", "96")
        biggest = max(avatars, key=lambda k: int(k) if str(k).isdigit() else 0)
        avatar = str(avatars[biggest])
    return Author(name=str(data.get("name") or ""), avatar_url=avatar)


def parse_blog_post(raw: Mapping[str, Any]) -> BlogPost:
    """Sanitised post: plain-text excerpt, minimal body, cover image."""
    embedded = raw.get("_embedded")
    embedded = embedded if isinstance(embedded, Mapping) else {}
    content = rendered_text(raw, "content")

    media: list[MediaItem] = []
    featured = embedded.get("wp:featuredmedia") or []
    if featured and isinstance(featured[0], Mapping) and featured[0].get("source_url"):
        media.append(
            MediaItem(
                id=int(featured[0].get("id") or raw.get("featured_media") or 0),
                url=normalize_media_url(str(featured[0]["source_url"])),
                alt=str(featured[0].get("alt_text") or ""),
            )
        )
    else:
        image = first_content_image(content)
        if image:
            media.append(MediaItem(id=0, url=image))
        else:
            logger.debug("Post %s has no usable cover image", raw.get("slug"))

    return BlogPost(
        id=int(raw.get("id") or 0),
        slug=str(raw.get("slug") or ""),
        title=clean_plain_text(rendered_text(raw, "title")),
        excerpt=make_excerpt(rendered_text(raw, "excerpt"), content),
        body=sanitize_html(content),
        published_at=parse_date(raw.get("date")),
        author=_author(embedded),
        media=media,
        categories=[
            int(c) for c in raw.get("categories") or [] if str(c).isdigit()
        ],
    )
