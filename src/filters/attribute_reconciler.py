# src/filters/attribute_reconciler.py

"""Merge conflicting upstream attribute sources into one Property.

A CMS property record can carry the same logical attribute in up to
four places, filled in by different plugins over the years:

1. ``acf``: the custom-field bag (current editor UI)
2. ``property_meta`` / ``meta``: the legacy flat metadata bag, whose
   values are often single-item lists
3. ``_embedded["wp:term"]``: taxonomy terms
4. ``class_list``: CSS class tokens WordPress derives from the terms

For every attribute the first usable source in that order wins, then
a deployment default applies.
"""

import logging
import math
import re
import unicodedata
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from src.config.settings import Settings
from src.filters.deduplicator import MediaDeduplicator
from src.filters.text_cleaner import (
    clean_plain_text,
    make_excerpt,
    normalize_media_url,
    sanitize_html,
)
from src.models.property import PRICE_UNAVAILABLE, MediaItem, Property

logger = logging.getLogger("listing_hub.reconciler")

_ZONE_CLASS_RE = re.compile(
    r"^(?:property_)?(?:zone|zona|zonas)-(?P<name>[\w-]+)$", re.IGNORECASE
)
_SALE_RE = re.compile(r"(?<![a-z])(?:venta|sale|for-sale)(?![a-z])")
_RENT_RE = re.compile(
    r"(?<![a-z])(?:arriendo|alquiler|rent|renta|for-rent)(?![a-z])"
)
_TRUE_VALUES = {"1", "true", "yes", "si", "sí", "on"}


# ── Value coercion ───────────────────────────────────────


def parse_price(value: Any) -> float | None:
    """Positive amount from a loose price value, else ``None``.

    Accepts numbers and strings with currency symbols and thousands
    separators (``"$ 1.200.000"``, ``"1,200,000.50"``). ``"0"``, empty,
    negative and non-numeric values are all ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 and math.isfinite(value) else None

    raw = str(value).strip()
    if re.search(r"-\s*\d", raw):
        return None
    text = re.sub(r"[^\d.,]", "", raw)
    if not any(c.isdigit() for c in text):
        return None

    separators = [c for c in text if c in ".,"]
    if separators:
        last = max(text.rfind("."), text.rfind(","))
        decimals = text[last + 1:]
        if len(set(separators)) == 1 and (
            len(separators) > 1 or len(decimals) == 3
        ):
            text = text.replace(separators[0], "")
        else:
            whole = re.sub(r"[.,]", "", text[:last])
            text = f"{whole or '0'}.{decimals or '0'}"
    try:
        amount = float(text)
    except ValueError:
        return None
    return amount if amount > 0 else None


def parse_count(value: Any) -> int | None:
    """Positive integer from ``3``, ``"3"``, ``"3.0"`` or ``["3"]``."""
    value = _first(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        count = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None
    return count if count > 0 else None


def parse_flag(value: Any) -> bool | None:
    value = _first(value)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in _TRUE_VALUES


def parse_date(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def slugify(text: str) -> str:
    """ASCII, lowercase, hyphen-separated slug."""
    ascii_text = (
        unicodedata.normalize("NFKD", text)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")


def _first(value: Any) -> Any:
    """Unwrap single-item lists from the legacy metadata bag."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _text(value: Any) -> str:
    value = _first(value)
    if value is None or isinstance(value, (dict, list)):
        return ""
    return clean_plain_text(str(value))


def rendered_text(raw: Mapping[str, Any], key: str) -> str:
    """``raw[key]["rendered"]``, or ``raw[key]`` when it is a plain string."""
    value = raw.get(key)
    if isinstance(value, Mapping):
        return str(value.get("rendered") or "")
    return str(value or "")


def business_flags(text: str) -> tuple[bool, bool] | None:
    """``(for_rent, for_sale)`` from keywords in *text*, if any match."""
    lowered = text.lower().replace("_", "-")
    rent = bool(_RENT_RE.search(lowered))
    sale = bool(_SALE_RE.search(lowered))
    if not rent and not sale:
        return None
    return rent, sale


class _Sources:
    """Uniform lookups across the four attribute sources of a record."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        acf = raw.get("acf")
        self.acf: Mapping[str, Any] = acf if isinstance(acf, Mapping) else {}

        self.meta: dict[str, Any] = {}
        for key in ("meta", "property_meta"):
            bag = raw.get(key)
            if isinstance(bag, Mapping):
                self.meta.update(bag)

        self.terms: list[Mapping[str, Any]] = []
        embedded = raw.get("_embedded")
        if isinstance(embedded, Mapping):
            for group in embedded.get("wp:term") or []:
                if isinstance(group, list):
                    self.terms.extend(t for t in group if isinstance(t, Mapping))

        classes = raw.get("class_list")
        if isinstance(classes, Mapping):
            classes = list(classes.values())
        self.classes: list[str] = [
            str(c) for c in classes or [] if isinstance(c, str)
        ]

    def custom(self, *keys: str) -> Any:
        for key in keys:
            value = self.acf.get(key)
            if value not in (None, "", [], False):
                return value
        return None

    def legacy(self, *keys: str) -> Any:
        for key in keys:
            value = _first(self.meta.get(key))
            if value not in (None, ""):
                return value
        return None


class AttributeReconciler:
    """Build canonical :class:`Property` records from raw upstream data."""

    def __init__(
        self,
        default_city: str | None = None,
        default_region: str | None = None,
        location_taxonomies: Sequence[str] | None = None,
    ) -> None:
        self.default_city = default_city or Settings.DEFAULT_CITY
        self.default_region = default_region or Settings.DEFAULT_REGION
        self.location_taxonomies = set(
            location_taxonomies or Settings.LOCATION_TAXONOMIES
        )

    # ── CMS attribute rules ──────────────────────────────

    def _zone(self, src: _Sources) -> str:
        zone = _text(src.custom("zone", "location"))
        if zone:
            return zone
        zone = _text(
            src.legacy(
                "fave_property_zone",
                "fave_property_area",
                "fave_property_location",
            )
        )
        if zone:
            return zone
        for term in src.terms:
            if term.get("taxonomy") in self.location_taxonomies:
                name = _text(term.get("name"))
                if name:
                    return name
        for token in src.classes:
            match = _ZONE_CLASS_RE.match(token.strip())
            if match:
                return match.group("name").replace("-", " ").title()
        return self.default_city

    def _price(self, src: _Sources) -> float:
        candidates = (
            src.acf.get("price"),
            _first(src.meta.get("fave_property_price")),
            _first(src.meta.get("_price")),
        )
        for candidate in candidates:
            amount = parse_price(candidate)
            if amount is not None:
                return amount
        return PRICE_UNAVAILABLE

    def _count(self, src: _Sources, custom_key: str, legacy_key: str) -> int:
        for value in (src.acf.get(custom_key), src.meta.get(legacy_key)):
            count = parse_count(value)
            if count is not None:
                return count
        return 0

    def _flags(self, src: _Sources) -> tuple[bool, bool]:
        rent = parse_flag(src.acf.get("for_rent"))
        sale = parse_flag(src.acf.get("for_sale"))
        if rent is not None or sale is not None:
            return bool(rent), bool(sale)

        status = _text(src.legacy("fave_property_status"))
        flags = business_flags(status) if status else None
        if flags:
            return flags

        term_text = " ".join(
            f"{t.get('slug', '')} {t.get('name', '')}" for t in src.terms
        )
        flags = business_flags(term_text) if term_text.strip() else None
        if flags:
            return flags

        flags = business_flags(" ".join(src.classes))
        if flags:
            return flags
        return Settings.DEFAULT_FOR_RENT, Settings.DEFAULT_FOR_SALE

    def _media(
        self,
        raw: Mapping[str, Any],
        src: _Sources,
        gallery: Iterable[MediaItem],
    ) -> list[MediaItem]:
        items: list[MediaItem] = []

        embedded = raw.get("_embedded")
        if isinstance(embedded, Mapping):
            featured = embedded.get("wp:featuredmedia") or []
            if featured and isinstance(featured[0], Mapping):
                first = featured[0]
                if first.get("source_url"):
                    items.append(
                        MediaItem(
                            id=int(first.get("id") or raw.get("featured_media") or 0),
                            url=str(first["source_url"]),
                            alt=str(first.get("alt_text") or ""),
                        )
                    )

        items.extend(gallery)

        for entry in src.acf.get("gallery") or []:
            if isinstance(entry, Mapping) and entry.get("url"):
                items.append(
                    MediaItem(
                        id=int(entry.get("id") or 0),
                        url=str(entry["url"]),
                        alt=str(entry.get("alt") or ""),
                    )
                )

        normalised = [
            MediaItem(id=m.id, url=normalize_media_url(m.url), alt=m.alt)
            for m in items
        ]
        kept, _ = MediaDeduplicator.deduplicate(normalised)
        return kept

    # ── Public API ───────────────────────────────────────

    def reconcile(
        self,
        raw: Mapping[str, Any],
        gallery: Iterable[MediaItem] = (),
    ) -> Property:
        """Canonical property from a raw CMS record and its gallery."""
        src = _Sources(raw)
        for_rent, for_sale = self._flags(src)
        content = rendered_text(raw, "content")
        property_id = int(raw.get("id") or 0)
        slug = str(raw.get("slug") or "")

        return Property(
            id=property_id,
            title=clean_plain_text(rendered_text(raw, "title")),
            slug=slug,
            description=sanitize_html(content),
            excerpt=make_excerpt(
                rendered_text(raw, "excerpt"), content, min_length=1
            ),
            zone=self._zone(src),
            city=(
                _text(src.custom("city"))
                or _text(src.legacy("fave_property_city"))
                or self.default_city
            ),
            region=(
                _text(src.custom("region", "state"))
                or _text(src.legacy("fave_property_state"))
                or self.default_region
            ),
            price=self._price(src),
            bedrooms=self._count(src, "bedrooms", "fave_property_bedrooms"),
            bathrooms=self._count(src, "bathrooms", "fave_property_bathrooms"),
            guests=self._count(src, "guests", "fave_property_guests"),
            media=self._media(raw, src, gallery),
            published_at=parse_date(raw.get("date")),
            for_rent=for_rent,
            for_sale=for_sale,
            source_ids={
                "cms_id": property_id,
                "slug": slug,
                "featured_media": raw.get("featured_media"),
            },
        )

    def reconcile_crm(self, raw: Mapping[str, Any]) -> Property:
        """Canonical property from a raw CRM listing record."""
        property_id = int(raw.get("id_property") or 0)
        title = clean_plain_text(str(raw.get("title") or ""))
        observations = str(raw.get("observations") or "")

        rent = parse_flag(raw.get("for_rent"))
        sale = parse_flag(raw.get("for_sale"))
        if rent is None and sale is None:
            rent, sale = Settings.DEFAULT_FOR_RENT, Settings.DEFAULT_FOR_SALE

        prices = (
            (raw.get("rent_price"), raw.get("sale_price"))
            if rent or not sale
            else (raw.get("sale_price"), raw.get("rent_price"))
        )
        price = PRICE_UNAVAILABLE
        for candidate in prices:
            amount = parse_price(candidate)
            if amount is not None:
                price = amount
                break

        return Property(
            id=property_id,
            title=title,
            slug=crm_slug(title, property_id),
            description=sanitize_html(observations),
            excerpt=make_excerpt("", observations, min_length=1),
            zone=_text(raw.get("zone_label"))
            or _text(raw.get("location_label"))
            or self.default_city,
            city=_text(raw.get("city_label")) or self.default_city,
            region=_text(raw.get("region_label")) or self.default_region,
            price=price,
            bedrooms=parse_count(raw.get("bedrooms")) or 0,
            bathrooms=parse_count(raw.get("bathrooms")) or 0,
            guests=parse_count(raw.get("max_guests")) or 0,
            media=_crm_media(raw),
            published_at=parse_date(raw.get("created_at")),
            for_rent=bool(rent),
            for_sale=bool(sale),
            source_ids={
                "crm_id": property_id,
                "reference": raw.get("reference") or "",
            },
        )


def crm_slug(title: str, property_id: int) -> str:
    """``title-words-<id>``, the slug shape the CRM pages are served on."""
    base = slugify(title)
    return f"{base}-{property_id}" if base else str(property_id)


def slug_id(slug: str) -> int | None:
    """Trailing numeric id of a ``title-words-<id>`` slug."""
    match = re.search(r"(?:^|-)(\d+)$", slug)
    return int(match.group(1)) if match else None


def _crm_media(raw: Mapping[str, Any]) -> list[MediaItem]:
    images: list[Mapping[str, Any]] = []
    main = raw.get("main_image")
    if isinstance(main, Mapping):
        images.append(main)

    gallery_images: list[Mapping[str, Any]] = []
    for gallery in raw.get("galleries") or []:
        if not isinstance(gallery, Mapping):
            continue
        gallery_images.extend(
            v for k, v in gallery.items() if str(k).isdigit() and isinstance(v, Mapping)
        )
    gallery_images.sort(key=lambda img: parse_count(img.get("position")) or 0)
    images.extend(gallery_images)

    items: list[MediaItem] = []
    for image in images:
        url = image.get("url_big") or image.get("url") or image.get("url_original")
        if not url:
            continue
        items.append(
            MediaItem(
                id=parse_count(image.get("id")) or 0,
                url=normalize_media_url(str(url)),
                alt=_text(image.get("description")),
            )
        )
    kept, _ = MediaDeduplicator.deduplicate(items)
    return kept
