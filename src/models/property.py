# src/models/property.py

"""Canonical property record shared by the CMS and CRM read paths."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Zero is not a meaningful nightly/monthly price, so it marks "no price".
PRICE_UNAVAILABLE: float = 0.0


@dataclass
class MediaItem:
    """A single image attached to a property or post."""

    id: int
    url: str
    alt: str = ""


@dataclass
class Property:
    """Reconciled property, independent of which upstream fed each field."""

    id: int
    title: str
    slug: str = ""
    description: str = ""
    excerpt: str = ""
    zone: str = ""
    city: str = ""
    region: str = ""
    price: float = PRICE_UNAVAILABLE
    bedrooms: int = 0
    bathrooms: int = 0
    guests: int = 0
    media: list[MediaItem] = field(
        default_factory=lambda: list[MediaItem]()
    )
    published_at: datetime | None = None
    for_rent: bool = True
    for_sale: bool = False
    source_ids: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )

    @property
    def has_price(self) -> bool:
        """True when the price is a real, positive amount."""
        return self.price > PRICE_UNAVAILABLE

    def cover_url(self, placeholder: str) -> str:
        """First media URL, or *placeholder* when there is no media."""
        return self.media[0].url if self.media else placeholder
