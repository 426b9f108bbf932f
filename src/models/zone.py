# src/models/zone.py

"""Zone (neighbourhood) data model."""

from dataclasses import dataclass


@dataclass
class Zone:
    """A browsable zone of the city, sourced from a CMS taxonomy."""

    id: int
    name: str
    slug: str
    image_url: str | None = None
    short_description: str | None = None
    featured: bool = False
    order: int | None = None
    count: int = 0
