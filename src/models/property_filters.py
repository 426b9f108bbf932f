# src/models/property_filters.py

"""Search criteria for filtered CRM property reads."""

from dataclasses import dataclass
from typing import Any

from src.config.settings import Settings


@dataclass
class PropertyFilters:
    """Optional criteria; ``None`` means "do not filter on this"."""

    search: str | None = None
    for_sale: bool | None = None
    for_rent: bool | None = None
    min_price: float | None = None
    max_price: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    city_id: int | None = None
    region_id: int | None = None
    property_type_id: int | None = None
    zone_id: int | None = None
    take: int = Settings.CRM_FILTER_DEFAULT_TAKE
    skip: int = 0

    def to_crm_filters(self) -> dict[str, Any]:
        """Body fields for the CRM property search.

        Only available listings are requested, newest first, and
        ``take`` is capped at the CRM's page limit.
        """
        optional = {
            "match": self.search,
            "for_sale": self.for_sale,
            "for_rent": self.for_rent,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "min_bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "id_city": self.city_id,
            "id_region": self.region_id,
            "id_property_type": self.property_type_id,
            "id_zone": self.zone_id,
        }
        filters = {k: v for k, v in optional.items() if v not in (None, "")}
        filters.update(
            id_availability=Settings.CRM_AVAILABLE_ONLY,
            scope=Settings.CRM_SEARCH_SCOPE,
            take=max(1, min(self.take, Settings.CRM_FILTER_MAX_TAKE)),
            skip=max(0, self.skip),
            order="desc",
            order_by="created_at",
        )
        return filters
