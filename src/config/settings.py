# src/config/settings.py

"""Central configuration for the listing_hub aggregation layer."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad input."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


class Settings:
    """Central configuration for the listing_hub aggregation layer."""

    # --- Upstreams ---
    CMS_API_URL: str = os.getenv(
        "CMS_API_URL", "https://wp.hospelia.co/wp-json/wp/v2"
    )
    CMS_LEGACY_HOST: str = os.getenv("CMS_LEGACY_HOST", "hospelia.co")
    CRM_API_URL: str = os.getenv("CRM_API_URL", "https://api.wasi.co")
    CRM_COMPANY_ID: int = _env_int("CRM_COMPANY_ID", 0)
    CRM_API_TOKEN: str = os.getenv("CRM_API_TOKEN", "")
    CRM_USER_ID: int = _env_int("CRM_USER_ID", 0)

    # --- Transport ---
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    HEALTH_TIMEOUT: int = 10            # Seconds per health probe
    HEALTH_SLOW_MS: float = 5000.0      # Latency above this is "slow"

    # --- Batch image resolution ---
    IMAGE_BATCH_SIZE: int = 5           # Entities per primary chunk
    IMAGE_FALLBACK_BATCH_SIZE: int = 10  # Entities per secondary chunk
    IMAGE_BATCH_DELAY: float = 0.1      # Seconds between chunks
    MEDIA_PER_PARENT: int = 20          # Page size for media?parent=
    CUSTOM_FIELD_MEDIA_LIMIT: int = 10  # Max items read per custom field
    CUSTOM_FIELD_MEDIA_KEYS: list[str] = [
        "fave_property_images",
        "gallery",
        "property_images",
        "images",
    ]
    PLACEHOLDER_IMAGE_URL: str = "/images/placeholder-property.jpg"

    # --- Cache (seconds) ---
    CACHE_TTLS: dict[str, float] = {
        "properties": 30 * 60,
        "crm_properties": 30 * 60,
        "zones": 60 * 60,
        "blog_posts": 2 * 24 * 60 * 60,
    }
    DEFAULT_CACHE_TTL: float = 30 * 60
    BLOG_POST_CACHE_PREFIX: str = "blog_post:"
    BLOG_PAGE_CACHE_PREFIX: str = "blog_page:"

    # --- Catalogue ---
    PROPERTIES_PER_PAGE: int = 100
    BLOG_FEED_SIZE: int = 50
    BLOG_PAGE_SIZE: int = 10
    CRM_PROPERTIES_TAKE: int = 100
    CRM_FILTER_DEFAULT_TAKE: int = 20
    CRM_FILTER_MAX_TAKE: int = 100
    CRM_AVAILABLE_ONLY: int = 1
    CRM_SEARCH_SCOPE: int = 3
    TAXONOMY_LISTING_LIMIT: int = 20
    ZONE_TAXONOMY: str = "zonas"
    LOCATION_TAXONOMIES: list[str] = [
        "property_zone",
        "zone",
        "zona",
        "zonas",
        "location",
        "property_location",
        "property_status",
    ]
    ZONE_DEFAULT_IMAGES: dict[str, str] = {
        "norte": "https://firebasestorage.googleapis.com/v0/b/hospelia-cms.appspot.com/o/images%2Fzona-norte.jpg?alt=media",
        "sur": "https://firebasestorage.googleapis.com/v0/b/hospelia-cms.appspot.com/o/images%2Fzona-sur.jpg?alt=media",
        "oeste": "https://firebasestorage.googleapis.com/v0/b/hospelia-cms.appspot.com/o/images%2Fzona-oeste.jpg?alt=media",
        "centro": "https://firebasestorage.googleapis.com/v0/b/hospelia-cms.appspot.com/o/images%2Fzona-centro.jpg?alt=media",
        "default": "https://firebasestorage.googleapis.com/v0/b/hospelia-cms.appspot.com/o/images%2Fcity-default.jpg?alt=media",
    }
    EXCERPT_MIN_LENGTH: int = 50
    EXCERPT_FALLBACK_LENGTH: int = 200

    # --- Deployment defaults (single-city business) ---
    DEFAULT_CITY: str = "Cali"
    DEFAULT_REGION: str = "Valle del Cauca"
    DEFAULT_FOR_RENT: bool = True
    DEFAULT_FOR_SALE: bool = False
    CRM_COUNTRY_ID: int = 1             # Colombia
    CRM_REGION_ID: int = 32             # Valle del Cauca
    CRM_CITY_ID: int = 132              # Cali

    # --- Leads & labels ---
    CRM_DEFAULT_ORIGIN_ID: int = 124
    CRM_CLIENT_SEARCH_TAKE: int = 100
    DEFAULT_PHONE: str = "0000000000"
    LEAD_SOURCE_MARKER: str = "Formulario web Hospelia"
    LEAD_REFERENCE: str = "Web Hospelia"
    LABEL_COLORS: dict[str, str] = {
        "anfitrión": "#10B981",
        "cliente": "#3B82F6",
    }
    DEFAULT_LABEL_COLOR: str = "#333333"
    LEAD_CHANNELS: dict[str, tuple[str, str]] = {
        "hazte-anfitrion": ("Hazte Anfitrión", "Anfitrión"),
        "popup-cliente": ("Popup Cliente", "Cliente"),
    }
    DEFAULT_LEAD_CHANNEL: tuple[str, str] = (
        "Portal Inmobiliario",
        "Cliente",
    )

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "es-CO,es;q=0.9,en;q=0.8",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
