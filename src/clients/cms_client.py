# src/clients/cms_client.py

"""Read-only client for the WordPress-style CMS REST API."""

from typing import Any

from src.clients.base_client import BaseClient
from src.config.settings import Settings
from src.services.endpoint_prober import EndpointCandidate, EndpointProber

PROPERTY_FIELDS = (
    "id,title,excerpt,content,featured_media,slug,date,"
    "_embedded,acf,meta,property_meta,class_list"
)

PROPERTY_COLLECTION_CANDIDATES: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("/properties"),
    EndpointCandidate("/property"),
    EndpointCandidate("/posts"),
)

SINGLE_PROPERTY_CANDIDATES: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("/properties/{id}"),
    EndpointCandidate("/property/{id}"),
    EndpointCandidate("/posts/{id}"),
)

TAXONOMY_TERM_CANDIDATES: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("/{taxonomy}"),
    EndpointCandidate("/property_{taxonomy}"),
    EndpointCandidate("/property-{taxonomy}"),
)


def _header(headers: dict[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class CmsClient(BaseClient):
    """Fetch raw property, media, taxonomy and post payloads."""

    def __init__(
        self,
        base_url: str | None = None,
        session: Any | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            "cms",
            base_url or Settings.CMS_API_URL,
            session=session,
            timeout=timeout,
        )
        self.prober = EndpointProber(self)

    # ── Properties ───────────────────────────────────────

    async def fetch_properties(self) -> list[dict[str, Any]]:
        """Raw property collection from whichever endpoint is live."""
        result = await self.prober.resolve(
            "property collection",
            PROPERTY_COLLECTION_CANDIDATES,
            params={
                "per_page": self.settings.PROPERTIES_PER_PAGE,
                "_embed": 1,
                "acf_format": "standard",
                "_fields": PROPERTY_FIELDS,
            },
        )
        if not isinstance(result.data, list):
            self.logger.error(
                "[cms] %s did not return a list (got %s)",
                result.path,
                type(result.data).__name__,
            )
            return []
        return [p for p in result.data if isinstance(p, dict)]

    async def fetch_property(
        self, property_id: int, fields: str | None = None,
    ) -> dict[str, Any]:
        """Single raw property by id."""
        params: dict[str, Any] = {"acf_format": "standard"}
        if fields:
            params["_fields"] = fields
        else:
            params["_embed"] = "wp:featuredmedia,wp:term"
        result = await self.prober.resolve(
            "single property",
            SINGLE_PROPERTY_CANDIDATES,
            params=params,
            path_vars={"id": property_id},
        )
        return result.data if isinstance(result.data, dict) else {}

    async def fetch_property_by_slug(
        self, slug: str,
    ) -> dict[str, Any] | None:
        """Single raw property by slug, or ``None`` when unknown."""
        result = await self.prober.resolve(
            "property by slug",
            PROPERTY_COLLECTION_CANDIDATES,
            params={
                "slug": slug,
                "_embed": "wp:featuredmedia,wp:term",
                "acf_format": "standard",
            },
        )
        if isinstance(result.data, list) and result.data:
            first = result.data[0]
            return first if isinstance(first, dict) else None
        return None

    async def fetch_properties_by_taxonomy(
        self, taxonomy: str, term_slug: str, limit: int,
    ) -> list[dict[str, Any]]:
        """Raw properties carrying the term *term_slug* of *taxonomy*."""
        result = await self.prober.resolve(
            f"properties by {taxonomy}",
            PROPERTY_COLLECTION_CANDIDATES,
            params={
                taxonomy: term_slug,
                "per_page": limit,
                "_embed": 1,
                "acf_format": "standard",
            },
        )
        if not isinstance(result.data, list):
            return []
        return [p for p in result.data if isinstance(p, dict)]

    # ── Media ────────────────────────────────────────────

    async def fetch_media_for_parent(
        self, parent_id: int,
    ) -> list[dict[str, Any]]:
        """All media items attached to one parent entity."""
        data = await self.fetch_json(
            "GET",
            "/media",
            params={
                "parent": parent_id,
                "per_page": self.settings.MEDIA_PER_PARENT,
                "_fields": "id,source_url,alt_text",
            },
        )
        return [m for m in data if isinstance(m, dict)] if isinstance(data, list) else []

    async def fetch_media_item(self, media_id: int) -> dict[str, Any]:
        """One media item by id."""
        data = await self.fetch_json(
            "GET",
            f"/media/{media_id}",
            params={"_fields": "id,source_url,alt_text"},
        )
        return data if isinstance(data, dict) else {}

    # ── Taxonomies ───────────────────────────────────────

    async def fetch_taxonomy_terms(
        self, taxonomy: str,
    ) -> list[dict[str, Any]]:
        """Every term of *taxonomy*, tagged with the taxonomy name."""
        result = await self.prober.resolve(
            f"taxonomy {taxonomy}",
            TAXONOMY_TERM_CANDIDATES,
            params={
                "per_page": 100,
                "_fields": "id,count,description,link,name,slug,taxonomy,meta,acf",
            },
            path_vars={"taxonomy": taxonomy},
        )
        if not isinstance(result.data, list):
            return []
        return [
            {**term, "taxonomy": term.get("taxonomy") or taxonomy}
            for term in result.data
            if isinstance(term, dict)
        ]

    # ── Blog ─────────────────────────────────────────────

    async def fetch_blog_posts(
        self, per_page: int, page: int = 1, search: str | None = None,
    ) -> tuple[list[dict[str, Any]], int, int]:
        """One page of posts plus the CMS's total/total-pages headers.

        With *search* the page holds matching posts ordered by
        relevance instead of the newest posts.
        """
        params: dict[str, Any] = {
            "per_page": per_page,
            "page": page,
            "_embed": 1,
            "orderby": "date",
            "order": "desc",
        }
        if search:
            params.update(
                search=search, orderby="relevance", acf_format="standard"
            )
        resp = await self.send("GET", "/posts", params=params)
        data = self.decode(resp, "/posts")
        headers = dict(resp.headers or {})
        total = _safe_int(_header(headers, "X-WP-Total"), 0)
        total_pages = _safe_int(_header(headers, "X-WP-TotalPages"), 1)
        posts = [p for p in data if isinstance(p, dict)] if isinstance(data, list) else []
        return posts, total, total_pages

    async def fetch_blog_post_by_slug(
        self, slug: str,
    ) -> dict[str, Any] | None:
        """A single post by slug, or ``None`` when unknown."""
        data = await self.fetch_json(
            "GET",
            "/posts",
            params={"slug": slug, "_embed": 1, "acf_format": "standard"},
        )
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return None


def _safe_int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
