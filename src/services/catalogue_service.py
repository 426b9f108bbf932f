# src/services/catalogue_service.py

"""Read API: cache, then probe, then images, then reconcile."""

import logging
import re
from typing import Any

from src.clients.cms_client import CmsClient
from src.clients.crm_client import CrmClient
from src.config.settings import Settings
from src.errors import UpstreamError
from src.filters.attribute_reconciler import AttributeReconciler, slug_id
from src.filters.content_normalizer import (
    parse_blog_post,
    parse_zone,
    sort_zones,
)
from src.filters.deduplicator import unique_by_slug
from src.models.blog_post import BlogPage, BlogPost
from src.models.property import Property
from src.models.property_filters import PropertyFilters
from src.models.zone import Zone
from src.services.image_resolver import BatchImageResolver
from src.storage.ttl_cache import CacheInfo, CacheResult, TTLCacheStore

logger = logging.getLogger("listing_hub.catalogue")


class CatalogueService:
    """Cached, reconciled views of the CMS and CRM catalogues.

    Every read goes through the TTL cache. Failures never propagate
    to callers: they get the last good value or an empty one.
    """

    def __init__(
        self,
        cms: CmsClient | None = None,
        crm: CrmClient | None = None,
        cache: TTLCacheStore | None = None,
        resolver: BatchImageResolver | None = None,
        reconciler: AttributeReconciler | None = None,
    ) -> None:
        self.settings = Settings()
        self.cms = cms or CmsClient()
        self.crm = crm or CrmClient()
        self.cache = cache or TTLCacheStore()
        self.resolver = resolver or BatchImageResolver(self.cms)
        self.reconciler = reconciler or AttributeReconciler()

    async def close(self) -> None:
        await self.cms.close()
        await self.crm.close()

    # ── Producers ────────────────────────────────────────

    async def _reconcile_records(
        self, records: list[dict[str, Any]],
    ) -> list[Property]:
        by_id = {int(r["id"]): r for r in records if r.get("id")}
        galleries = await self.resolver.resolve_images(list(by_id), by_id)
        return [
            self.reconciler.reconcile(raw, galleries.get(entity_id, []))
            for entity_id, raw in by_id.items()
        ]

    async def _produce_properties(self) -> list[Property]:
        raw = await self.cms.fetch_properties()
        properties = await self._reconcile_records(raw)
        logger.info("Reconciled %d CMS properties", len(properties))
        return unique_by_slug(properties)

    async def _produce_zones(self) -> list[Zone]:
        terms = await self.cms.fetch_taxonomy_terms(
            self.settings.ZONE_TAXONOMY
        )
        zones = unique_by_slug(parse_zone(t) for t in terms)
        return sort_zones(zones)

    async def _produce_blog_posts(self) -> list[BlogPost]:
        posts, total, total_pages = await self.cms.fetch_blog_posts(
            self.settings.BLOG_FEED_SIZE
        )
        logger.info(
            "Fetched %d of %d blog posts (%d pages)",
            len(posts),
            total,
            total_pages,
        )
        return unique_by_slug(parse_blog_post(p) for p in posts)

    async def _produce_crm_properties(self) -> list[Property]:
        records, total = await self.crm.search_properties(
            {"take": self.settings.CRM_PROPERTIES_TAKE}
        )
        logger.info(
            "Fetched %d of %d CRM properties", len(records), total
        )
        return unique_by_slug(
            self.reconciler.reconcile_crm(r) for r in records
        )

    # ── CMS properties ───────────────────────────────────

    async def get_properties(self) -> list[Property]:
        return await self.cache.get("properties", self._produce_properties)

    async def get_property(self, property_id: int) -> Property | None:
        """One property, from the cached catalogue or a direct lookup."""
        for prop in await self.get_properties():
            if prop.id == property_id:
                return prop
        try:
            raw = await self.cms.fetch_property(property_id)
        except UpstreamError as exc:
            logger.warning(
                "Property %s not available: %s", property_id, exc
            )
            return None
        if not raw:
            return None
        reconciled = await self._reconcile_records([raw])
        return reconciled[0] if reconciled else None

    async def get_property_by_slug(self, slug: str) -> Property | None:
        for prop in await self.get_properties():
            if prop.slug == slug:
                return prop
        try:
            raw = await self.cms.fetch_property_by_slug(slug)
        except UpstreamError as exc:
            logger.warning("Property '%s' not available: %s", slug, exc)
            return None
        if not raw:
            return None
        reconciled = await self._reconcile_records([raw])
        return reconciled[0] if reconciled else None

    async def get_properties_by_taxonomy(
        self,
        taxonomy: str,
        term_slug: str,
        limit: int | None = None,
    ) -> list[Property]:
        """Properties tagged with one taxonomy term; not cached."""
        limit = limit or self.settings.TAXONOMY_LISTING_LIMIT
        try:
            raw = await self.cms.fetch_properties_by_taxonomy(
                taxonomy, term_slug, limit
            )
        except UpstreamError as exc:
            logger.warning(
                "Properties for %s=%s not available: %s",
                taxonomy,
                term_slug,
                exc,
            )
            return []
        return unique_by_slug(await self._reconcile_records(raw))

    # ── Zones & blog ─────────────────────────────────────

    async def get_zones(self) -> list[Zone]:
        return await self.cache.get("zones", self._produce_zones)

    async def get_blog_posts(self) -> list[BlogPost]:
        return await self.cache.get("blog_posts", self._produce_blog_posts)

    async def get_blog_post(self, slug: str) -> BlogPost | None:
        """One post, served from the cached feed when it is there."""
        feed = self.cache.entry("blog_posts")
        if feed is not None:
            for post in feed.value:
                if post.slug == slug:
                    return post

        async def produce() -> BlogPost | None:
            raw = await self.cms.fetch_blog_post_by_slug(slug)
            return parse_blog_post(raw) if raw else None

        key = f"{self.settings.BLOG_POST_CACHE_PREFIX}{slug}"
        post = await self.cache.get(
            key,
            produce,
            ttl=self.cache.ttl_for("blog_posts"),
            empty_factory=lambda: None,
        )
        if post is None:
            # Unknown slugs are not remembered
            self.cache.invalidate(key)
        return post

    async def _blog_page(
        self, page: int, per_page: int, search: str | None = None,
    ) -> BlogPage:
        posts, total, total_pages = await self.cms.fetch_blog_posts(
            per_page, page, search=search
        )
        return BlogPage(
            page=page,
            posts=[parse_blog_post(p) for p in posts],
            total_posts=total,
            total_pages=total_pages,
        )

    async def get_blog_page(
        self, page: int = 1, per_page: int | None = None,
    ) -> BlogPage:
        """One page of the blog feed, cached per page and page size."""
        per_page = per_page or self.settings.BLOG_PAGE_SIZE
        page = max(1, page)
        key = f"{self.settings.BLOG_PAGE_CACHE_PREFIX}{page}:{per_page}"
        return await self.cache.get(
            key,
            lambda: self._blog_page(page, per_page),
            ttl=self.cache.ttl_for("blog_posts"),
            empty_factory=lambda: BlogPage(page=page),
        )

    async def search_blog_posts(
        self, term: str, page: int = 1, per_page: int | None = None,
    ) -> BlogPage:
        """Posts matching *term*, by relevance; not cached."""
        per_page = per_page or self.settings.BLOG_PAGE_SIZE
        page = max(1, page)
        term = term.strip()
        if not term:
            return BlogPage(page=page)
        try:
            return await self._blog_page(page, per_page, search=term)
        except UpstreamError as exc:
            logger.warning("Blog search for '%s' failed: %s", term, exc)
            return BlogPage(page=page)

    # ── CRM properties ───────────────────────────────────

    async def get_crm_properties(self) -> list[Property]:
        return await self.cache.get(
            "crm_properties", self._produce_crm_properties
        )

    async def search_crm_properties(
        self, filters: PropertyFilters,
    ) -> list[Property]:
        """Available CRM listings matching *filters*; not cached."""
        try:
            records, total = await self.crm.search_properties(
                filters.to_crm_filters()
            )
        except UpstreamError as exc:
            logger.warning("Filtered CRM search failed: %s", exc)
            return []
        logger.info(
            "Filtered CRM search returned %d of %d listings",
            len(records),
            total,
        )
        return [self.reconciler.reconcile_crm(r) for r in records]

    async def get_crm_property_by_slug(self, slug: str) -> Property | None:
        """Resolve a ``title-words-<id>`` slug against the CRM.

        Tries the cached listing, then a lookup by the trailing id,
        then a text search on the slug words.
        """
        target_id = slug_id(slug)

        cached = self.cache.entry("crm_properties")
        if cached is not None:
            for prop in cached.value:
                if prop.slug == slug or (
                    target_id is not None and prop.id == target_id
                ):
                    return prop

        if target_id is not None:
            raw = await self.crm.get_property(target_id)
            if raw:
                return self.reconciler.reconcile_crm(raw)

        terms = re.sub(r"-\d+$", "", slug).replace("-", " ").strip()
        if not terms:
            return None
        try:
            records, _ = await self.crm.search_properties(
                {
                    "match": terms,
                    "scope": self.settings.CRM_SEARCH_SCOPE,
                    "take": 10,
                }
            )
        except UpstreamError as exc:
            logger.warning("CRM search for '%s' failed: %s", terms, exc)
            return None
        if not records:
            return None
        if target_id is not None:
            for record in records:
                if str(record.get("id_property")) == str(target_id):
                    return self.reconciler.reconcile_crm(record)
        return self.reconciler.reconcile_crm(records[0])

    # ── Cache maintenance ────────────────────────────────

    async def fetch(self, key: str) -> CacheResult:
        """Read a cached collection by key, exposing status and error."""
        producers = {
            "properties": self._produce_properties,
            "zones": self._produce_zones,
            "blog_posts": self._produce_blog_posts,
            "crm_properties": self._produce_crm_properties,
        }
        if key not in producers:
            raise KeyError(f"Unknown collection: {key}")
        return await self.cache.fetch(key, producers[key])

    def invalidate(self, key: str) -> bool:
        return self.cache.invalidate(key)

    def cache_info(self, key: str) -> CacheInfo:
        return self.cache.info(key)
