# src/services/image_resolver.py

"""Chunked, paced gallery resolution for many CMS entities at once."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from src.clients.cms_client import CmsClient
from src.config.settings import Settings
from src.errors import UpstreamError
from src.filters.deduplicator import MediaDeduplicator
from src.models.property import MediaItem

logger = logging.getLogger("listing_hub.images")


def media_from_payload(payload: Mapping[str, Any]) -> MediaItem | None:
    """Build a :class:`MediaItem` from a CMS ``/media`` object."""
    url = payload.get("source_url") or payload.get("url")
    if not url:
        return None
    try:
        media_id = int(payload.get("id") or 0)
    except (TypeError, ValueError):
        media_id = 0
    return MediaItem(
        id=media_id,
        url=str(url),
        alt=str(payload.get("alt_text") or payload.get("alt") or ""),
    )


def parse_custom_field_media(
    acf: Mapping[str, Any] | None,
    keys: Iterable[str] | None = None,
    limit: int | None = None,
) -> list[MediaItem | int]:
    """Read gallery entries out of a custom-field bag.

    Fields are tried in order and the first one yielding anything
    wins. Entries are either complete :class:`MediaItem` objects or
    bare media ids still to be looked up.
    """
    if not isinstance(acf, Mapping):
        return []
    keys = keys if keys is not None else Settings.CUSTOM_FIELD_MEDIA_KEYS
    limit = limit if limit is not None else Settings.CUSTOM_FIELD_MEDIA_LIMIT

    for key in keys:
        value = acf.get(key)
        if not isinstance(value, list) or not value:
            continue
        found: list[MediaItem | int] = []
        for entry in value[:limit]:
            if isinstance(entry, bool):
                continue
            if isinstance(entry, int):
                found.append(entry)
            elif isinstance(entry, str) and entry.strip().isdigit():
                found.append(int(entry.strip()))
            elif isinstance(entry, dict):
                sizes = entry.get("sizes") or {}
                url = (
                    entry.get("url")
                    or entry.get("source_url")
                    or sizes.get("large")
                    or sizes.get("medium")
                    or sizes.get("full")
                )
                raw_id = entry.get("id") or entry.get("ID") or entry.get("attachment_id")
                if url:
                    found.append(
                        MediaItem(
                            id=int(raw_id) if raw_id else 0,
                            url=str(url),
                            alt=str(entry.get("alt") or entry.get("alt_text") or ""),
                        )
                    )
                elif raw_id:
                    found.append(int(raw_id))
        if found:
            return found
    return []


class BatchImageResolver:
    """Fetch galleries for a list of entity ids without flooding the CMS.

    Entities are processed in fixed-size chunks: requests inside a
    chunk run concurrently, chunks run one after another with a short
    pause in between. Entities left without media after the primary
    pass get a second, custom-field based attempt.
    """

    def __init__(
        self,
        cms: CmsClient,
        chunk_size: int | None = None,
        fallback_chunk_size: int | None = None,
        pacing: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.cms = cms
        self.chunk_size = chunk_size or Settings.IMAGE_BATCH_SIZE
        self.fallback_chunk_size = (
            fallback_chunk_size or Settings.IMAGE_FALLBACK_BATCH_SIZE
        )
        self.pacing = (
            pacing if pacing is not None else Settings.IMAGE_BATCH_DELAY
        )
        self._sleep = sleep or asyncio.sleep

    # ── Private helpers ──────────────────────────────────

    async def _run_chunked(
        self,
        ids: list[int],
        size: int,
        worker: Callable[[int], Awaitable[list[MediaItem]]],
        stage: str,
    ) -> dict[int, list[MediaItem]]:
        """Run *worker* over *ids* chunk by chunk with pacing."""
        found: dict[int, list[MediaItem]] = {}
        for start in range(0, len(ids), size):
            chunk = ids[start:start + size]
            results = await asyncio.gather(
                *(worker(entity_id) for entity_id in chunk),
                return_exceptions=True,
            )
            for entity_id, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "%s image lookup failed for entity %s: %s",
                        stage,
                        entity_id,
                        result,
                        exc_info=result,
                    )
                    continue
                found[entity_id] = result
            if start + size < len(ids) and self.pacing > 0:
                await self._sleep(self.pacing)
        return found

    async def _attached_media(self, entity_id: int) -> list[MediaItem]:
        payload = await self.cms.fetch_media_for_parent(entity_id)
        items = [media_from_payload(p) for p in payload]
        return [item for item in items if item is not None]

    async def _custom_field_media(
        self,
        entity_id: int,
        records: Mapping[int, Mapping[str, Any]] | None,
    ) -> list[MediaItem]:
        record = records.get(entity_id) if records else None
        if record is None:
            record = await self.cms.fetch_property(entity_id, fields="id,acf")

        items: list[MediaItem] = []
        for entry in parse_custom_field_media(record.get("acf")):
            if isinstance(entry, MediaItem):
                items.append(entry)
                continue
            try:
                media = media_from_payload(
                    await self.cms.fetch_media_item(entry)
                )
            except UpstreamError as exc:
                logger.warning(
                    "Media %s for entity %s could not be fetched: %s",
                    entry,
                    entity_id,
                    exc,
                )
                continue
            if media is not None:
                items.append(media)
        return items

    # ── Public API ───────────────────────────────────────

    async def resolve_images(
        self,
        entity_ids: Iterable[int],
        records: Mapping[int, Mapping[str, Any]] | None = None,
    ) -> dict[int, list[MediaItem]]:
        """Map every id in *entity_ids* to its (possibly empty) gallery.

        *records* optionally supplies the already-fetched raw records
        so the secondary pass can read their custom fields without a
        further request. Per-entity failures are logged, never raised.
        """
        ids = list(dict.fromkeys(entity_ids))
        galleries: dict[int, list[MediaItem]] = {i: [] for i in ids}
        if not ids:
            return galleries

        primary = await self._run_chunked(
            ids, self.chunk_size, self._attached_media, "Primary"
        )
        galleries.update(primary)

        missing = [i for i in ids if not galleries[i]]
        if missing:
            logger.info(
                "%d of %d entities have no attached media, "
                "trying custom fields",
                len(missing),
                len(ids),
            )

            async def fallback(entity_id: int) -> list[MediaItem]:
                return await self._custom_field_media(entity_id, records)

            secondary = await self._run_chunked(
                missing, self.fallback_chunk_size, fallback, "Secondary"
            )
            galleries.update(secondary)

        for entity_id, items in galleries.items():
            galleries[entity_id], _ = MediaDeduplicator.deduplicate(items)

        logger.debug(
            "Resolved %d images for %d entities",
            sum(len(v) for v in galleries.values()),
            len(ids),
        )
        return galleries
