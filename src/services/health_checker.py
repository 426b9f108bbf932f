# src/services/health_checker.py

"""Reachability check for the CMS and CRM APIs."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from src.clients.base_client import BaseClient
from src.clients.cms_client import CmsClient
from src.clients.crm_client import CrmClient
from src.config.settings import Settings

logger = logging.getLogger("listing_hub.health")


@dataclass
class HealthResult:
    """Outcome of probing one upstream endpoint."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str
    endpoint: str = ""


def classify(status_code: int | None, latency_ms: float) -> tuple[str, str]:
    """``(status, message)`` for an HTTP status and the time it took."""
    if status_code is None or not 200 <= status_code < 300:
        return "down", f"HTTP {status_code}"
    if latency_ms > Settings.HEALTH_SLOW_MS:
        return "slow", f"{latency_ms:.0f}ms over {Settings.HEALTH_SLOW_MS:.0f}ms"
    return "ok", ""


async def probe_source(
    client: BaseClient, method: str, path: str, **kwargs: Any,
) -> HealthResult:
    """Send one request through *client*; never raises."""
    started = time.monotonic()
    try:
        resp = await client.send(method, path, **kwargs)
    except Exception as exc:
        latency_ms = (time.monotonic() - started) * 1000
        logger.debug(
            "Health probe %s %s failed", client.source_name, path, exc_info=True
        )
        return HealthResult(
            client.source_name, "down", latency_ms, str(exc)[:80], path
        )

    latency_ms = (time.monotonic() - started) * 1000
    status, message = classify(resp.status_code, latency_ms)
    return HealthResult(client.source_name, status, latency_ms, message, path)


class HealthChecker:
    """Probe the CMS post listing and the CRM channel listing together."""

    def __init__(
        self,
        cms: CmsClient | None = None,
        crm: CrmClient | None = None,
    ) -> None:
        self.cms = cms or CmsClient(timeout=Settings.HEALTH_TIMEOUT)
        self.crm = crm or CrmClient(timeout=Settings.HEALTH_TIMEOUT)

    async def check_all(self) -> list[HealthResult]:
        probes = (
            probe_source(self.cms, "GET", "/posts", params={"per_page": 1}),
            probe_source(
                self.crm,
                "GET",
                "/v1/client-origin/all",
                params=self.crm.credentials,
            ),
        )
        results = list(await asyncio.gather(*probes))
        for result in results:
            log = logger.info if result.status == "ok" else logger.warning
            log(
                "Health %s %s: %s in %.0fms %s",
                result.source_id,
                result.endpoint,
                result.status,
                result.latency_ms,
                result.message,
            )
        return results

    async def close(self) -> None:
        await self.cms.close()
        await self.crm.close()
