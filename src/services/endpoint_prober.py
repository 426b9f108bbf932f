# src/services/endpoint_prober.py

"""Ordered endpoint probing for resources with uncertain physical paths."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.clients.base_client import BaseClient
from src.errors import AllCandidatesFailedError, ProbeAttempt, UpstreamError

logger = logging.getLogger("listing_hub.prober")


@dataclass(frozen=True)
class EndpointCandidate:
    """One concrete way of reaching a logical resource.

    ``path`` is a ``str.format`` template (``"/properties/{id}"``).
    """

    path: str
    method: str = "GET"

    def render(self, path_vars: Mapping[str, Any] | None = None) -> str:
        """Fill the path template with *path_vars*."""
        return self.path.format(**(path_vars or {}))


@dataclass
class ProbeResult:
    """The first successful candidate and its decoded body."""

    candidate: EndpointCandidate
    path: str
    status: int
    data: Any
    headers: dict[str, str] = field(
        default_factory=lambda: dict[str, str]()
    )


class EndpointProber:
    """Try candidate endpoints in order until one answers.

    The CMS publishes the same collection under different names
    depending on how its content types were registered, so callers
    pass an ordered candidate list instead of a single path.
    """

    def __init__(self, client: BaseClient) -> None:
        self.client = client

    async def resolve(
        self,
        resource: str,
        candidates: Sequence[EndpointCandidate],
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
        path_vars: Mapping[str, Any] | None = None,
    ) -> ProbeResult:
        """Return the first 2xx JSON response among *candidates*.

        Each candidate is tried exactly once. Raises
        :class:`AllCandidatesFailedError` listing every attempt
        when none succeeds.
        """
        if not candidates:
            raise ValueError(f"No candidates given for {resource!r}")

        attempts: list[ProbeAttempt] = []
        for candidate in candidates:
            path = candidate.render(path_vars)
            try:
                resp = await self.client.send(
                    candidate.method,
                    path,
                    params=params,
                    json=payload,
                )
                data = self.client.decode(resp, path)
            except UpstreamError as exc:
                attempts.append(
                    ProbeAttempt(
                        path=path,
                        method=candidate.method,
                        status=exc.status,
                        error=str(exc),
                    )
                )
                logger.debug(
                    "Candidate %s %s failed for %s: %s",
                    candidate.method,
                    path,
                    resource,
                    exc,
                )
                continue

            if attempts:
                logger.info(
                    "Resolved %s via %s after %d failed candidate(s)",
                    resource,
                    path,
                    len(attempts),
                )
            return ProbeResult(
                candidate=candidate,
                path=path,
                status=resp.status_code,
                data=data,
                headers=dict(resp.headers or {}),
            )

        logger.error(
            "All %d candidates failed for %s",
            len(attempts),
            resource,
        )
        raise AllCandidatesFailedError(
            self.client.source_name, resource, attempts
        )
