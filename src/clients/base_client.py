# src/clients/base_client.py

"""Shared async HTTP plumbing for the CMS and CRM clients."""

import logging
from typing import Any

from curl_cffi.requests import AsyncSession, Response

from src.config.settings import Settings
from src.errors import UpstreamError


class BaseClient:
    """Owns one curl_cffi ``AsyncSession`` and the request timeout.

    Requests are single-shot: a failing call raises
    :class:`~src.errors.UpstreamError` and it is up to the caller
    (prober, resolver, lead service) to decide whether to fall back.
    """

    def __init__(
        self,
        source_name: str,
        base_url: str,
        session: Any | None = None,
        timeout: float | None = None,
    ) -> None:
        self.source_name = source_name
        self.base_url = base_url.rstrip("/")
        self.logger = logging.getLogger(
            f"listing_hub.{source_name}"
        )
        self.settings = Settings()
        self._session = session
        self._request_timeout: float = (
            timeout
            if timeout is not None
            else self.settings.REQUEST_TIMEOUT
        )

    @property
    def session(self) -> Any:
        """Lazily open the session on first use."""
        if self._session is None:
            self._session = AsyncSession(
                impersonate=self.settings.IMPERSONATE_BROWSER,
                headers=self.settings.DEFAULT_HEADERS,
            )
        return self._session

    async def close(self) -> None:
        """Release the underlying session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "BaseClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def url_for(self, path: str) -> str:
        """Join *path* onto the client's base URL."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        data: dict[str, Any] | None = None,
    ) -> Response:
        """Issue exactly one request with the configured timeout.

        Transport errors (DNS, TLS, timeouts) are re-raised as
        :class:`UpstreamError`; HTTP status codes are *not* checked.
        """
        try:
            return await self.session.request(
                method,
                self.url_for(path),
                params=params,
                json=json,
                data=data,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            raise UpstreamError(
                self.source_name, path, f"request error: {exc}"
            ) from exc

    async def fetch_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises :class:`UpstreamError` on transport failure, a
        non-2xx status, or a body that is not valid JSON.
        """
        resp = await self.send(
            method, path, params=params, json=json, data=data
        )
        return self.decode(resp, path)

    def decode(self, resp: Response, path: str) -> Any:
        """Check the status of *resp* and decode its JSON body."""
        if not 200 <= resp.status_code < 300:
            raise UpstreamError(
                self.source_name,
                path,
                "unexpected status",
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(
                self.source_name,
                path,
                "malformed JSON body",
                status=resp.status_code,
            ) from exc
