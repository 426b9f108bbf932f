# src/clients/crm_client.py

"""Client for the Wasi-style CRM: properties, contacts, channels, labels."""

from typing import Any

from src.clients.base_client import BaseClient
from src.config.settings import Settings
from src.errors import CrmWriteError, UpstreamError
from src.models.lead import Label


def numeric_records(payload: Any) -> list[dict[str, Any]]:
    """Records of a CRM listing response.

    The CRM returns ``{"0": {...}, "1": {...}, "total": 2,
    "status": "success"}``; only the numeric keys are records.
    """
    if not isinstance(payload, dict):
        return []
    keys = sorted(
        (k for k in payload if str(k).isdigit()),
        key=lambda k: int(k),
    )
    return [payload[k] for k in keys if isinstance(payload[k], dict)]


class CrmClient(BaseClient):
    """Thin wrapper over the CRM's REST endpoints.

    Every call carries the company id and API token, either in the
    JSON/form body or the query string depending on the endpoint.
    """

    def __init__(
        self,
        base_url: str | None = None,
        company_id: int | None = None,
        token: str | None = None,
        user_id: int | None = None,
        session: Any | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            "crm",
            base_url or Settings.CRM_API_URL,
            session=session,
            timeout=timeout,
        )
        self.company_id = (
            company_id if company_id is not None else Settings.CRM_COMPANY_ID
        )
        self.token = token if token is not None else Settings.CRM_API_TOKEN
        self.user_id = user_id if user_id is not None else Settings.CRM_USER_ID

    @property
    def credentials(self) -> dict[str, Any]:
        return {"id_company": self.company_id, "wasi_token": self.token}

    def _form_credentials(self) -> dict[str, str]:
        return {"id_company": str(self.company_id), "wasi_token": self.token}

    def _check_status(self, body: Any, path: str) -> dict[str, Any]:
        """Reject bodies whose ``status`` field is not ``success``."""
        if not isinstance(body, dict) or body.get("status") != "success":
            raise UpstreamError(
                self.source_name, path, f"CRM reported failure: {body!r}"
            )
        return body

    # ── Properties ───────────────────────────────────────

    async def search_properties(
        self, filters: dict[str, Any] | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Search listings; returns the records and the CRM's total."""
        path = "/v1/property/search"
        body = await self.fetch_json(
            "POST", path, json={**self.credentials, **(filters or {})}
        )
        records = numeric_records(body)
        total = body.get("total", len(records)) if isinstance(body, dict) else 0
        try:
            total = int(total)
        except (TypeError, ValueError):
            total = len(records)
        return records, total

    async def get_property(self, property_id: int) -> dict[str, Any] | None:
        """One listing by id, or ``None`` when the CRM does not know it."""
        path = f"/v1/property/get/{property_id}"
        try:
            body = await self.fetch_json(
                "GET", path, params=self.credentials
            )
        except UpstreamError as exc:
            self.logger.warning(
                "[crm] Could not fetch property %s: %s",
                property_id,
                exc,
            )
            return None
        if isinstance(body, dict) and body.get("status") == "success":
            return body
        return None

    # ── Channels ─────────────────────────────────────────

    async def get_client_origins(self) -> list[dict[str, Any]]:
        """Registered lead origin channels.

        Documented as POST, but some deployments only accept GET
        with query-string credentials (HTTP 405 on POST).
        """
        path = "/v1/client-origin/all"
        resp = await self.send("POST", path, json=self.credentials)
        if resp.status_code == 405:
            self.logger.info(
                "[crm] %s rejected POST, retrying as GET", path
            )
            resp = await self.send("GET", path, params=self.credentials)
        body = self.decode(resp, path)
        if not isinstance(body, dict):
            return []
        return [v for v in body.values() if isinstance(v, dict)]

    # ── Contacts ─────────────────────────────────────────

    async def create_client(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a contact; raises :class:`CrmWriteError` on any failure."""
        path = "/v1/client/add"
        try:
            resp = await self.send(
                "POST", path, json={**self.credentials, **payload}
            )
        except UpstreamError as exc:
            raise CrmWriteError(
                self.source_name, path, f"contact creation failed: {exc}"
            ) from exc
        try:
            body = resp.json()
        except ValueError as exc:
            raise CrmWriteError(
                self.source_name,
                path,
                "invalid response body",
                status=resp.status_code,
            ) from exc
        if not 200 <= resp.status_code < 300 or (
            isinstance(body, dict) and body.get("status") == "error"
        ):
            message = body
            if isinstance(body, dict):
                message = (
                    body.get("message")
                    or body.get("error")
                    or body.get("details")
                    or body
                )
            raise CrmWriteError(
                self.source_name,
                path,
                f"contact rejected: {message}",
                status=resp.status_code,
            )
        if not isinstance(body, dict) or "id_client" not in body:
            raise CrmWriteError(
                self.source_name,
                path,
                f"no id_client in response: {body!r}",
                status=resp.status_code,
            )
        return body

    async def update_client_form(
        self, client_id: int, fields: dict[str, Any],
    ) -> dict[str, Any]:
        """Form-encoded contact update."""
        path = f"/v1/client/update/{client_id}"
        form = {
            **self._form_credentials(),
            **{k: str(v) for k, v in fields.items()},
        }
        body = await self.fetch_json("POST", path, data=form)
        return self._check_status(body, path)

    async def update_client_json(
        self, client_id: int, fields: dict[str, Any],
    ) -> dict[str, Any]:
        """JSON-encoded contact update."""
        path = f"/v1/client/update/{client_id}"
        body = await self.fetch_json(
            "POST", path, json={**self.credentials, **fields}
        )
        return self._check_status(body, path)

    async def search_clients(self, take: int) -> list[dict[str, Any]]:
        """Recent contacts (used to discover contact-scoped tags)."""
        path = "/v1/client/search"
        body = await self.fetch_json(
            "POST", path, json={**self.credentials, "take": take}
        )
        return numeric_records(self._check_status(body, path))

    # ── Labels ───────────────────────────────────────────

    async def list_labels(self) -> list[Label]:
        """The named-label registry."""
        path = "/v1/property/label/all"
        body = self._check_status(
            await self.fetch_json("GET", path, params=self.credentials),
            path,
        )
        labels: list[Label] = []
        for key, value in body.items():
            if key == "status" or not isinstance(value, dict):
                continue
            try:
                label_id = int(value.get("id_label") or 0)
            except (TypeError, ValueError):
                self.logger.warning("Skipping label with bad id: %r", value)
                continue
            if label_id:
                labels.append(
                    Label(
                        id=label_id,
                        name=str(value.get("label", "")),
                        color=str(value.get("label_color", "")),
                    )
                )
        return labels

    async def create_label(self, name: str, color: str) -> Label:
        """Register a new label."""
        path = "/v1/property/label/add"
        body = self._check_status(
            await self.fetch_json(
                "POST",
                path,
                data={**self._form_credentials(), "name": name, "color": color},
            ),
            path,
        )
        return Label(
            id=int(body["id_label"]),
            name=str(body.get("label", name)),
            color=str(body.get("label_color", color)),
        )

    async def update_label(self, label_id: int, name: str, color: str) -> Label:
        """Rename or recolour an existing label."""
        path = f"/v1/property/label/update/{label_id}"
        body = self._check_status(
            await self.fetch_json(
                "POST",
                path,
                data={**self._form_credentials(), "name": name, "color": color},
            ),
            path,
        )
        return Label(
            id=int(body.get("id_label", label_id)),
            name=str(body.get("label", name)),
            color=str(body.get("label_color", color)),
        )

    async def delete_label(self, label_id: int) -> None:
        """Remove a label from the registry."""
        path = f"/v1/property/label/delete/{label_id}"
        self._check_status(
            await self.fetch_json(
                "POST", path, data=self._form_credentials()
            ),
            path,
        )
