# src/services/lead_service.py

"""Website lead intake: create the CRM contact, then tag it."""

import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import Any

from src.clients.crm_client import CrmClient
from src.config.settings import Settings
from src.errors import LeadValidationError, UpstreamError
from src.models.lead import Label, Lead, LeadResult

logger = logging.getLogger("listing_hub.leads")

NAME_FIELDS = ("nombres", "nombre", "name")
PHONE_FIELDS = ("telefono_completo", "telefono", "phone")
IDENTITY_FIELDS = frozenset(
    {*NAME_FIELDS, *PHONE_FIELDS, "email", "source", "fuente"}
)

# (comment label, accepted form keys) in the order they are written
COMMENT_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Ubicación preferida", ("ubicacion", "location")),
    ("Tipo de alojamiento", ("tipoAlojamiento", "accommodation_type")),
    ("Habitaciones", ("habitaciones",)),
    ("Presupuesto", ("presupuesto",)),
    ("Fechas requeridas", ("fechas",)),
    ("Mensaje", ("mensaje", "message")),
)

AssignStrategy = Callable[[CrmClient, int, int], Awaitable[Any]]


async def _assign_form(crm: CrmClient, client_id: int, label_id: int) -> Any:
    return await crm.update_client_form(
        client_id,
        {
            "id_label": label_id,
            "label_id": label_id,
            "tag": label_id,
            "tags[]": label_id,
        },
    )


async def _assign_json(crm: CrmClient, client_id: int, label_id: int) -> Any:
    return await crm.update_client_json(
        client_id,
        {
            "id_label": label_id,
            "label_id": label_id,
            "tag": label_id,
            "tags": [label_id],
        },
    )


# The CRM does not document which parameter carries a contact's label,
# so every known spelling is sent, first form-encoded, then as JSON.
LABEL_ASSIGNMENT_STRATEGIES: tuple[tuple[str, AssignStrategy], ...] = (
    ("form", _assign_form),
    ("json", _assign_json),
)


def _field(form: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = form.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def split_name(full_name: str) -> tuple[str, str]:
    """First word is the first name, the rest is the last name."""
    parts = full_name.split()
    if not parts:
        return "Sin nombre", ""
    return parts[0], " ".join(parts[1:])


class LeadService:
    """Create contacts from form submissions and label them.

    Contact creation is the only step allowed to fail the submission.
    Origin lookup falls back to a default channel, and labelling
    problems are logged and reported on the result.
    """

    def __init__(
        self,
        crm: CrmClient | None = None,
        clock: Callable[[], datetime] = datetime.now,
        strategies: tuple[tuple[str, AssignStrategy], ...] = LABEL_ASSIGNMENT_STRATEGIES,
    ) -> None:
        self.settings = Settings()
        self.crm = crm or CrmClient()
        self._clock = clock
        self._strategies = strategies
        self._label_memo: dict[str, int] = {}

    @staticmethod
    def channel_for_source(source: str | None) -> tuple[str, str]:
        """``(origin channel name, label name)`` for a form source."""
        key = (source or "").strip().lower()
        return Settings.LEAD_CHANNELS.get(key, Settings.DEFAULT_LEAD_CHANNEL)

    # ── Steps ────────────────────────────────────────────

    @staticmethod
    def validate(form: Mapping[str, Any]) -> None:
        missing: list[str] = []
        if not _field(form, ("email",)):
            missing.append("email")
        if not _field(form, NAME_FIELDS):
            missing.append("nombre")
        if missing:
            raise LeadValidationError(missing)

    async def resolve_origin(self, channel_name: str) -> int:
        """Id of the first channel whose name contains *channel_name*."""
        default = self.settings.CRM_DEFAULT_ORIGIN_ID
        try:
            origins = await self.crm.get_client_origins()
        except UpstreamError as exc:
            logger.warning(
                "Origin lookup failed, using default %s: %s", default, exc
            )
            return default

        wanted = channel_name.lower()
        for origin in origins:
            name = origin.get("name")
            if isinstance(name, str) and wanted in name.lower():
                try:
                    return int(origin["id_client_origin"])
                except (KeyError, TypeError, ValueError):
                    continue
        logger.info(
            "No origin channel matches '%s', using default %s",
            channel_name,
            default,
        )
        return default

    def build_comment(self, form: Mapping[str, Any]) -> str:
        lines: list[str] = []
        consumed: set[str] = set(IDENTITY_FIELDS)
        for label, keys in COMMENT_FIELDS:
            consumed.update(keys)
            value = _field(form, keys)
            if value:
                lines.append(f"{label}: {value}")

        for key, value in form.items():
            if key in consumed or value in (None, ""):
                continue
            lines.append(f"{key}: {value}")

        lines.append(f"Fuente: {self.settings.LEAD_SOURCE_MARKER}")
        lines.append(
            f"Fecha de captura: {self._clock().strftime('%d/%m/%Y, %H:%M:%S')}"
        )
        return "\n".join(lines)

    def build_lead(self, form: Mapping[str, Any], origin_id: int) -> Lead:
        first_name, last_name = split_name(_field(form, NAME_FIELDS))
        phone = _field(form, ("telefono", "phone"))
        location = _field(form, ("ubicacion", "location"))
        accommodation = _field(form, ("tipoAlojamiento", "accommodation_type"))
        return Lead(
            first_name=first_name,
            last_name=last_name,
            email=_field(form, ("email",)),
            cell_phone=_field(form, PHONE_FIELDS) or self.settings.DEFAULT_PHONE,
            origin_id=origin_id,
            country_id=self.settings.CRM_COUNTRY_ID,
            region_id=self.settings.CRM_REGION_ID,
            city_id=self.settings.CRM_CITY_ID,
            user_id=self.crm.user_id,
            comment=self.build_comment(form),
            phone=phone,
            address=location,
            query=(
                f"Interesado en {accommodation or 'alojamiento'} - "
                f"{_field(form, ('habitaciones',))} - "
                f"{_field(form, ('presupuesto',))}"
            ),
            reference=self.settings.LEAD_REFERENCE,
        )

    # ── Labels ───────────────────────────────────────────

    async def _find_in_client_tags(self, wanted: str) -> int | None:
        try:
            clients = await self.crm.search_clients(
                self.settings.CRM_CLIENT_SEARCH_TAKE
            )
        except UpstreamError as exc:
            logger.warning("Contact tag search failed: %s", exc)
            return None
        for client in clients:
            for tag in client.get("tag") or []:
                if not isinstance(tag, Mapping):
                    continue
                name = str(tag.get("etiqueta") or tag.get("label") or "")
                if not tag.get("id") or name.strip().lower() != wanted:
                    continue
                try:
                    return int(tag["id"])
                except (TypeError, ValueError):
                    logger.warning("Ignoring contact tag with bad id: %r", tag)
        return None

    async def _find_in_registry(self, wanted: str) -> int | None:
        try:
            labels = await self.crm.list_labels()
        except UpstreamError as exc:
            logger.warning("Label registry lookup failed: %s", exc)
            return None
        for label in labels:
            if label.name.strip().lower() == wanted:
                return label.id
        return None

    async def ensure_label(self, label_name: str) -> int | None:
        """Id of the label called *label_name*, creating it if needed.

        Looked up, in order, in this process's memo, the tags of
        recent contacts and the label registry. Returns ``None`` when
        the label could neither be found nor created.
        """
        wanted = label_name.strip().lower()
        if wanted in self._label_memo:
            return self._label_memo[wanted]

        label_id = await self._find_in_client_tags(wanted)
        if label_id is None:
            label_id = await self._find_in_registry(wanted)
        if label_id is None:
            color = self.settings.LABEL_COLORS.get(
                wanted, self.settings.DEFAULT_LABEL_COLOR
            )
            try:
                created: Label = await self.crm.create_label(label_name, color)
            except (UpstreamError, KeyError, ValueError) as exc:
                logger.warning(
                    "Could not create label '%s': %s", label_name, exc
                )
                return None
            logger.info(
                "Created label '%s' with id %s", label_name, created.id
            )
            label_id = created.id

        self._label_memo[wanted] = label_id
        return label_id

    async def assign_label(self, client_id: int, label_id: int) -> bool:
        """Try each assignment strategy until one is accepted."""
        for name, strategy in self._strategies:
            try:
                await strategy(self.crm, client_id, label_id)
            except UpstreamError as exc:
                logger.warning(
                    "Label assignment via %s failed for contact %s: %s",
                    name,
                    client_id,
                    exc,
                )
                continue
            logger.info(
                "Assigned label %s to contact %s via %s",
                label_id,
                client_id,
                name,
            )
            return True
        return False

    # ── Public API ───────────────────────────────────────

    async def submit_lead(
        self,
        form_fields: Mapping[str, Any],
        origin_channel_name: str,
        label_name: str | None = None,
    ) -> LeadResult:
        """Create a contact for *form_fields* and optionally label it.

        Raises :class:`LeadValidationError` before any request when the
        email or name is missing, and :class:`CrmWriteError` when the
        contact cannot be created. Labelling never raises.
        """
        self.validate(form_fields)

        origin_id = await self.resolve_origin(origin_channel_name)
        lead = self.build_lead(form_fields, origin_id)
        created = await self.crm.create_client(lead.to_payload())
        contact_id = int(created["id_client"])
        logger.info(
            "Created contact %s (origin %s) for %s",
            contact_id,
            origin_id,
            lead.email,
        )

        result = LeadResult(contact_id=contact_id, origin_id=origin_id)
        if not label_name:
            return result

        try:
            await self._label_contact(result, label_name)
        except (UpstreamError, KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Labelling contact %s with '%s' failed: %s",
                contact_id,
                label_name,
                exc,
                exc_info=True,
            )
            result.warnings.append(f"label '{label_name}' failed: {exc}")
        return result

    async def _label_contact(self, result: LeadResult, label_name: str) -> None:
        label_id = await self.ensure_label(label_name)
        result.label_id = label_id
        if label_id is None:
            result.warnings.append(f"label '{label_name}' unavailable")
            return

        result.label_assigned = await self.assign_label(result.contact_id, label_id)
        if not result.label_assigned:
            result.warnings.append(
                f"label {label_id} could not be assigned to contact "
                f"{result.contact_id}"
            )
