# src/models/lead.py

"""CRM lead, label and submission result models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Label:
    """A named, coloured CRM tag."""

    id: int
    name: str
    color: str = ""


@dataclass
class Lead:
    """Contact payload assembled from a website form submission."""

    first_name: str
    last_name: str
    email: str
    cell_phone: str
    origin_id: int
    country_id: int
    region_id: int
    city_id: int
    user_id: int
    comment: str = ""
    phone: str = ""
    address: str = ""
    query: str = ""
    reference: str = ""
    send_information: bool = True

    def to_payload(self) -> dict[str, Any]:
        """Field names the CRM's contact-creation call expects."""
        return {
            "id_user": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "cell_phone": self.cell_phone,
            "id_client_origin": self.origin_id,
            "id_country": self.country_id,
            "id_region": self.region_id,
            "id_city": self.city_id,
            "comment": self.comment,
            "phone": self.phone,
            "address": self.address,
            "query": self.query,
            "reference": self.reference,
            "send_information": self.send_information,
        }


@dataclass
class LeadResult:
    """Outcome of a lead submission."""

    contact_id: int
    origin_id: int
    label_id: int | None = None
    label_assigned: bool = False
    warnings: list[str] = field(
        default_factory=lambda: list[str]()
    )
