# src/errors.py

"""Exception types raised by the upstream clients and services."""

from dataclasses import dataclass


class UpstreamError(Exception):
    """A request to the CMS or CRM failed (transport, status or body)."""

    def __init__(
        self,
        source: str,
        path: str,
        message: str,
        status: int | None = None,
    ) -> None:
        self.source = source
        self.path = path
        self.status = status
        detail = f"HTTP {status}" if status is not None else "no response"
        super().__init__(f"[{source}] {path}: {message} ({detail})")


@dataclass
class ProbeAttempt:
    """Diagnostic record for one candidate endpoint that failed."""

    path: str
    method: str
    status: int | None
    error: str


class AllCandidatesFailedError(UpstreamError):
    """Every candidate endpoint for a logical resource failed."""

    def __init__(
        self, source: str, resource: str, attempts: list[ProbeAttempt],
    ) -> None:
        self.resource = resource
        self.attempts = attempts
        summary = ", ".join(
            f"{a.method} {a.path} -> {a.status if a.status is not None else a.error}"
            for a in attempts
        )
        last_status = attempts[-1].status if attempts else None
        super().__init__(
            source,
            resource,
            f"all candidates failed [{summary}]",
            status=last_status,
        )


class CrmWriteError(UpstreamError):
    """The CRM rejected a contact creation; fatal for a lead submission."""


class LeadValidationError(ValueError):
    """A submitted lead is missing the fields the CRM requires."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Missing required lead fields: " + ", ".join(missing)
        )
