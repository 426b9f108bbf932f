# src/cli/runner.py

"""Headless CLI runner: dump catalogue resources, submit leads, health."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from src.config.settings import Settings
from src.errors import CrmWriteError, LeadValidationError
from src.models.blog_post import BlogPost
from src.models.property import Property
from src.models.zone import Zone
from src.services.catalogue_service import CatalogueService
from src.services.health_checker import HealthChecker, HealthResult
from src.services.lead_service import LeadService
from src.storage.ttl_cache import CacheStatus

logger = logging.getLogger("listing_hub.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

RESOURCES: dict[str, str] = {
    "properties": "properties",
    "zones": "zones",
    "blog": "blog_posts",
    "crm": "crm_properties",
}


def _to_dicts(records: list[Any]) -> list[dict[str, Any]]:
    """Serialise dataclass records to plain dicts for JSON output.

    Properties also carry ``cover_url``, the placeholder image when
    they have no media.
    """
    rows: list[dict[str, Any]] = []
    for record in records:
        row = asdict(record)
        if isinstance(record, Property):
            row["cover_url"] = record.cover_url(Settings.PLACEHOLDER_IMAGE_URL)
        rows.append(row)
    return rows


def _property_table(records: list[Property], title: str) -> Table:
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Zone", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Beds", justify="center")
    table.add_column("Images", justify="right", style="dim")
    for idx, p in enumerate(records, 1):
        price = f"{p.price:,.0f}" if p.has_price else "Consultar"
        table.add_row(
            str(idx),
            p.title[:50],
            p.zone,
            price,
            str(p.bedrooms or "—"),
            str(len(p.media)),
        )
    return table


def _zone_table(records: list[Zone]) -> Table:
    table = Table(title="Zones", show_lines=True, title_style="bold cyan")
    table.add_column("Order", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Slug", style="magenta")
    table.add_column("Listings", justify="right")
    table.add_column("Featured", justify="center")
    for z in records:
        table.add_row(
            str(z.order) if z.order is not None else "—",
            z.name,
            z.slug,
            str(z.count),
            "★" if z.featured else "",
        )
    return table


def _blog_table(records: list[BlogPost]) -> Table:
    table = Table(title="Blog", show_lines=True, title_style="bold cyan")
    table.add_column("Date", style="dim")
    table.add_column("Title", max_width=50)
    table.add_column("Excerpt", max_width=60, style="dim")
    for post in records:
        date = post.published_at.strftime("%Y-%m-%d") if post.published_at else "—"
        table.add_row(date, post.title[:50], post.excerpt[:60])
    return table


def _print_table(resource: str, records: list[Any]) -> None:
    if resource == "zones":
        table = _zone_table(records)
    elif resource == "blog":
        table = _blog_table(records)
    else:
        title = "CRM Properties" if resource == "crm" else "Properties"
        table = _property_table(records, title)
    Console().print(table)


async def cli_dump(resource: str, output_format: str) -> int:
    """Warm *resource* through the read API and print it."""
    if resource not in RESOURCES:
        valid = ", ".join(sorted(RESOURCES))
        _err.print(f"[red]Unknown resource: {resource}[/red]")
        _err.print(f"[dim]Available: {valid}[/dim]")
        return 1

    cache_key = RESOURCES[resource]
    service = CatalogueService()
    _err.print(f"[bold]Loading:[/bold] {resource}")
    try:
        result = await service.fetch(cache_key)
    finally:
        await service.close()

    if result.status is CacheStatus.EMPTY:
        _err.print(f"[red]Error: {result.error}[/red]")
        return 1

    records: list[Any] = result.value
    logger.info("CLI dumped %d %s records", len(records), resource)
    _err.print(f"[green]✓ {len(records)} {resource}[/green]")

    if output_format == "table":
        _print_table(resource, records)
    else:
        json.dump(
            _to_dicts(records),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
            default=str,
        )
        sys.stdout.write("\n")
    return 0


async def cli_submit_lead(lead_file: str, source: str | None) -> int:
    """Submit the form fields stored in *lead_file* as a CRM lead."""
    path = Path(lead_file)
    try:
        form = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _err.print(f"[red]Cannot read {path}: {exc}[/red]")
        return 1
    if not isinstance(form, dict):
        _err.print("[red]Lead file must contain a JSON object.[/red]")
        return 1

    channel, label = LeadService.channel_for_source(source or form.get("source"))
    service = LeadService()
    _err.print(
        f"[bold]Submitting lead:[/bold] {form.get('email', '?')}  "
        f"[dim]channel={channel} label={label}[/dim]"
    )
    try:
        result = await service.submit_lead(form, channel, label)
    except LeadValidationError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    except CrmWriteError as exc:
        logger.error("Lead submission failed: %s", exc, exc_info=True)
        _err.print(f"[red]CRM rejected the contact: {exc}[/red]")
        return 1
    finally:
        await service.crm.close()

    for warning in result.warnings:
        _err.print(f"[yellow]Warning: {warning}[/yellow]")
    _err.print(f"[green]✓ Contact {result.contact_id} created[/green]")
    json.dump(asdict(result), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


_HEALTH_BADGES: dict[str, str] = {
    "ok": "[green]OK[/green]",
    "slow": "[yellow]SLOW[/yellow]",
    "down": "[red]DOWN[/red]",
}


def _health_table(results: list[HealthResult]) -> Table:
    table = Table(title="Upstream Health", show_lines=True, title_style="bold cyan")
    table.add_column("Upstream", style="bold")
    table.add_column("Endpoint", style="dim")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")
    for r in results:
        table.add_row(
            r.source_id,
            r.endpoint,
            _HEALTH_BADGES.get(r.status, r.status),
            f"{r.latency_ms:.0f}ms",
            r.message,
        )
    return table


async def run_health_check() -> int:
    """Probe the CMS and CRM; exit 1 when either is down."""
    _err.print("[bold]Checking upstreams...[/bold]")
    checker = HealthChecker()
    try:
        results = await checker.check_all()
    finally:
        await checker.close()

    Console().print(_health_table(results))
    return 1 if any(r.status == "down" for r in results) else 0
