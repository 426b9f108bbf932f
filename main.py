# main.py

"""Entry point for the listing_hub command line."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("listing_hub.main")

RESOURCE_CHOICES = ("properties", "zones", "blog", "crm")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="listing_hub",
        description=(
            "Aggregation, reconciliation and caching layer over the "
            "listing CMS and CRM."
        ),
        epilog=f"Resources: {', '.join(RESOURCE_CHOICES)}",
    )
    parser.add_argument(
        "resource",
        nargs="?",
        default=None,
        choices=RESOURCE_CHOICES,
        help="Catalogue resource to load and print.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--lead",
        default=None,
        dest="lead_file",
        metavar="FILE",
        help="Submit the form fields in a JSON file as a CRM lead.",
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Form source used to pick the lead channel and label.",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Check connectivity to the CMS and CRM.",
    )
    return parser


def main() -> None:
    """Route to the health check, lead submission or resource dump."""
    log_file = setup_logging()
    logger.info("listing_hub starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from src.cli.runner import cli_dump, cli_submit_lead, run_health_check

    if args.health:
        exit_code = asyncio.run(run_health_check())
    elif args.lead_file is not None:
        exit_code = asyncio.run(cli_submit_lead(args.lead_file, args.source))
    elif args.resource is not None:
        exit_code = asyncio.run(cli_dump(args.resource, args.output_format))
    else:
        parser.print_help()
        exit_code = 1

    logger.info("listing_hub exiting with code %d", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
