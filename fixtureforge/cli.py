# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Command line interface for loading YAML fixtures through the REST API.

Usage:
    fixtureforge customers.yml
    fixtureforge orders.yml --base-url http://localhost:4444 --token "$TOKEN"
    fixtureforge orders.yml --dry-run
    python -m fixtureforge orders.yml --cleanup --report reports/orders.json
"""

# Standard
import argparse
import asyncio
import logging
from pathlib import Path
import sys
import time
from typing import Any, Dict, List, Optional

# Third-Party
import orjson
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
import yaml

# First-Party
from fixtureforge import __version__
from fixtureforge.api_client import APIClient
from fixtureforge.config import get_settings, Settings
from fixtureforge.entities import EntityService
from fixtureforge.errors import FixtureError
from fixtureforge.loader import FixtureLoader
from fixtureforge.models import ProcessingEntry
from fixtureforge.processing import DataProcessor
from fixtureforge.processor import FixtureProcessor

logger = logging.getLogger(__name__)

console = Console()


def load_system_data(path: Optional[str]) -> Dict[str, Any]:
    """Load system data seeded into the reference map.

    Args:
        path: YAML file holding a mapping, or None.

    Returns:
        Dict[str, Any]: The mapping (empty when no path is given).

    Raises:
        FixtureError: If the file is missing or does not hold a mapping.
    """
    if not path:
        return {}

    system_file = Path(path)
    if not system_file.is_file():
        raise FixtureError(f"System data file not found: {system_file}")

    try:
        with open(system_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise FixtureError(f"Failed to parse system data file {system_file}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FixtureError(f"System data file {system_file} must contain a mapping, got {type(data).__name__}")
    return data


def render_plan(plans: Dict[str, List[ProcessingEntry]]) -> None:
    """Print one table per fixture file describing what would be materialized."""
    for filename, plan in plans.items():
        table = Table(title=f"[bold cyan]{filename}[/bold cyan]", show_lines=False)
        table.add_column("Fixture", style="bold")
        table.add_column("Entity")
        table.add_column("Mode")
        table.add_column("Deferred fields", style="yellow")
        for entry in plan:
            mode = "existing" if entry.fixture.existing else "create"
            deferred = ", ".join(f"{path} -> @{target}" for path, target in entry.deferred_fields.items())
            table.add_row(entry.name, entry.fixture.entity_kind, mode, deferred or "-")
        console.print(table)


def write_report(report_path: str, report: Dict[str, Any]) -> None:
    """Write the run report as JSON."""
    report_file = Path(report_path)
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_bytes(orjson.dumps(report, option=orjson.OPT_INDENT_2, default=str))
    console.print(f"\n[dim]Report saved to: {report_file}[/dim]")


async def run_fixtures(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    """Load the requested fixture files and materialize them.

    Args:
        args: Parsed command line arguments.
        settings: Settings supplying every value not given on the command line.

    Returns:
        Dict[str, Any]: Run report.
    """
    fixtures_dir = args.fixtures_dir or settings.fixtures_dir
    base_url = args.base_url or settings.base_url
    token = args.token or (settings.api_token.get_secret_value() if settings.api_token else None)
    system_data = load_system_data(args.system_data)

    loader = FixtureLoader(fixtures_dir)
    data_processor = DataProcessor(locale=settings.faker_locale, seed=settings.faker_seed)

    console.print(
        Panel(
            f"[bold]Files:[/bold] {', '.join(args.files)}\n"
            f"[bold]Fixtures dir:[/bold] {loader.fixtures_dir}\n"
            f"[bold]Target:[/bold] {base_url}\n"
            f"[bold]Dry Run:[/bold] {args.dry_run}\n"
            f"[bold]Cleanup:[/bold] {args.cleanup}",
            title=f"[bold cyan]fixtureforge {__version__}[/bold cyan]",
            border_style="cyan",
        )
    )

    async with APIClient(
        base_url,
        token=token,
        max_connections=settings.max_connections,
        max_retries=settings.max_retries,
        retry_base_delay=settings.retry_base_delay,
        timeout=settings.timeout,
    ) as client:
        processor = FixtureProcessor(loader, EntityService(client), data_processor)

        if args.dry_run:
            console.print("\n[yellow]DRY RUN - No requests will be sent[/yellow]\n")
            plans = processor.plan_fixtures(args.files)
            render_plan(plans)
            return {"files": list(plans), "dry_run": True, "fixtures": {name: [entry.name for entry in plan] for name, plan in plans.items()}}

        start_time = time.time()
        try:
            entities = await processor.process_fixtures(args.files, system_data)
            files = processor.materialized_files
        finally:
            if args.cleanup:
                await processor.cleanup()
                console.print("[dim]Cleaned up created entities[/dim]")
        duration = time.time() - start_time

        report = {
            "files": files,
            "base_url": base_url,
            "dry_run": False,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "duration_seconds": round(duration, 2),
            "total_entities": len(entities),
            "cleaned_up": args.cleanup,
            "client_stats": client.get_stats(),
            "entities": entities,
        }

    if args.report:
        write_report(args.report, report)

    console.print(
        Panel(
            f"[bold]Entities:[/bold] [green]{len(entities):,}[/green]\n"
            f"[bold]Requests:[/bold] {report['client_stats']['total_requests']:,}\n"
            f"[bold]Duration:[/bold] {duration:.2f}s",
            title="[bold green]Fixtures Loaded[/bold green]",
            border_style="green",
        )
    )
    return report


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="fixtureforge",
        description="Load YAML fixtures into a REST API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fixtureforge customers.yml
  fixtureforge orders.yml --base-url http://localhost:4444
  fixtureforge orders.yml --dry-run
  fixtureforge orders.yml --system-data system.yml --cleanup
        """,
    )

    parser.add_argument("files", nargs="+", help="Fixture file names, relative to the fixtures directory")
    parser.add_argument("--fixtures-dir", type=str, default=None, help="Directory holding the fixture files (default: settings)")
    parser.add_argument("--base-url", type=str, default=None, help="API base URL (default: settings)")
    parser.add_argument("--token", type=str, default=None, help="Bearer token for the API")
    parser.add_argument("--system-data", type=str, default=None, help="YAML file with values seeded into the reference map")
    parser.add_argument("--dry-run", action="store_true", help="Show the processing plan without making requests")
    parser.add_argument("--cleanup", action="store_true", help="Delete every created entity after the run")
    parser.add_argument("--report", type=str, default=None, help="Write a JSON run report to this path")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override log level",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    log_level = args.log_level or settings.log_level
    logging.basicConfig(level=getattr(logging, log_level), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("faker").setLevel(logging.WARNING)

    try:
        asyncio.run(run_fixtures(args, settings))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except FixtureError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        sys.exit(1)
    except Exception as exc:
        logger.error(f"Fixture loading failed: {exc}", exc_info=True)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
