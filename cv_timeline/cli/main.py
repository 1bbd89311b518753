"""
Main CLI for the CV timeline pipeline.

Commands:
- generate: Build a timeline from a CV JSON file (optionally store it)
- validate: Dry-run the pipeline and report whether the result is storage-safe
"""
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from cv_timeline.config import get_settings
from cv_timeline.database.mongodb_manager import MongoDBManager
from cv_timeline.database.timeline_storage import TimelineStorageError
from cv_timeline.generation.timeline_service import build_timeline_service

console = Console()


def setup_logging(level: str) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def load_cv(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def print_timeline(timeline: Dict[str, Any]) -> None:
    events_table = Table(title="Timeline Events", show_header=True, header_style="bold magenta")
    events_table.add_column("Start", style="cyan")
    events_table.add_column("Type", style="yellow")
    events_table.add_column("Title", style="green")
    events_table.add_column("Organization")
    for event in timeline.get("events", []):
        events_table.add_row(
            str(event.get("startDate", ""))[:10],
            event.get("type", ""),
            event.get("title", ""),
            event.get("organization", ""),
        )
    console.print(events_table)

    summary = timeline.get("summary", {})
    summary_table = Table(title="Summary", show_header=True, header_style="bold magenta")
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Years of Experience", str(summary.get("totalYearsExperience", 0)))
    summary_table.add_row("Companies", str(summary.get("companiesWorked", 0)))
    summary_table.add_row("Degrees", str(summary.get("degreesEarned", 0)))
    summary_table.add_row("Certifications", str(summary.get("certificationsEarned", 0)))
    for highlight in summary.get("careerHighlights", []):
        summary_table.add_row("Highlight", highlight)
    console.print(summary_table)

    insights = timeline.get("insights", {})
    console.print(Panel.fit(
        f"[bold]Career progression:[/bold] {insights.get('careerProgression', '')}\n"
        f"[bold]Industry focus:[/bold] {', '.join(insights.get('industryFocus', []))}\n"
        f"[bold]Skill evolution:[/bold] {insights.get('skillEvolution', '')}\n"
        f"[bold]Next steps:[/bold] {'; '.join(insights.get('nextSteps', []))}",
        title="Insights",
        border_style="blue",
    ))


@click.group()
def cli():
    """CV Timeline - Build storage-safe career timelines from CV data."""
    pass


@cli.command()
@click.argument('cv_json', type=click.Path(exists=True, dir_okay=False))
@click.option('--job-id', '-j', default=None, help='Job id (default: CV file name)')
@click.option('--store', is_flag=True, help='Store the timeline in MongoDB')
@click.option('--output', '-o', default=None, type=click.Path(dir_okay=False), help='Write the timeline JSON to this file')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def generate(cv_json: str, job_id: Optional[str], store: bool, output: Optional[str], verbose: bool):
    """
    Generate a timeline from a CV JSON file.

    Examples:

    \b
        # Print the timeline for a CV
        cv-timeline generate data/cv.json

    \b
        # Generate and store it on job "job-42"
        cv-timeline generate data/cv.json --job-id job-42 --store
    """
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level)
    job_id = job_id or Path(cv_json).stem

    console.print(Panel.fit(f"[bold green]{settings.app_name}[/bold green] - job {job_id}", border_style="green"))

    try:
        cv = load_cv(cv_json)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Failed to read CV: {e}[/red]")
        sys.exit(1)

    try:
        if store:
            with MongoDBManager(settings) as db_manager:
                service = build_timeline_service(settings, db_manager.get_collection())
                timeline = service.generate_timeline(cv, job_id, should_store=True)
        else:
            service = build_timeline_service(settings)
            timeline = service.generate_timeline(cv, job_id)
    except (ValueError, TimelineStorageError, PyMongoError) as e:
        console.print(f"[red]Timeline generation failed: {e}[/red]")
        sys.exit(1)

    print_timeline(timeline)

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(timeline, f, indent=2, ensure_ascii=False)
        console.print(f"[green]✓ Timeline written to {output_path}[/green]")

    if store:
        console.print(f"[bold green]✅ Timeline stored for job {job_id}[/bold green]")


@cli.command()
@click.argument('cv_json', type=click.Path(exists=True, dir_okay=False))
def validate(cv_json: str):
    """Dry-run the pipeline and check the timeline is storage-safe."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        cv = load_cv(cv_json)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Failed to read CV: {e}[/red]")
        sys.exit(1)

    result = build_timeline_service(settings).validate_timeline(cv)

    if result.is_valid:
        events = len(result.data.get("events", [])) if result.data else 0
        console.print(f"[green]✓ Timeline is valid ({events} events)[/green]")
        return

    for error in result.errors:
        console.print(f"[red]✗ {error}[/red]")
    sys.exit(1)


if __name__ == '__main__':
    cli()
