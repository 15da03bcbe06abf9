# -*- coding: utf-8 -*-
import json
import logging
import os
import typing as t

import click
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from event_extraction.log import configure_logging
from event_extraction.models import ExtractionResult
from event_extraction.orchestrator import ExtractionOrchestrator
from event_extraction.settings import ExtractionSettings
from orchestrator.utils import err_console, expand_document_paths
from syllabus_server.pdf_utils import load_document_text


console = Console()

TYPE_STYLES = {
    "exam": "bold red",
    "quiz": "magenta",
    "homework": "yellow",
    "project": "cyan",
    "lecture": "blue",
    "officeHours": "green",
    "other": "white",
}


def format_date_human(value: str) -> str:
    """Convert an event date to a human-readable form (Mon 10/15 or Mon 10/15 14:00)."""
    try:
        from datetime import datetime
        dt = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return value
    if len(value) <= 10:
        return dt.strftime("%a %m/%d")
    return dt.strftime("%a %m/%d %H:%M")


def truncate_title(title: str, max_length: int = 60) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."


def create_events_table(label: str, result: ExtractionResult) -> Table:
    """Create a table of the events extracted from one document."""
    table = Table(
        title=f"{label} ({result.source})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Type", no_wrap=True)
    table.add_column("Date", style="yellow", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Conf.", justify="right")

    for event in result.events:
        table.add_row(
            Text(event.event_type, style=TYPE_STYLES.get(event.event_type, "white")),
            format_date_human(event.date),
            truncate_title(event.title),
            f"{event.confidence:.2f}",
        )
    return table


def create_status_table(status: dict[str, dict[str, t.Optional[bool]]]) -> Table:
    table = Table(title="Generative extractors", show_header=True, header_style="bold magenta")
    table.add_column("Extractor")
    table.add_column("Configured")
    table.add_column("Reachable")

    def mark(value: t.Optional[bool]) -> str:
        if value is None:
            return "[dim]-[/dim]"
        return "[green]yes[/green]" if value else "[red]no[/red]"

    for name, row in status.items():
        table.add_row(name, mark(row["configured"]), mark(row["reachable"]))
    return table


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("documents", nargs=-1, type=click.Path(exists=True))
@click.option(
    "--extractor", "-e", "extractors", multiple=True,
    help="Generative extractor to try, in order (openai, gemini, ollama, demo). Overrides EXTRACTOR_ORDER.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the results as JSON instead of tables.")
@click.option("--no-expand-ranges", is_flag=True, help="Keep date ranges as one event with an end date.")
@click.option("--status", "show_status", is_flag=True, help="Show which generative extractors are available and exit.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose (debug) logging.")
def main(
    documents: tuple[str, ...],
    extractors: tuple[str, ...],
    as_json: bool,
    no_expand_ranges: bool,
    show_status: bool,
    verbose: bool,
) -> None:
    """Extract dated academic events from syllabus documents.

    DOCUMENTS: Paths to syllabus PDF/text files, or directories containing them.
    """
    configure_logging("DEBUG" if verbose else None, console=err_console)

    settings = ExtractionSettings.from_env()
    overrides: dict[str, t.Any] = {}
    if extractors:
        overrides["extractor_order"] = tuple(name.strip().lower() for name in extractors)
    if no_expand_ranges:
        overrides["expand_date_ranges"] = False
    if overrides:
        settings = settings.with_overrides(**overrides)

    orchestrator = ExtractionOrchestrator(settings, logger_instance=logging.getLogger("syllabus-extract"))

    if show_status:
        console.print(create_status_table(orchestrator.status()))
        return

    if not documents:
        err_console.print("[red]Error:[/red] Provide one or more syllabus files or directories.")
        raise SystemExit(1)

    paths = expand_document_paths(documents)
    results: dict[str, ExtractionResult] = {}
    failed = False

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task("Extracting events...", total=len(paths))

        for path in paths:
            label = os.path.basename(path)
            progress.update(task, description=f"Extracting {label}...")
            try:
                text = load_document_text(path)
            except (OSError, ValueError) as e:
                err_console.print(f"[red]Error:[/red] {path}: {e}")
                failed = True
            else:
                results[label] = orchestrator.extract(text, label)
            progress.update(task, advance=1)

    if as_json:
        payload = {label: result.model_dump(by_alias=True, exclude={"text"}) for label, result in results.items()}
        console.print(JSON(json.dumps(payload)))
    else:
        for label, result in results.items():
            if result.events:
                console.print(create_events_table(label, result))
            else:
                console.print(Panel(f"No events found in [bold]{label}[/bold]", border_style="yellow"))

    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
