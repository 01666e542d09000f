#!/usr/bin/env python3
"""gc-parse - reconstruct Sun / Oracle JVM GC logs into typed events.

Supports logs of the Serial, Parallel, ParallelOld, ParNew and CMS collectors
written by Java 1.4 - 1.7, including the line splitting caused by
-XX:+PrintTenuringDistribution, -XX:+PrintHeapAtGC,
-XX:+PrintAdaptiveSizePolicy and -XX:+CMSScavengeBeforeRemark.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from .config import ReaderConfig
from .errors import GCLogReadError
from .model import CollectionEvent, ConcurrentPhase, GCEvent, GCModel
from .reader import detect_log_format, read_gc_log, sample_lines

# ============================================================
# RICH OUTPUT RENDERING
# ============================================================

GC_PARSE_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

console = Console(theme=GC_PARSE_THEME)
err_console = Console(theme=GC_PARSE_THEME, stderr=True)


def configure_logging(verbose: bool) -> None:
    """Route library log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(label, value)
    return table


def format_kb(value: int | None) -> str:
    return "-" if value is None else f"{value}K"


def format_seconds(seconds: float | None) -> str:
    """Format seconds for human-readable output."""
    if seconds is None:
        return "-"
    return f"{seconds:.7f}s"


def build_event_row(index: int, event: GCEvent) -> dict[str, str]:
    """Build one table row for an event of any shape."""
    row = {
        "#": str(index),
        "Uptime": f"{event.uptime_seconds:.3f}",
        "Datestamp": event.datestamp.isoformat() if event.datestamp else "-",
        "Type": event.gc_type.name,
        "Before": "-",
        "After": "-",
        "Total": "-",
        "Pause": "-",
        "Details": "-",
    }
    if isinstance(event, CollectionEvent):
        row["Before"] = format_kb(event.before_kb)
        row["After"] = format_kb(event.after_kb)
        row["Total"] = format_kb(event.total_kb)
        row["Pause"] = format_seconds(event.pause_seconds)
        if event.details:
            row["Details"] = ", ".join(detail.gc_type.name for detail in event.details)
    elif isinstance(event, ConcurrentPhase):
        row["Pause"] = (
            f"{format_seconds(event.elapsed_seconds)} / {format_seconds(event.duration_seconds)}"
        )
    return row


def create_events_table(model: GCModel) -> Table:
    """Create the event listing."""
    table = Table(title="GC Events", header_style="header")
    columns = ["#", "Uptime", "Datestamp", "Type", "Before", "After", "Total", "Pause", "Details"]
    for column in columns:
        table.add_column(column, justify="right" if column in {"#", "Uptime"} else "left")
    for index, event in enumerate(model.events, start=1):
        row = build_event_row(index, event)
        table.add_row(*(row[column] for column in columns))
    return table


def build_overview_rows(log_file: Path, model: GCModel) -> list[tuple[str, str]]:
    """Build rows describing the read session."""
    return [
        ("Log file", str(log_file)),
        ("Format", model.format),
        ("Events parsed", str(len(model))),
        ("Unparseable lines", str(model.failed_line_count)),
    ]


def render_rich_output(log_file: Path, model: GCModel) -> None:
    console.print(create_events_table(model))
    console.print(
        Panel(
            create_key_value_table("", build_overview_rows(log_file, model)),
            title="Overview",
            border_style="green" if model.failed_line_count == 0 else "yellow",
        )
    )


# ============================================================
# TYPER CLI INTERFACE
# ============================================================

app = typer.Typer(
    name="gc-parse",
    help="Reconstruct Sun / Oracle JVM GC logs (Serial, Parallel, ParNew, CMS) into typed events",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def parse(
    log_file: Annotated[
        Path,
        typer.Argument(
            help="Path to GC log file to parse",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print one JSON object per event instead of a table",
        ),
    ] = False,
    encoding: Annotated[
        str,
        typer.Option(
            "--encoding",
            help="Text encoding of the log file (default: utf-8)",
        ),
    ] = "utf-8",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with detailed parsing information",
        ),
    ] = False,
) -> None:
    """Parse a JVM GC log file into events.

    Exit codes: 0 = events parsed, 1 = unsupported format, read error or no events.
    """
    configure_logging(verbose)
    config = ReaderConfig(encoding=encoding)

    try:
        log_format = detect_log_format(sample_lines(log_file, config))
        if verbose:
            console.print(f"[info]Detected log format: {log_format}[/info]")

        model = read_gc_log(log_file, config)
    except GCLogReadError as e:
        console.print(f"[critical]ERROR: {e}[/critical]")
        if e.model is not None:
            console.print(f"[warning]{len(e.model)} events were read before the failure[/warning]")
        sys.exit(1)
    except (ValueError, LookupError) as e:
        console.print(f"[critical]ERROR: {e}[/critical]")
        sys.exit(1)

    if len(model) == 0:
        console.print("[critical]ERROR: No GC events found in log file[/critical]")
        sys.exit(1)

    if as_json:
        for event in model.events:
            typer.echo(event.model_dump_json())
        return

    render_rich_output(log_file, model)


@app.command()
def version() -> None:
    """Display version."""
    console.print("gc-parse 1.0.0")


if __name__ == "__main__":
    app()
