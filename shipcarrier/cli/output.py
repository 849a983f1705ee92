"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag).
"""

import dataclasses
import json
from decimal import Decimal
from typing import Any

from rich.console import Console
from rich.table import Table

from shipcarrier.services.documents import ShipmentDocuments
from shipcarrier.services.rate_calculator import RateQuote
from shipcarrier.services.tracking import TrackingResult

console = Console()


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _render(table: Table) -> str:
    with console.capture() as capture:
        console.print(table)
    return capture.get()


def format_rate(quote: RateQuote, as_json: bool = False) -> str:
    """Format the selected rate and every permitted courier option for the lane.

    Args:
        quote: Selected rate and permitted options.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(
            dataclasses.asdict(quote),
            indent=2,
            default=_json_default,
        )

    table = Table(title=f"Couriers (cheapest: {quote.amount})", show_lines=False)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Courier", style="white")
    table.add_column("Rate", justify="right")
    table.add_column("ETA (days)", justify="right")
    for option in quote.options:
        marker = " *" if option == quote.selected else ""
        table.add_row(
            option.id + marker,
            option.name or "-",
            str(option.rate) if option.rate is not None else "-",
            str(option.eta_days) if option.eta_days is not None else "-",
        )
    return _render(table)


def format_tracking(result: TrackingResult, as_json: bool = False) -> str:
    """Format a tracking result as a scan table or JSON."""
    if as_json:
        data = dataclasses.asdict(result)
        data.pop("raw", None)
        return json.dumps(data, indent=2, default=_json_default)

    title = f"{result.tracking_number}: {result.current_status or 'unknown'}"
    if result.etd:
        title += f" (ETD {result.etd})"
    table = Table(title=title)
    table.add_column("Date", no_wrap=True)
    table.add_column("Activity")
    table.add_column("Location", style="dim")
    for event in result.events:
        table.add_row(event.date, event.activity, event.location)
    return _render(table) + f"\n{result.tracking_url}\n"


def format_documents(docs: ShipmentDocuments, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(dataclasses.asdict(docs), indent=2)

    table = Table(title="Documents")
    table.add_column("Document", style="cyan")
    table.add_column("URL")
    for name in ("label", "manifest", "invoice"):
        url = getattr(docs, name)
        table.add_row(name, url or "[yellow]unavailable[/yellow]")
    return _render(table)
