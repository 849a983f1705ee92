"""shipcarrier CLI: operator commands against the carrier API.

Usage:
    shipcarrier rate --from 110001 --to 560001 --weight 1.2
    shipcarrier track 1234567890
    shipcarrier cancel 98765
    shipcarrier documents 55555 --order-id 98765
    shipcarrier refresh-token
    shipcarrier config show
"""

import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Optional

import typer
from pydantic import ValidationError as ConfigValidationError
from rich.console import Console

from shipcarrier.cli.output import format_documents, format_rate, format_tracking
from shipcarrier.config import LoggingConfig, ShipCarrierConfig, load_config
from shipcarrier.errors.domain import CarrierError
from shipcarrier.services.carrier_client import CarrierClient
from shipcarrier.services.documents import ShipmentRef
from shipcarrier.services.rate_calculator import RateQuery

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="shipcarrier",
    help="Carrier API client: rates, tracking, cancellation and documents",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to shipcarrier.yaml config file"
    ),
):
    """shipcarrier CLI."""
    global _config_path
    _config_path = config


class JsonLogFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(settings: LoggingConfig) -> None:
    """Configure logging to stdout from the logging config section."""
    handler = logging.StreamHandler(sys.stdout)
    if settings.format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )


def _load() -> ShipCarrierConfig:
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ConfigValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    if cfg is None:
        console.print("[yellow]No config file found.[/yellow]")
        console.print("Searched: ./shipcarrier.yaml, ~/.shipcarrier/config.yaml")
        raise typer.Exit(1)
    configure_logging(cfg.logging)
    return cfg


def _run(action: Callable[[CarrierClient], Awaitable[Any]]) -> Any:
    """Run an async action against a configured client, reporting carrier errors."""
    cfg = _load()

    async def _go() -> Any:
        async with CarrierClient.from_config(cfg) as client:
            return await action(client)

    try:
        return asyncio.run(_go())
    except CarrierError as e:
        _log.debug("Carrier command failed", exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        if e.remediation:
            console.print(f"  {e.remediation}")
        raise typer.Exit(1)


def _mask(secret: str) -> str:
    return "***" + secret[-4:] if len(secret) > 8 else "***"


# --- Carrier commands ---


@app.command()
def rate(
    origin: str = typer.Option(..., "--from", help="Pickup postcode"),
    destination: str = typer.Option(..., "--to", help="Delivery postcode"),
    weight: float = typer.Option(0.5, "--weight", help="Weight in kg"),
    cod: Optional[bool] = typer.Option(None, "--cod/--prepaid", help="Override configured COD"),
    courier: Optional[list[str]] = typer.Option(None, "--courier", help="Allowed courier id (repeatable)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Quote the cheapest courier rate for a lane."""

    async def _action(client: CarrierClient):
        query = RateQuery(
            origin_postal_code=origin,
            destination_postal_code=destination,
            weight_kg=weight,
            cod=client.cod if cod is None else cod,
            allowed_carrier_ids=frozenset(courier) if courier else None,
        )
        return await client.get_rate_quote(query)

    quote = _run(_action)
    console.print(format_rate(quote, as_json=json_output))


@app.command()
def track(
    awb: str = typer.Argument(..., help="Tracking number (AWB)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the scan history of a shipment."""
    result = _run(lambda client: client.get_tracking(awb))
    console.print(format_tracking(result, as_json=json_output))


@app.command()
def cancel(
    order_id: str = typer.Argument(..., help="Carrier order id"),
):
    """Cancel a carrier order."""
    _run(lambda client: client.cancel_shipment(order_id))
    console.print(f"[yellow]Carrier order {order_id} cancelled.[/yellow]")


@app.command()
def documents(
    shipment_id: str = typer.Argument(..., help="Carrier shipment id"),
    order_id: str = typer.Option("", "--order-id", help="Carrier order id (for the invoice)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Generate label, manifest and invoice for a shipment."""
    ref = ShipmentRef(shipment_id=shipment_id, order_id=order_id)
    docs = _run(lambda client: client.get_documents(ref))
    console.print(format_documents(docs, as_json=json_output))


@app.command("refresh-token")
def refresh_token(
    if_expiring: bool = typer.Option(
        False, "--if-expiring", help="Only refresh inside the configured refresh horizon"
    ),
):
    """Re-authenticate with the carrier."""
    if if_expiring:
        refreshed = _run(lambda client: client.refresh_token_if_expiring())
        console.print("[green]Token refreshed.[/green]" if refreshed else "Token still valid.")
        return
    credential = _run(lambda client: client.refresh_token())
    console.print(f"[green]Token refreshed.[/green] Expires at: {credential.expires_at or 'unknown'}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    cfg = _load()

    console.print("[bold]Carrier:[/bold]")
    console.print(f"  email: {_mask(cfg.carrier.email)}")
    console.print("  password: ********")
    console.print(f"  pickup_location: {cfg.carrier.pickup_location}")
    console.print(f"  cod: {cfg.carrier.cod}")
    console.print(f"  base_url: {cfg.carrier.base_url}")
    console.print(f"  timeout: {cfg.carrier.timeout_seconds}s")
    console.print(f"  token_lifetime: {cfg.carrier.token_lifetime_hours}h")
    console.print(f"  refresh_horizon: {cfg.carrier.refresh_horizon_hours}h")

    if cfg.return_address:
        addr = cfg.return_address
        console.print("\n[bold]Return address:[/bold]")
        console.print(f"  {addr.address_1}, {addr.city} {addr.postal_code}, {addr.country_code}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  level: {cfg.logging.level}")
    console.print(f"  format: {cfg.logging.format}")


@config_app.command("validate")
def config_validate():
    """Validate configuration without contacting the carrier."""
    cfg = _load()
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Return address: {'configured' if cfg.return_address else 'not configured'}")


if __name__ == "__main__":
    app()
