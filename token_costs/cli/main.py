"""
CLI interface for token costs.

Provides command-line access to the price history and the pricing client.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from token_costs.config.loader import ClientConfig, load_client_config
from token_costs.core.changelog import ChangeLog
from token_costs.core.crawl import file_source, run_crawl
from token_costs.core.publisher import publish_all
from token_costs.sdk.client import PricingClient
from token_costs.sdk.errors import TokenCostsError
from token_costs.storage.db import DEFAULT_DB_PATH
from token_costs.storage.models import ChangeType, PriceChange
from token_costs.storage.repository import HistoryRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DB_OPTION = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the price history database")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Client configuration YAML file")
CLIENT_ERRORS = (TokenCostsError, ValueError, FileNotFoundError, yaml.YAMLError)


def get_changelog(db_path: str) -> ChangeLog:
    """Open the change log for a database, creating the schema if needed."""
    initialize_schema(db_path)
    return ChangeLog(HistoryRepository(db_path))


def get_pricing_client(config_path: Optional[str]) -> PricingClient:
    """Build a pricing client from a config file, or with defaults."""
    config = load_client_config(config_path) if config_path else ClientConfig()
    return PricingClient.from_config(config)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Token costs CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    if ctx.invoked_subcommand is None:
        console.print("Token costs - Use --help to see available commands")


@app.command()
def init(db: str = DB_OPTION):
    """Initialize the price history database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def apply(
    provider: str = typer.Argument(..., help="Provider identifier"),
    prices_file: str = typer.Argument(..., help="YAML/JSON list of observed price records"),
    url: str = typer.Option(..., "--url", "-u", help="Pricing page the prices came from"),
    db: str = DB_OPTION,
):
    """Record observed prices and append any changes to the history."""
    try:
        result = run_crawl(provider, url, file_source(prices_file), get_changelog(db))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not result.success:
        console.print(f"[red]Error:[/] {result.error}")
        sys.exit(EXIT_CODE_FAIL)

    changes = result.changes
    if not changes:
        console.print(f"[dim]{provider}: no price changes detected[/]")
    else:
        _display_changes(provider, changes)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def summary(db: str = DB_OPTION):
    """Show stored providers with model and change counts."""
    try:
        summaries = get_changelog(db).summary()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not summaries:
        console.print("\n[bold yellow]No price history found[/]")
        console.print("Run `token-costs apply` to record prices for a provider.\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Price History")
    table.add_column("Provider")
    table.add_column("Models", justify="right")
    table.add_column("Changes", justify="right")
    table.add_column("Last crawled")
    for item in summaries:
        table.add_row(
            item.provider,
            str(item.model_count),
            str(item.total_changes),
            item.last_crawled.isoformat(),
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def publish(
    out: str = typer.Option(..., "--out", "-o", help="Directory for published provider files"),
    db: str = DB_OPTION,
):
    """Write dual-date provider files from the price history."""
    try:
        results = publish_all(get_changelog(db), out)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Published to {Path(out)}")
    table.add_column("Provider")
    table.add_column("Models", justify="right")
    table.add_column("Size", justify="right")
    for result in results:
        table.add_row(result.provider, str(result.model_count), f"{result.size} B")
    table.add_row(
        "TOTAL",
        str(sum(r.model_count for r in results)),
        f"{sum(r.size for r in results)} B",
    )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def price(
    provider: str = typer.Argument(..., help="Provider identifier"),
    model: str = typer.Argument(..., help="Model identifier"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Look up the current pricing of a model."""
    try:
        with get_pricing_client(config) as client:
            result = client.get_model_pricing(provider, model)
    except CLIENT_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    pricing = result.pricing
    console.print(f"\n[bold]{provider}/{model}[/bold] ({result.date})")
    if pricing.input is not None:
        console.print(f"Input: {_format_rate(pricing.input)}")
    if pricing.output is not None:
        console.print(f"Output: {_format_rate(pricing.output)}")
    if pricing.cached is not None:
        console.print(f"Cached input: {_format_rate(pricing.cached)}")
    if pricing.context is not None:
        console.print(f"Context window: {pricing.context:,} tokens")
    if pricing.max_output is not None:
        console.print(f"Max output: {pricing.max_output:,} tokens")
    if result.stale:
        console.print("[yellow]Data is from a previous day; newer pricing not yet published[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def cost(
    provider: str = typer.Argument(..., help="Provider identifier"),
    model: str = typer.Argument(..., help="Model identifier"),
    input_tokens: int = typer.Option(..., "--input", "-i", min=0, help="Input tokens"),
    output_tokens: int = typer.Option(..., "--output", "-o", min=0, help="Output tokens"),
    cached_tokens: int = typer.Option(0, "--cached", min=0, help="Cached input tokens"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Calculate the cost of a request."""
    try:
        with get_pricing_client(config) as client:
            result = client.calculate_cost(
                provider, model, input_tokens, output_tokens, cached_tokens
            )
    except CLIENT_ERRORS as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"\n[bold]Cost for {provider}/{model}[/bold] ({result.date})")
    console.print("-" * 40)
    console.print(f"Input cost: {_format_currency(result.input_cost)}")
    console.print(f"Output cost: {_format_currency(result.output_cost)}")
    console.print(f"Total cost: {_format_currency(result.total_cost)}")
    if result.used_cached_pricing:
        console.print("[dim]Cached input pricing applied[/]")
    if result.stale:
        console.print("[yellow]Data is from a previous day; newer pricing not yet published[/]")
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format a cost with enough precision for sub-cent requests."""
    return f"${amount:,.6f}"


def _format_rate(rate: float) -> str:
    return f"${rate:,.4g}/1M tokens"


def _format_percent_change(before: float, after: float) -> str:
    """Format percentage change with sign."""
    if before == 0:
        return "N/A"
    percent = ((after - before) / before) * 100
    return f"{'+' if percent >= 0 else ''}{percent:,.1f}%"


def _display_changes(provider: str, changes: List[PriceChange]) -> None:
    """Display recorded changes as a table."""
    table = Table(title=f"{provider}: {len(changes)} price changes")
    table.add_column("Change")
    table.add_column("Model")
    table.add_column("Input /1M", justify="right")
    table.add_column("Output /1M", justify="right")
    table.add_column("Input change", justify="right")

    for change in changes:
        record = change.pricing
        delta = ""
        if change.change_type == ChangeType.UPDATED:
            delta = _format_percent_change(
                change.previous_pricing.input_price_per_million,
                record.input_price_per_million,
            )
        table.add_row(
            change.change_type.value,
            record.model_id,
            f"${record.input_price_per_million:,.4g}",
            f"${record.output_price_per_million:,.4g}",
            delta,
        )
    console.print(table)


if __name__ == "__main__":
    app()
