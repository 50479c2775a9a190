"""
Tradal Coach CLI Tool

Operator command-line interface for checking provider credentials and
running the coach from a terminal.

Usage:
    coach providers              - Show the provider chain and key status
    coach ask "message"          - Ask the coach (optionally with --image)
    coach review '{"pair": ...}' - Review one trade
    coach serve                  - Start the API server
"""
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from coach import __version__
from coach.config import Settings
from coach.core.providers import AllProvidersExhaustedError
from coach.core.router import GenerationRouter, build_router
from coach.services.coach import TradingCoach

# Load environment variables
load_dotenv()

console = Console()


def load_settings() -> Settings:
    """Load settings, exiting with a readable message on invalid config."""
    try:
        return Settings()
    except ValueError as e:
        console.print(f"[red]✗ Invalid configuration[/red]\n{escape(str(e))}")
        sys.exit(2)


def encode_image(path: Path) -> str:
    """Read an image file as a data URL."""
    suffix = path.suffix.lower().lstrip(".") or "jpeg"
    mime = "image/jpeg" if suffix in ("jpg", "jpeg") else f"image/{suffix}"
    data = base64.b64encode(path.read_bytes()).decode("utf-8")
    return f"data:{mime};base64,{data}"


def parse_json_option(value: str | None, label: str):
    """Parse a JSON command-line value."""
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{label} must be valid JSON: {e}") from e


async def run_with_router(router: GenerationRouter, coro_factory) -> str:
    """Run a coroutine against the router and always close it."""
    try:
        return await coro_factory(TradingCoach(router))
    finally:
        await router.close()


def print_result(text: str) -> None:
    console.print(Panel(escape(text), title="Tradal Buddy", border_style="cyan"))


def print_exhausted(error: AllProvidersExhaustedError) -> None:
    console.print(f"[red]✗ {escape(str(error))}[/red]")
    for name, provider_error in error.errors.items():
        console.print(f"  [dim]{escape(name)}:[/dim] {escape(str(provider_error))}")


@click.group()
@click.version_option(version=__version__, prog_name="Tradal Coach")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL",
)
def main(log_level: str | None):
    """Tradal Coach - AI trading coach with multi-provider failover."""
    settings = load_settings()
    logging.basicConfig(
        level=(log_level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command()
def providers():
    """Show the provider chain in priority order."""
    router = build_router(load_settings())

    table = Table(title="Provider Chain")
    table.add_column("#", justify="right")
    table.add_column("Provider")
    table.add_column("Configured")
    table.add_column("Keys")
    table.add_column("Vision")
    table.add_column("Models")

    for entry in router.status():
        models = ", ".join(entry.text_models)
        if entry.vision_models:
            models += f" | vision: {', '.join(entry.vision_models)}"
        table.add_row(
            str(entry.position),
            entry.name,
            "[green]✓[/green]" if entry.configured else "[red]✗[/red]",
            ", ".join(entry.keys) or "-",
            entry.vision_policy,
            models,
        )

    console.print(table)
    configured = sum(1 for entry in router.status() if entry.configured)
    console.print(f"\n{configured}/{len(router)} providers configured")


@main.command()
@click.argument("message")
@click.option("--image", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Chart screenshot")
@click.option("--context", "context_json", default=None, help="Context as JSON")
@click.option("--deadline", type=float, default=None, help="Overall deadline in seconds")
def ask(message: str, image: Path | None, context_json: str | None, deadline: float | None):
    """Ask the coach a question."""
    context = parse_json_option(context_json, "--context")
    image_data = encode_image(image) if image else None
    router = build_router(load_settings())

    try:
        with console.status("Thinking..."):
            text = asyncio.run(
                run_with_router(
                    router,
                    lambda coach: coach.chat(message, context, image_data, deadline=deadline),
                )
            )
    except AllProvidersExhaustedError as e:
        print_exhausted(e)
        sys.exit(1)

    print_result(text)


@main.command()
@click.argument("trade_json")
@click.option("--deadline", type=float, default=None, help="Overall deadline in seconds")
def review(trade_json: str, deadline: float | None):
    """Review a trade given as a JSON object."""
    trade = parse_json_option(trade_json, "TRADE_JSON")
    if not isinstance(trade, dict) or not trade:
        raise click.BadParameter("TRADE_JSON must be a non-empty JSON object")
    router = build_router(load_settings())

    try:
        with console.status("Reviewing trade..."):
            text = asyncio.run(
                run_with_router(router, lambda coach: coach.review_trade(trade, deadline=deadline))
            )
    except AllProvidersExhaustedError as e:
        print_exhausted(e)
        sys.exit(1)

    print_result(text)


@main.command()
@click.option("--port", default=8000, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Host to bind")
def serve(port: int, host: str):
    """Start the API server."""
    import uvicorn

    console.print(f"[green]Starting Tradal Coach on http://{host}:{port}[/green]")
    uvicorn.run("coach.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
