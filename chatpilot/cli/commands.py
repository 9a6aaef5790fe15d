"""CLI commands for chatpilot."""

import asyncio
import sys
from pathlib import Path

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from chatpilot import __logo__, __version__

app = typer.Typer(
    name="chatpilot",
    help=f"{__logo__} chatpilot - WhatsApp AI chatbot for Wassenger",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} chatpilot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """chatpilot - WhatsApp AI chatbot for Wassenger."""
    pass


def _setup_logging(level: str, enabled: bool = True) -> None:
    logger.remove()
    if enabled:
        logger.add(sys.stderr, level=level.upper())
        logger.enable("chatpilot")
    else:
        logger.disable("chatpilot")


def _load(config_path: Path | None):
    from chatpilot.config.loader import load_config
    from chatpilot.errors import ConfigError
    from chatpilot.settings import get_settings

    settings = get_settings()
    if config_path is not None:
        settings = settings.model_copy(update={"config_path": config_path})
    try:
        config = load_config(settings.config_path, strict=True)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    return settings, config


# ============================================================================
# Server
# ============================================================================


@app.command()
def serve(
    port: int = typer.Option(None, "--port", "-p", help="HTTP port (default: CHATPILOT_PORT)"),
    host: str = typer.Option(None, "--host", help="Bind address"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Bot config JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Validate the account, register the webhook and start the chatbot server."""
    import uvicorn

    from chatpilot.api.app import create_app
    from chatpilot.cli.bootstrap import prepare
    from chatpilot.errors import ChatpilotError
    from chatpilot.integrations.wassenger import WassengerClient

    settings, config = _load(config_path)
    _setup_logging("DEBUG" if verbose else settings.log_level)

    async def _prepare() -> dict:
        client = WassengerClient(settings=settings, cache_ttl=config.team.cache_ttl_seconds)
        try:
            return await prepare(client, settings, config)
        finally:
            await client.aclose()

    try:
        device = asyncio.run(_prepare())
    except (ChatpilotError, httpx.HTTPError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Using WhatsApp number {device.get('phone')} "
        f"{device.get('alias', '')} (ID = {device['id']})"
    )
    if config.filters.numbers_whitelist:
        console.print(f"[green]✓[/green] Replying only to: {', '.join(config.filters.numbers_whitelist)}")

    bind_port = port or settings.port
    console.print(f"{__logo__} Starting chatpilot on port {bind_port}...")
    uvicorn.run(
        create_app(settings=settings, device=device),
        host=host or settings.host,
        port=bind_port,
        log_level="warning",
    )


# ============================================================================
# One-off messages
# ============================================================================


@app.command()
def send(
    phone: str = typer.Argument(..., help="Target phone number in E164 format"),
    message: str = typer.Option("Hello World from Wassenger!", "--message", "-m", help="Message text"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show runtime logs"),
):
    """Send a single text message through the configured WhatsApp number."""
    from chatpilot.errors import PlatformError
    from chatpilot.integrations.wassenger import WassengerClient

    settings, _ = _load(None)
    _setup_logging(settings.log_level, enabled=logs)

    if not settings.api_key:
        console.print("[red]Error: No Wassenger API key configured (CHATPILOT_API_KEY).[/red]")
        raise typer.Exit(1)

    async def _send() -> dict | None:
        client = WassengerClient(settings=settings)
        try:
            device = await client.load_device(settings.device)
            if not device:
                return None
            return await client.send_message(phone, device["id"], message=message)
        finally:
            await client.aclose()

    try:
        sent = asyncio.run(_send())
    except (PlatformError, httpx.HTTPError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not sent:
        console.print("[red]Message was not sent.[/red]")
        raise typer.Exit(1)

    table = Table(title="Message")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key in ("id", "phone", "status", "deliverAt"):
        if sent.get(key):
            table.add_row(key, str(sent[key]))
    console.print(table)


if __name__ == "__main__":
    app()
