"""Main CLI entry point for JARVIS Router."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from dotenv import load_dotenv

from jarvisrouter import __version__
from jarvisrouter.config.exceptions import ConfigError, NotFoundError, ValidationError
from jarvisrouter.config.loader import ConfigurationLoader, setup_logging
from jarvisrouter.config.validate_env import validate_credentials
from jarvisrouter.llm.exceptions import RouterError
from .priority import priority_group

# Load environment variables from .env file
load_dotenv()

console = Console()
logger = logging.getLogger(__name__)


def error_payload(error: Exception) -> Dict[str, Any]:
    """Boundary representation of any error the router raises."""
    if isinstance(error, RouterError):
        return error.to_dict()
    if isinstance(error, ValidationError):
        return {"errorKind": "VALIDATION", "message": error.message, "httpStatusHint": 400}
    if isinstance(error, NotFoundError):
        return {"errorKind": "NOT_FOUND", "message": error.message, "httpStatusHint": 404}
    if isinstance(error, ConfigError):
        return {"errorKind": "CONFIG", "message": error.message, "httpStatusHint": 500}
    return {"errorKind": "UNKNOWN", "message": str(error), "httpStatusHint": 500}


def fail(ctx: click.Context, error: Exception) -> None:
    """Print the error payload and exit non-zero."""
    click.echo(json.dumps(error_payload(error), indent=2))
    ctx.exit(1)


def get_loader(ctx: click.Context) -> ConfigurationLoader:
    """Configuration loader for this invocation; sets up logging on first use."""
    loader: ConfigurationLoader = ctx.obj["loader"]
    if not ctx.obj.get("logging_configured"):
        config = loader.load_config()
        setup_logging(config.logging, verbose=ctx.obj["verbose"])
        ctx.obj["logging_configured"] = True
    return loader


@click.group()
@click.version_option(version=__version__, prog_name="JARVIS Router")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output"
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Configuration file path (default: ./config.yaml if present)",
)
@click.option(
    "--priority-file",
    "-p",
    default=None,
    type=click.Path(dir_okay=False),
    help="Priority configuration file (default: priority.json)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[str], priority_file: Optional[str]) -> None:
    """JARVIS Router: priority-based AI provider routing.

    Sends chat messages to the highest-ranked available AI provider and
    falls back down the priority list when a provider fails.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["loader"] = ConfigurationLoader(config_path, priority_file=priority_file)

    if verbose:
        console.print(f"[green]JARVIS Router v{__version__}[/green]")


@cli.command()
@click.argument("message")
@click.option("--temperature", "-t", type=float, default=None, help="Sampling temperature override")
@click.option("--max-tokens", "-m", type=int, default=None, help="Maximum tokens to generate")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.pass_context
def chat(
    ctx: click.Context,
    message: str,
    temperature: Optional[float],
    max_tokens: Optional[int],
    as_json: bool,
) -> None:
    """Send MESSAGE to the best available provider."""

    async def _chat():
        orchestrator = get_loader(ctx).create_orchestrator()
        async with orchestrator:
            return await orchestrator.generate_response(
                message, temperature=temperature, max_tokens=max_tokens
            )

    try:
        result = asyncio.run(_chat())
    except (RouterError, ConfigError, ValidationError) as e:
        fail(ctx, e)
        return

    if as_json:
        click.echo(json.dumps(result.model_dump(by_alias=True), indent=2))
        return

    console.print(Panel(result.response, title=f"{result.provider} ({result.model})", border_style="green"))
    details = f"attempts: {result.total_attempts}, {result.response_time_ms:.0f}ms"
    if result.fallback_used:
        details += ", fallback used"
    console.print(f"[dim]{details}[/dim]")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configured providers and which ones are usable."""
    try:
        orchestrator = get_loader(ctx).create_orchestrator()
        summary = orchestrator.get_service_status()
        details = orchestrator.get_service_details()
    except (RouterError, ConfigError) as e:
        fail(ctx, e)
        return

    table = Table(title="AI Services")
    table.add_column("Priority", justify="right")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Enabled")
    table.add_column("Available")

    for d in details:
        table.add_row(
            str(d["priority"]),
            f"{d['name']} ({d['id']})",
            d["model"],
            "[green]yes[/green]" if d["enabled"] else "[dim]no[/dim]",
            "[green]yes[/green]" if d["available"] else "[red]no[/red]",
        )

    console.print(table)
    console.print(
        f"Available: {summary['available_services']}/{summary['total_services']}  "
        f"Current: [bold]{summary['current_priority']}[/bold]"
    )


@cli.command(name="test")
@click.argument("provider", required=False)
@click.pass_context
def test_command(ctx: click.Context, provider: Optional[str]) -> None:
    """Send a test message to PROVIDER, or to every available provider."""

    async def _test():
        orchestrator = get_loader(ctx).create_orchestrator()
        async with orchestrator:
            if provider:
                return [await orchestrator.test_service(provider)]
            return (await orchestrator.test_all_services())["results"]

    try:
        results = asyncio.run(_test())
    except (RouterError, ConfigError) as e:
        fail(ctx, e)
        return

    if not results:
        console.print("[yellow]No available services to test[/yellow]")
        ctx.exit(1)

    table = Table(title="Service Test Results")
    table.add_column("Service", style="cyan")
    table.add_column("Result")
    table.add_column("Details")

    for r in results:
        if r["success"]:
            table.add_row(r["service"], "[green]OK[/green]", f"{r['model']} ({r['response_time_ms']:.0f}ms)")
        else:
            table.add_row(r["service"], "[red]FAILED[/red]", r["error"])

    console.print(table)
    if not any(r["success"] for r in results):
        ctx.exit(1)


@cli.command()
@click.pass_context
def credentials(ctx: click.Context) -> None:
    """Check the provider credentials in the environment."""
    try:
        descriptors = get_loader(ctx).get_descriptors()
    except ConfigError as e:
        fail(ctx, e)
        return

    reports = validate_credentials(descriptors.values())

    table = Table(title="Provider Credentials")
    table.add_column("Provider", style="cyan")
    table.add_column("Variable")
    table.add_column("Status")
    table.add_column("Value")

    for r in reports:
        colour = "green" if r.ok else ("red" if r.status.value == "MISSING" else "yellow")
        table.add_row(
            r.display_name,
            r.env_key,
            f"[{colour}]{r.status.value}[/{colour}]",
            r.masked_value or "-",
        )

    console.print(table)
    if not any(r.ok for r in reports):
        console.print("[yellow]No usable provider credential configured[/yellow]")


cli.add_command(priority_group)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
