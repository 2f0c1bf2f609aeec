"""Priority management commands."""

from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from jarvisrouter.config.exceptions import ConfigError
from jarvisrouter.llm.priority_store import PriorityStore

console = Console()


def _store(ctx: click.Context) -> PriorityStore:
    from .main import get_loader

    return get_loader(ctx).priority_store()


def _run(ctx: click.Context, action, message: str) -> None:
    from .main import fail

    try:
        entry = action(_store(ctx))
    except ConfigError as e:
        fail(ctx, e)
        return
    console.print(message.format(entry=entry))


@click.group(name="priority")
def priority_group():
    """Inspect and change the provider priority order."""
    pass


@priority_group.command(name="list")
@click.pass_context
def list_priorities(ctx: click.Context) -> None:
    """List providers in priority order."""
    from .main import fail

    try:
        store = _store(ctx)
        entries = store.entries()
    except ConfigError as e:
        fail(ctx, e)
        return

    table = Table(title=f"Provider Priority ({store.path})")
    table.add_column("Priority", justify="right")
    table.add_column("Provider", style="cyan")
    table.add_column("Model")
    table.add_column("Enabled")

    for entry in entries:
        table.add_row(
            str(entry.priority),
            entry.id,
            entry.model,
            "[green]yes[/green]" if entry.enabled else "[dim]no[/dim]",
        )

    console.print(table)


# Negative ranks such as -1 must reach PRIORITY instead of the option parser
@priority_group.command(name="set", context_settings={"ignore_unknown_options": True})
@click.argument("provider_id")
@click.argument("priority", type=int)
@click.pass_context
def set_priority(ctx: click.Context, provider_id: str, priority: int) -> None:
    """Set the rank of PROVIDER_ID (lower is tried first, negative allowed)."""
    _run(
        ctx,
        lambda store: store.set_priority(provider_id, priority),
        "[green]{entry.id}[/green] priority set to {entry.priority}",
    )


@priority_group.command()
@click.argument("provider_id")
@click.pass_context
def enable(ctx: click.Context, provider_id: str) -> None:
    """Enable PROVIDER_ID."""
    _run(ctx, lambda store: store.set_enabled(provider_id, True), "[green]{entry.id}[/green] enabled")


@priority_group.command()
@click.argument("provider_id")
@click.pass_context
def disable(ctx: click.Context, provider_id: str) -> None:
    """Disable PROVIDER_ID."""
    _run(ctx, lambda store: store.set_enabled(provider_id, False), "[yellow]{entry.id}[/yellow] disabled")


@priority_group.command()
@click.argument("provider_id")
@click.argument("model")
@click.pass_context
def model(ctx: click.Context, provider_id: str, model: str) -> None:
    """Set the model used for PROVIDER_ID."""
    _run(
        ctx,
        lambda store: store.set_model(provider_id, model),
        "[green]{entry.id}[/green] now uses model {entry.model}",
    )


@priority_group.command()
@click.option("--order", default=None, help="Comma-separated provider ids, highest priority first")
@click.option("--force", is_flag=True, help="Overwrite an existing priority file")
@click.pass_context
def init(ctx: click.Context, order: Optional[str], force: bool) -> None:
    """Write a default priority file for the configured providers."""
    from .main import fail, get_loader

    order_list = [p.strip() for p in order.split(",") if p.strip()] if order else None
    try:
        loader = get_loader(ctx)
        store = PriorityStore.initialize(
            loader.load_config().priority_file,
            loader.get_descriptors().values(),
            order=order_list,
            overwrite=force,
        )
    except ConfigError as e:
        fail(ctx, e)
        return

    console.print(f"[green]Wrote {store.path}[/green] with {len(store.entries())} providers")
