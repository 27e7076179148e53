"""MemSync CLI - manage the memory store and its vector index.

Usage:
    memsync init
    memsync add "Favorite color is blue" --type preference --user u1
    memsync search "what color do I like" --limit 5
    memsync reindex --all --events
    memsync purge-orphans
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from memsync.app.config import MemSyncConfig, get_default_config_path
from memsync.app.services import ServiceContainer, build_services
from memsync.core.errors import MemSyncError
from memsync.utils.logging import get_logger, setup_logging

T = TypeVar("T")

app = typer.Typer(
    name="memsync",
    help="MemSync CLI - semantic memories and calendar sync",
    add_completion=False,
)

console = Console()
logger = get_logger("cli")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to memsync_config.json"),
]


def _load_config(config_path: Path | None) -> MemSyncConfig:
    config = MemSyncConfig.load(config_path)
    setup_logging(level=config.log_level, log_dir=config.data_dir / "logs", file_output=False)
    return config


def _run(config: MemSyncConfig, action: Callable[[ServiceContainer], Awaitable[T]]) -> T:
    """Build services, run ``action`` inside their lifecycle, report failures."""

    async def runner() -> T:
        async with build_services(config) as services:
            return await action(services)

    try:
        return asyncio.run(runner())
    except MemSyncError as e:
        logger.debug(f"Command failed with {type(e).__name__}", exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command("init")
def init(config_path: ConfigOption = None) -> None:
    """Create the data directory, config file, database and collections."""
    config = _load_config(config_path)
    config.ensure_directories()
    saved = config.save(config_path or get_default_config_path())

    async def prepare(services: ServiceContainer) -> None:
        return None

    _run(config, prepare)

    console.print(Panel(
        f"[bold]Config:[/bold] {saved}\n"
        f"[bold]Database:[/bold] {config.database_path}\n"
        f"[bold]Vector index:[/bold] {config.vector.backend} @ {config.vector.url}\n"
        f"[bold]Embeddings:[/bold] {config.embedding.provider} ({config.embedding.model})",
        title="MemSync initialized",
        border_style="green",
    ))


@app.command("add")
def add_memory(
    content: Annotated[str, typer.Argument(help="Memory text")],
    memory_type: Annotated[str, typer.Option("--type", "-t", help="Category tag")] = "general",
    user: Annotated[str | None, typer.Option("--user", "-u", help="Owning user id")] = None,
    config_path: ConfigOption = None,
) -> None:
    """Store a memory and index it."""
    config = _load_config(config_path)
    record = _run(config, lambda services: services.memories.add_memory(content, memory_type, user))

    if record.is_indexed:
        console.print(f"[green]Added[/green] {record.id} ({record.type})")
    else:
        console.print(f"[yellow]Added {record.id} without indexing[/yellow] - run `memsync reindex` later")


@app.command("search")
def search(
    query: Annotated[str, typer.Argument(help="Free-text query")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results")] = 5,
    user: Annotated[str | None, typer.Option("--user", "-u", help="Only this user's memories")] = None,
    config_path: ConfigOption = None,
) -> None:
    """Semantic search over stored memories."""
    config = _load_config(config_path)
    records = _run(config, lambda services: services.memories.similarity_search(query, limit, user_id=user))

    if not records:
        console.print("[yellow]No matching memories[/yellow]")
        return

    table = Table(title=f"Memories matching '{query}'")
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Content")
    for rank, record in enumerate(records, start=1):
        table.add_row(str(rank), record.id, record.type, record.content)
    console.print(table)


@app.command("reindex")
def reindex(
    all_rows: Annotated[bool, typer.Option("--all", help="Re-embed every memory, not only unindexed ones")] = False,
    events: Annotated[bool, typer.Option("--events", help="Also re-embed calendar events")] = False,
    config_path: ConfigOption = None,
) -> None:
    """Rebuild vector points from the relational store."""
    config = _load_config(config_path)

    async def rebuild(services: ServiceContainer):
        memory_result = await services.maintenance.reindex_memories(only_missing=not all_rows)
        event_result = await services.maintenance.reindex_events() if events else None
        return memory_result, event_result

    memory_result, event_result = _run(config, rebuild)

    lines = [f"[bold]Memories:[/bold] {memory_result.indexed} indexed, {len(memory_result.failed)} failed"]
    if event_result is not None:
        lines.append(f"[bold]Events:[/bold] {event_result.indexed} indexed, {len(event_result.failed)} failed")
    ok = memory_result.ok and (event_result is None or event_result.ok)
    console.print(Panel("\n".join(lines), title="Reindex", border_style="green" if ok else "yellow"))
    if not ok:
        raise typer.Exit(1)


@app.command("purge-orphans")
def purge_orphans(config_path: ConfigOption = None) -> None:
    """Delete vector points whose record no longer exists."""
    config = _load_config(config_path)
    removed = _run(config, lambda services: services.maintenance.purge_orphans())

    for collection, count in removed.items():
        console.print(f"  • {collection}: {count} orphan point(s) removed")


# Module entry point
def main() -> None:
    """Entry point for the ``memsync`` console script."""
    app()


if __name__ == "__main__":
    main()
