"""
Typer CLI for the cardgraph service.

Commands:
    cardgraph build         - Build the KNN index and label candidate edges
    cardgraph clear-cache   - Drop cached KNN tables
    cardgraph config        - Show effective KNN and labeling settings
    cardgraph version       - Show version information

Usage:
    cardgraph build cards.json embeddings.json --k 16 --output edges.json
    cardgraph build cards.json embeddings.json --no-label
    cardgraph clear-cache
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from cardgraph import __version__
from cardgraph.config import get_settings
from cardgraph.exceptions import InvalidInputError
from cardgraph.semantic.graph_service import CardGraphService

app = typer.Typer(
    help="cardgraph CLI: embeddings -> KNN index -> labeled card relationships",
    no_args_is_help=True,
)

console = Console()


def _configure_logging() -> None:
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")


def _read_json(path: Path) -> Any:
    if not path.exists():
        rprint(f"[red]✗[/red] File not found: {path}")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]✗[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(code=1)


def load_cards(path: Path) -> dict[str, dict[str, Any]]:
    """Read cards from a JSON list of records (with 'id') or an id -> record object."""
    data = _read_json(path)
    if isinstance(data, dict):
        return {str(card_id): record for card_id, record in data.items()}
    return {str(record["id"]): record for record in data if isinstance(record, dict) and "id" in record}


def load_embeddings(path: Path) -> dict[str, list[float]]:
    """Read an id -> vector JSON object."""
    data = _read_json(path)
    if not isinstance(data, dict):
        rprint(f"[red]✗[/red] Expected an object of id -> vector in {path}")
        raise typer.Exit(code=1)
    return {str(card_id): vector for card_id, vector in data.items() if vector}


@app.callback()
def main_callback() -> None:
    """Semantic relationship graphs for flashcard collections."""
    _configure_logging()


@app.command("build")
def build(
    cards_file: Path = typer.Argument(..., help="Cards JSON (list of records or id -> record)"),
    embeddings_file: Path = typer.Argument(..., help="Embeddings JSON (id -> normalized vector)"),
    k: Optional[int] = typer.Option(None, "--k", "-k", help="Neighbors per card (default from settings)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write edges as JSON"),
    label: bool = typer.Option(True, "--label/--no-label", help="Assign relation labels"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Deadline (seconds) for labeling"),
) -> None:
    """
    Build (or load) the KNN index and label the resulting edges.

    Examples:
        cardgraph build cards.json embeddings.json
        cardgraph build cards.json embeddings.json -k 8 --no-label -o edges.json
    """
    cards = load_cards(cards_file)
    embeddings = load_embeddings(embeddings_file)
    rprint(f"Loaded [cyan]{len(cards)}[/cyan] cards, [cyan]{len(embeddings)}[/cyan] embeddings")

    async def _run():
        async with CardGraphService() as service:
            edges = await service.build_graph(cards, embeddings, k=k, label=label, timeout=timeout)
            return edges, service.get_stats(edges)

    try:
        edges, stats = asyncio.run(_run())
    except InvalidInputError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Edges ({stats['total']})")
    table.add_column("Relation", style="cyan")
    table.add_column("Count", justify="right")
    for relation, count in sorted(stats["by_relation"].items(), key=lambda item: -item[1]):
        table.add_row(relation, str(count))
    console.print(table)

    if output:
        output.write_text(json.dumps([edge.to_dict() for edge in edges], indent=2), encoding="utf-8")
        rprint(f"[green]✓[/green] Wrote {len(edges)} edges to {output}")


@app.command("clear-cache")
def clear_cache() -> None:
    """Drop every cached KNN table (relation labels are kept)."""
    service = CardGraphService()
    removed = service.clear_index_cache()
    asyncio.run(service.close())
    rprint(f"[green]✓[/green] Removed {removed} cached KNN tables")


@app.command("config")
def show_config() -> None:
    """Show effective KNN and labeling configuration."""
    settings = get_settings()

    table = Table(title="cardgraph configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="dim")
    table.add_row("database_url", settings.database_url)
    for name, value in settings.get_knn_config().items():
        table.add_row(f"knn.{name}", str(value))
    for name, value in settings.get_labeling_config().items():
        table.add_row(f"labeling.{name}", str(value))
    console.print(table)

    if not settings.has_labeling_configured():
        rprint("[yellow]⚠[/yellow] Labeling not configured: every edge will be 'same-topic'")


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]cardgraph[/bold] v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
