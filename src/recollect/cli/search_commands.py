"""Search commands: recollect search, recollect show."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from recollect.cli.main import console, get_config
from recollect.core.errors import RecollectError


def _similarity_style(similarity: float) -> str:
    if similarity >= 0.75:
        return "green"
    if similarity >= 0.5:
        return "yellow"
    return "dim"


@click.command()
@click.argument("query")
@click.option("--limit", default=10, type=click.IntRange(min=1), help="Max results to return")
@click.option("--project", default=None, help="Only return exchanges from this project")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--plain", is_flag=True, help="Plain text output")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    limit: int,
    project: str | None,
    output_json: bool,
    plain: bool,
):
    """Semantic search across indexed exchanges.

    QUERY is the search text.
    """
    from recollect.search.embeddings import EmbeddingProvider
    from recollect.search.retriever import Searcher, format_results
    from recollect.search.store import IndexStore

    config = get_config(ctx)
    if not config.db_path.exists():
        console.print("[red]No index found.[/red] Run [bold]recollect index-all[/bold] first.")
        sys.exit(1)

    store = IndexStore(config.db_path, dimensions=config.embedding.dimensions)
    try:
        searcher = Searcher(store, EmbeddingProvider(config.embedding))
        results = searcher.search(query, limit=limit, project=project)
    except RecollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        store.close()

    if output_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    if plain:
        click.echo(format_results(results), nl=False)
        return

    if not results:
        console.print(f"[dim]No results for:[/dim] {escape(query)}")
        return

    console.print(f'\n[bold]Search results for:[/bold] "{escape(query)}"\n')
    for i, result in enumerate(results, 1):
        style = _similarity_style(result.similarity)
        body = Text(result.snippet)
        body.append("\n\n")
        body.append("File: ", style="dim")
        body.append(result.location)
        console.print(Panel(
            body,
            title=f"[bold]{escape(result.exchange.project)}[/bold] {result.date}",
            subtitle=f"[{style}]{result.similarity * 100:.1f}%[/{style}]  Result {i}",
            border_style=style,
            padding=(1, 2),
        ))


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--project", default=None, help="Project name (defaults to the parent directory)")
def show(path: Path, project: str | None):
    """Print the paired exchanges of a transcript.

    PATH is a transcript .jsonl file, live or archived.
    """
    from recollect.sources.transcript import format_exchanges, parse_transcript

    exchanges = parse_transcript(path, project or path.parent.name)
    if not exchanges:
        console.print(f"[dim]No exchanges in[/dim] {path}")
        return
    console.print(f"[dim]{len(exchanges)} exchange(s) from[/dim] {path}\n")
    click.echo(format_exchanges(exchanges))
