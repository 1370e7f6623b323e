"""Indexing commands: index-all, index-session, index-cleanup, rebuild."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.table import Table

from recollect.cli.main import console, get_config, get_verbosity
from recollect.core.errors import RecollectError


def _print_stats(stats, title: str = "Index Run") -> None:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Transcripts processed", str(stats.transcripts))
    table.add_row("Indexed", f"[green]{stats.indexed}[/green]")
    table.add_row("Empty (no exchanges)", f"[dim]{stats.empty}[/dim]")
    table.add_row("Failed", f"[red]{stats.failed}[/red]" if stats.failed else "0")
    table.add_row("Newly archived", str(stats.archived))
    table.add_row("Summaries written", str(stats.summarized))
    table.add_row("Exchanges embedded", str(stats.exchanges_indexed))
    table.add_row("Exchanges unchanged", str(stats.exchanges_skipped))
    table.add_row("LLM calls", str(stats.llm_calls))
    console.print()
    console.print(table)
    console.print(f"[dim]Finished in {stats.total_time:.1f}s[/dim]")


def _run(ctx: click.Context, action) -> None:
    """Build an indexer, run ``action(indexer)`` and print its stats."""
    from recollect.build.runner import build_indexer

    config = get_config(ctx)
    indexer = build_indexer(config, verbosity=get_verbosity(ctx))
    try:
        stats = action(indexer)
    except RecollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        indexer.store.close()
    _print_stats(stats)
    if stats.failed:
        sys.exit(1)


@click.command("index-all")
@click.option("--project", default=None, help="Only index this project")
@click.option("--limit", default=None, type=click.IntRange(min=1),
              help="Stop after this many transcripts")
@click.option("--force", is_flag=True, help="Re-embed exchanges even if unchanged")
@click.pass_context
def index_all(ctx: click.Context, project: str | None, limit: int | None, force: bool):
    """Archive, summarize and index every transcript."""
    if project:
        _run(ctx, lambda ix: ix.index_project(project, limit=limit, force=force))
    else:
        _run(ctx, lambda ix: ix.index_all(limit=limit, force=force))


@click.command("index-session")
@click.argument("session_id")
@click.option("--force", is_flag=True, help="Re-embed exchanges even if unchanged")
@click.pass_context
def index_session(ctx: click.Context, session_id: str, force: bool):
    """Index one transcript.

    SESSION_ID is matched against transcript filenames.
    """
    _run(ctx, lambda ix: ix.index_session(session_id, force=force))


@click.command("index-cleanup")
@click.pass_context
def index_cleanup(ctx: click.Context):
    """Index only transcripts that have not been summarized yet."""
    _run(ctx, lambda ix: ix.index_unprocessed())


@click.command()
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def rebuild(ctx: click.Context, yes: bool):
    """Delete the index and all summaries, then index everything again.

    Archived transcript copies are kept.
    """
    from recollect.build.archive import ArchiveManager

    config = get_config(ctx)

    if not yes:
        console.print(
            f"This will delete [bold]{config.db_path}[/bold] and every summary under "
            f"[bold]{config.archive_root}[/bold]."
        )
        if not click.confirm("Continue?"):
            console.print("[dim]Aborted.[/dim]")
            return

    for suffix in ("", "-wal", "-shm"):
        db_file = Path(f"{config.db_path}{suffix}")
        if db_file.exists():
            db_file.unlink()
    removed = ArchiveManager(config.archive_root).delete_summaries()
    console.print(f"[green]Cleared:[/green] index database and {removed} summary file(s)")

    _run(ctx, lambda ix: ix.index_all())
