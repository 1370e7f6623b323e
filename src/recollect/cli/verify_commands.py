"""Verify, repair and status commands."""

from __future__ import annotations

import json
import sys

import click
from rich import box
from rich.table import Table

from recollect.cli.main import console, get_config, get_verbosity
from recollect.core.config import redact_api_key
from recollect.core.errors import RecollectError

_KIND_STYLES = {
    "missing": "yellow",
    "orphaned": "magenta",
    "outdated": "cyan",
    "corrupted": "red",
}


def _print_report(report) -> None:
    table = Table(title="Index Verification", box=box.ROUNDED)
    table.add_column("Check", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Issues", justify="right")

    for kind, style in _KIND_STYLES.items():
        issues = getattr(report, kind)
        status_str = "[green]PASS[/green]" if not issues else f"[{style}]FAIL[/{style}]"
        table.add_row(kind, status_str, str(len(issues)))

    console.print()
    console.print(table)

    for kind, style in _KIND_STYLES.items():
        issues = getattr(report, kind)
        if not issues:
            continue
        console.print(f"\n[{style} bold]{kind}[/{style} bold]:")
        for issue in issues:
            console.print(f"  {issue.path}")
            if issue.detail:
                console.print(f"    [dim]{issue.detail}[/dim]")

    console.print(f"\n[bold]{report.summary}[/bold]")


def _open_verify_deps(config):
    from recollect.build.archive import ArchiveManager
    from recollect.search.store import IndexStore

    if not config.db_path.exists():
        console.print("[red]No index found.[/red] Run [bold]recollect index-all[/bold] first.")
        sys.exit(1)

    archive = ArchiveManager(config.archive_root)
    store = IndexStore(config.db_path, dimensions=config.embedding.dimensions)
    return archive, store


@click.command()
@click.option("--project", default=None, help="Only check this project")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def verify(ctx: click.Context, project: str | None, output_json: bool):
    """Check the archive, summaries and index for drift.

    Exits with status 1 when any issue is found.
    """
    from recollect.build.verify import verify_index

    config = get_config(ctx)
    archive, store = _open_verify_deps(config)
    try:
        report = verify_index(
            archive, store, project=project, min_corrupt_bytes=config.corrupt_min_bytes,
        )
    except RecollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        store.close()

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
    sys.exit(0 if report.passed else 1)


@click.command()
@click.option("--project", default=None, help="Only repair this project")
@click.pass_context
def repair(ctx: click.Context, project: str | None):
    """Verify, then fix missing, orphaned and outdated entries.

    Corrupted transcripts are reported but never modified.
    """
    from recollect.build.repair import repair_index
    from recollect.build.runner import build_indexer
    from recollect.build.verify import verify_index

    config = get_config(ctx)
    indexer = build_indexer(config, verbosity=get_verbosity(ctx))
    try:
        report = verify_index(
            indexer.archive, indexer.store,
            project=project, min_corrupt_bytes=config.corrupt_min_bytes,
        )
        _print_report(report)

        if report.repairable == 0:
            console.print("\n[green]Nothing to repair.[/green]")
            return

        console.print(f"\n[bold]Repairing {report.repairable} issue(s)...[/bold]")
        result = repair_index(report, indexer)
    except RecollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        indexer.store.close()

    for action in result.actions:
        marker = "[dim]-[/dim]" if action.action == "reported" else "[green]+[/green]"
        console.print(f"  {marker} {action.kind} {action.path}: {action.description}")
    for error in result.errors:
        console.print(f"  [red]x[/red] {error}")

    console.print(
        f"\n[bold]{result.fixed_count} fixed, {result.reported_count} reported, "
        f"{len(result.errors)} failed[/bold]"
    )
    if result.errors:
        sys.exit(1)


@click.command()
@click.pass_context
def status(ctx: click.Context):
    """Show archive and index counts per project."""
    config = get_config(ctx)
    archive, store = _open_verify_deps(config)

    try:
        record_counts = store.project_counts()
    except RecollectError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    finally:
        store.close()

    transcripts: dict[str, int] = {}
    summaries: dict[str, int] = {}
    for project, path in archive.iter_archived():
        transcripts[project] = transcripts.get(project, 0) + 1
        if archive.has_summary(path):
            summaries[project] = summaries.get(project, 0) + 1

    table = Table(title="Index Status", box=box.ROUNDED)
    table.add_column("Project", style="bold")
    table.add_column("Archived", justify="right")
    table.add_column("Summaries", justify="right")
    table.add_column("Exchanges", justify="right")

    for project in sorted(set(transcripts) | set(record_counts)):
        table.add_row(
            project,
            str(transcripts.get(project, 0)),
            str(summaries.get(project, 0)),
            str(record_counts.get(project, 0)),
        )
    table.add_section()
    table.add_row(
        "[bold]total[/bold]",
        str(sum(transcripts.values())),
        str(sum(summaries.values())),
        str(sum(record_counts.values())),
    )

    console.print()
    console.print(table)
    console.print(f"[dim]Archive:[/dim] {config.archive_root}")
    console.print(f"[dim]Index:[/dim] {config.db_path}")
    console.print(
        f"[dim]LLM:[/dim] {config.llm.provider}/{config.llm.model} "
        f"(key: {redact_api_key(config.llm.resolve_api_key()) or 'not set'})"
    )
    console.print(
        f"[dim]Embeddings:[/dim] {config.embedding.provider}/{config.embedding.model} "
        f"({config.embedding.dimensions} dims)"
    )
