"""recollect CLI: main entry point and shared utilities."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console

from recollect.core.config import IndexConfig, load_config
from recollect.core.errors import RecollectError
from recollect.core.logging import Verbosity

console = Console()


def setup_logging(verbose: int) -> None:
    """Configure stdlib logging from the -v count."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def get_config(ctx: click.Context) -> IndexConfig:
    """Resolve the IndexConfig once per invocation, exiting cleanly on bad config."""
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config(obj.get("config_path"))
        except RecollectError as e:
            console.print(f"[red]Configuration error:[/red] {e}")
            sys.exit(1)
    return obj["config"]


def get_verbosity(ctx: click.Context) -> Verbosity:
    verbose = ctx.ensure_object(dict).get("verbose", 0)
    return Verbosity(min(verbose, Verbosity.DEBUG))


@click.group()
@click.option("--config", "config_path", default=None,
              type=click.Path(dir_okay=False),
              help="YAML config file with index, llm and embedding sections")
@click.option("-v", "--verbose", count=True, help="Verbose output (-vv for debug)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: int):
    """Searchable archive of conversation transcripts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from recollect.cli.index_commands import index_all, index_cleanup, index_session, rebuild  # noqa: E402
from recollect.cli.search_commands import search, show  # noqa: E402
from recollect.cli.verify_commands import repair, status, verify  # noqa: E402

main.add_command(index_all)
main.add_command(index_session)
main.add_command(index_cleanup)
main.add_command(rebuild)
main.add_command(verify)
main.add_command(repair)
main.add_command(status)
main.add_command(search)
main.add_command(show)
