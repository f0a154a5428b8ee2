"""Main CLI entry point for pipeload."""

import click
from rich.console import Console

from pipeload import __version__
from pipeload.utils import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="pipeload")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """pipeload - pipe transport planning.

    Works out how pipes telescope into each other, how many fit in the
    cross-section of a container or truck, and how many of those a full
    order needs.
    """
    from pipeload.config import get_settings

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging("DEBUG" if verbose else get_settings().log_level)


# Import and register commands
from pipeload.cli.load_cmd import calculate, pack, telescope, transports

cli.add_command(calculate)
cli.add_command(telescope)
cli.add_command(pack)
cli.add_command(transports)


@cli.command()
def status() -> None:
    """Show configuration."""
    from pipeload.config import get_settings

    settings = get_settings()

    console.print("[bold]pipeload Status[/bold]")
    console.print(f"Version: {__version__}")
    console.print()
    console.print("[bold]Configuration:[/bold]")
    console.print(f"  Minimum space: {settings.min_space} cm")
    console.print(f"  Nesting allowance: {settings.allowance} cm")
    console.print(f"  Round limit: {settings.max_rounds}")
    console.print(f"  Grid fast path: {settings.grid_fast_path}")
    console.print(f"  Default transport: {settings.default_transport}")


if __name__ == "__main__":
    cli()
