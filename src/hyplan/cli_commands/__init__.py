"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from hyplan.cli_commands.plan import plan
    from hyplan.cli_commands.run import run
    from hyplan.cli_commands.validate import validate

    cli.add_command(plan)
    cli.add_command(run)
    cli.add_command(validate)
