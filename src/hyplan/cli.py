"""hyplan CLI entrypoint."""

from __future__ import annotations

import logging

import click

from hyplan import __version__

_LOG_LEVELS = ["debug", "info", "warning", "error"]


@click.group()
@click.version_option(version=__version__, prog_name="hyplan")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="warning",
    show_default=True,
    help="Log level for planner and coordinator messages (written to stderr).",
)
def main(log_level: str) -> None:
    """hyplan — hybrid temporal HTN planner."""
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=log_level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


from hyplan.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
