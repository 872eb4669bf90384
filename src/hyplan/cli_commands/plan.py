"""``hyplan plan`` — decompose a problem and print the schedule."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from hyplan.cli_commands._output import console, print_plan


@click.command()
@click.argument("problem", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def plan(problem: str, as_json: bool) -> None:
    """Plan the goals of PROBLEM yaml file without executing them."""
    from hyplan.core.errors import PlanningError
    from hyplan.sdk.errors import ProblemValidationError
    from hyplan.sdk.problem import ProblemLoader, ProblemRunner

    try:
        spec = ProblemLoader(Path(problem)).load()
        runner = ProblemRunner(spec)
    except ProblemValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    try:
        result = runner.plan()
    except PlanningError as exc:
        console.print(f"[red]Planning error:[/red] {exc}")
        sys.exit(1)

    print_plan(result, as_json=as_json)
