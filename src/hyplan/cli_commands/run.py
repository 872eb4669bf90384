"""``hyplan run`` — plan and execute a problem with the local executor."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from hyplan.cli_commands._output import console, print_event, print_report


@click.command()
@click.argument("problem", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Print plan events as they happen.")
@click.option("--telemetry", is_flag=True, help="Enable telemetry.")
def run(problem: str, as_json: bool, verbose: bool, telemetry: bool) -> None:
    """Plan and execute the goals of PROBLEM yaml file."""
    from hyplan.core.errors import PlanningError
    from hyplan.execution.errors import ExecutionError
    from hyplan.sdk.errors import ProblemValidationError
    from hyplan.sdk.problem import ProblemLoader, ProblemRunner

    try:
        spec = ProblemLoader(Path(problem)).load()
    except ProblemValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    if telemetry:
        if spec.telemetry is None:
            from hyplan.sdk.models import TelemetrySettings

            spec.telemetry = TelemetrySettings(enabled=True)
        else:
            spec.telemetry.enabled = True

    if verbose:
        console.print(f"Running problem: {spec.name or problem}")

    try:
        runner = ProblemRunner(spec, listeners=[print_event] if verbose else None)
    except ProblemValidationError as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    try:
        report = asyncio.run(runner.run())
    except (PlanningError, ExecutionError) as exc:
        console.print(f"[red]Execution error:[/red] {exc}")
        sys.exit(1)

    print_report(report, as_json=as_json)
