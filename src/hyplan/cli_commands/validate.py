"""``hyplan validate`` — check a problem file and its domain."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from hyplan.cli_commands._output import console


@click.command()
@click.argument("problem", type=click.Path(exists=True))
def validate(problem: str) -> None:
    """Validate PROBLEM yaml file and the domain it references."""
    from hyplan.core.errors import DomainValidationError
    from hyplan.sdk.errors import ProblemValidationError
    from hyplan.sdk.problem import ProblemLoader, load_domain

    try:
        spec = ProblemLoader(Path(problem)).load()
        domain = load_domain(spec.domain)
        domain.validate()
    except (ProblemValidationError, DomainValidationError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        sys.exit(1)

    console.print("[green]Problem validated successfully.[/green]")
    console.print(f"  Name: {spec.name or '(unnamed)'}")
    console.print(f"  Domain: {domain.name} ({len(domain.actions)} actions, {len(domain.methods)} tasks)")
    console.print(f"  Goals: {len(spec.goals)}, tasks: {len(spec.tasks)}")
