"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from hyplan.core.coordinator.coordinator import ExecutionReport
    from hyplan.core.coordinator.events import PlanEvent
    from hyplan.core.planner.models import Plan

console = Console()

_EVENT_STYLES = {
    "node_rejected": "yellow",
    "replan_triggered": "yellow",
    "plan_failed": "red",
    "plan_completed": "green",
}


def print_plan(plan: Plan, *, as_json: bool = False) -> None:
    """Pretty-print a plan's schedule as a table."""
    data = plan.to_dict()
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return

    table = Table(title=f"Plan {plan.id} ({len(data['schedule'])} actions)")
    table.add_column("#", justify="right")
    table.add_column("Action", style="cyan")
    table.add_column("Agent")
    table.add_column("Start", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("After")

    for row in data["schedule"]:
        table.add_row(
            str(row["id"]),
            _truncate(row["action"]),
            row["agent"] or "-",
            _format_bounds(row["start"]),
            f"{row['duration']:g}s" if row["duration"] is not None else "-",
            ", ".join(str(p) for p in row["after"]) or "-",
        )

    console.print(table)


def print_event(event: PlanEvent) -> None:
    style = _EVENT_STYLES.get(event.kind.value)
    text = event.describe()
    console.print(f"  [{style}]{text}[/{style}]" if style else f"  {text}")


def print_report(report: ExecutionReport, *, as_json: bool = False) -> None:
    """Pretty-print an execution report summary and the final facts."""
    if as_json:
        console.print_json(report.model_dump_json())
        return

    colour = "green" if report.status.value == "completed" else "red"
    console.print(f"\n[bold]Plan {report.plan_id}[/bold]: [{colour}]{report.status.value}[/{colour}]")
    console.print(f"  Intents dispatched: {len(report.intents)}")
    console.print(f"  Replans: {report.replans}")
    console.print(f"  State version: {report.state_version}")

    table = Table(title="Final State")
    table.add_column("Subject", style="cyan")
    table.add_column("Predicate")
    table.add_column("Value")
    for fact in sorted(report.facts, key=lambda f: (f.subject, f.predicate)):
        table.add_row(fact.subject, fact.predicate, _truncate(_format_value(fact.value)))
    console.print(table)


def _format_bounds(bounds: list[float]) -> str:
    earliest, latest = bounds
    if latest == float("inf"):
        return f"{earliest:g}s.."
    if earliest == latest:
        return f"{earliest:g}s"
    return f"{earliest:g}-{latest:g}s"


def _format_value(value: Any) -> str:
    return repr(value) if not isinstance(value, str) else value


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
