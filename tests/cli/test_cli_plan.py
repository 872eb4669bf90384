"""Tests for ``hyplan plan`` CLI command."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from hyplan.cli import main

if TYPE_CHECKING:
    from pathlib import Path


class TestPlanCommand:
    def test_table(self, problem_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["plan", str(problem_file)])

        assert result.exit_code == 0
        assert "4 actions" in result.output

    def test_json(self, problem_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["plan", str(problem_file), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "scheduled"
        assert [row["action"] for row in data["schedule"]] == [
            "call_taxi('alice', 'home_a')",
            "walk('bob', 'home_b', 'park')",
            "ride_taxi('alice', 'park')",
            "pay_driver('alice', 'park')",
        ]
        assert data["schedule"][2]["after"] == [2]

    def test_planning_error(self, tmp_path: Path) -> None:
        f = tmp_path / "impossible.yaml"
        f.write_text(
            "domain: hyplan.domains.travel:domain\n"
            "state: {alice: {type: person, loc: home_a}}\n"
            "goals: [{subject: alice, predicate: loc, value: moon}]\n"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["plan", str(f)])

        assert result.exit_code == 1
        assert "Planning error" in result.output

    def test_validation_error(self, tmp_path: Path) -> None:
        f = tmp_path / "bad.yaml"
        f.write_text("name: only-name\n")

        runner = CliRunner()
        result = runner.invoke(main, ["plan", str(f)])

        assert result.exit_code == 1
        assert "Validation error" in result.output

    def test_missing_file(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["plan", "/nonexistent/problem.yaml"])

        assert result.exit_code != 0
