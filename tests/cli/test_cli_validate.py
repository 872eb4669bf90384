"""Tests for ``hyplan validate`` CLI command."""

from __future__ import annotations

from typing import TYPE_CHECKING

from click.testing import CliRunner

from hyplan.cli import main

if TYPE_CHECKING:
    from pathlib import Path


class TestValidateCommand:
    def test_valid(self, problem_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(problem_file)])

        assert result.exit_code == 0
        assert "Problem validated successfully." in result.output
        assert "Name: travel-demo" in result.output
        assert "Domain: travel (5 actions, 1 tasks)" in result.output
        assert "Goals: 2, tasks: 0" in result.output

    def test_missing_goals(self, tmp_path: Path) -> None:
        f = tmp_path / "empty.yaml"
        f.write_text("domain: hyplan.domains.travel:domain\n")

        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(f)])

        assert result.exit_code == 1
        assert "Validation error" in result.output

    def test_not_a_domain(self, tmp_path: Path) -> None:
        f = tmp_path / "taxi.yaml"
        f.write_text(
            "domain: hyplan.domains.travel:TAXI\n"
            "goals: [{subject: alice, predicate: loc, value: park}]\n"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(f)])

        assert result.exit_code == 1
        assert "is not a Domain" in result.output

    def test_missing_file(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["validate", "/nonexistent.yaml"])

        assert result.exit_code != 0


class TestLogLevelOption:
    def test_accepts_level(self, problem_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--log-level", "ERROR", "validate", str(problem_file)])

        assert result.exit_code == 0

    def test_rejects_unknown_level(self, problem_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--log-level", "loud", "validate", str(problem_file)])

        assert result.exit_code == 2
