"""Shared fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

PROBLEM_YAML = """\
version: "1"
name: travel-demo
domain: hyplan.domains.travel:domain
state:
  alice: {type: person, loc: home_a, cash: 20}
  bob: {type: person, loc: home_b, cash: 15}
  taxi1: {type: taxi, loc: taxi_lot}
  home_a: {type: location, "dist:park": 8}
  home_b: {type: location, "dist:park": 2}
  park: {type: location}
goals:
  - {subject: alice, predicate: loc, value: park}
  - {subject: bob, predicate: loc, value: park}
"""


@pytest.fixture()
def problem_file(tmp_path: Path) -> Path:
    f = tmp_path / "problem.yaml"
    f.write_text(PROBLEM_YAML)
    return f
