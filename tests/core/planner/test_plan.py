"""Tests for the Plan arena and its scheduling views."""

from __future__ import annotations

import math
from typing import Any

from hyplan.core.domain.domain import Domain
from hyplan.core.domain.models import Goal
from hyplan.core.planner.models import NodeKind, NodeStatus, Plan, PlanStatus
from hyplan.core.state.state import State
from hyplan.core.temporal.network import ORIGIN, TemporalNetwork


def _plan() -> Plan:
    return Plan(Domain("test"), TemporalNetwork(), goals=[], initial_state=State())


def _timed_action(plan: Plan, name: str, *, parent: int | None = None, agent: str = "a") -> int:
    node = plan.add_node(NodeKind.ACTION, name, parent=parent, agent=agent)
    node.start = plan.network.add_time_point(owner=node.id)
    node.end = plan.network.add_time_point(owner=node.id)
    plan.network.add_constraint(node.start, node.end, 1, 1, owner=node.id)
    return node.id


class TestArena:
    def test_add_node_links_parent(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "deliver")
        child = plan.add_node(NodeKind.ACTION, "drive", args=("t1",), parent=root.id)

        assert plan.roots == [root.id]
        assert plan.node(root.id).children == [child.id]
        assert plan.ancestors(child.id) == [root.id]
        assert child.label == "drive('t1')"

    def test_truncate_drops_newer_nodes(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "deliver")
        plan.add_node(NodeKind.ACTION, "drive", parent=root.id)
        plan.add_node(NodeKind.TASK, "other")

        plan.truncate(1)

        assert len(plan.nodes) == 1
        assert plan.roots == [0]
        assert plan.node(0).children == []

    def test_subtree_is_preorder(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "root")
        left = plan.add_node(NodeKind.TASK, "left", parent=root.id)
        plan.add_node(NodeKind.ACTION, "right", parent=root.id)
        plan.add_node(NodeKind.ACTION, "leaf", parent=left.id)

        names = [plan.node(i).name for i in plan.subtree(root.id)]
        assert names == ["root", "left", "leaf", "right"]

    def test_previous_sibling_skips_retired(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "root")
        first = plan.add_node(NodeKind.ACTION, "first", parent=root.id)
        second = plan.add_node(NodeKind.ACTION, "second", parent=root.id)
        third = plan.add_node(NodeKind.ACTION, "third", parent=root.id)
        second.status = NodeStatus.REJECTED

        assert plan.previous_sibling(third.id) is first
        assert plan.previous_sibling(first.id) is None
        assert plan.previous_sibling(root.id) is None

    def test_repair_target(self) -> None:
        plan = _plan()
        goal = plan.add_node(
            NodeKind.GOAL, "loc", goal=Goal(subject="alex", predicate="loc", value="park")
        )
        action = plan.add_node(NodeKind.ACTION, "walk", parent=goal.id)
        lone = plan.add_node(NodeKind.ACTION, "wave")

        assert plan.repair_target(action.id) is goal
        assert plan.repair_target(goal.id) is goal
        assert plan.repair_target(lone.id) is None

    def test_signature_ignores_node_id(self) -> None:
        plan = _plan()
        a = plan.add_node(NodeKind.TASK, "travel", args=("alex", "park"))
        b = plan.add_node(NodeKind.TASK, "travel", args=("alex", "park"))
        assert a.signature == b.signature == ("task", "travel", ("alex", "park"))


class TestScheduling:
    def test_schedule_and_predecessors(self) -> None:
        plan = _plan()
        first = _timed_action(plan, "first")
        second = _timed_action(plan, "second")
        other = _timed_action(plan, "other", agent="b")
        net = plan.network
        net.add_constraint(plan.node(first).end, plan.node(second).start, 0, math.inf)
        net.add_constraint(ORIGIN, plan.node(other).start, 0.5, 0.5)

        assert [n.id for n in plan.schedule()] == [first, other, second]
        assert plan.predecessors(second) == [first]
        assert plan.predecessors(other) == []

    def test_ready_waits_for_predecessors(self) -> None:
        plan = _plan()
        first = _timed_action(plan, "first")
        second = _timed_action(plan, "second")
        plan.network.add_constraint(plan.node(first).end, plan.node(second).start, 0, math.inf)
        for node in plan.actions():
            node.status = NodeStatus.SCHEDULED

        assert [n.id for n in plan.ready()] == [first]

        plan.node(first).status = NodeStatus.COMPLETED
        assert [n.id for n in plan.ready()] == [second]

    def test_zero_length_ties_use_insertion_order(self) -> None:
        plan = _plan()
        a = plan.add_node(NodeKind.ACTION, "a")
        b = plan.add_node(NodeKind.ACTION, "b")
        net = plan.network
        for node in (a, b):
            node.start = net.add_time_point(owner=node.id)
            node.end = net.add_time_point(owner=node.id)
            net.add_constraint(ORIGIN, node.start, 0, 0)
            net.add_constraint(node.start, node.end, 0, 0)

        assert plan.predecessors(b.id) == [a.id]
        assert plan.predecessors(a.id) == []

    def test_completion_propagates_to_ancestors(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "root")
        first = plan.add_node(NodeKind.ACTION, "first", parent=root.id)
        second = plan.add_node(NodeKind.ACTION, "second", parent=root.id)
        root.status = NodeStatus.EXPANDED
        first.status = NodeStatus.COMPLETED

        assert plan.propagate_completion(first.id) == []

        second.status = NodeStatus.COMPLETED
        assert plan.propagate_completion(second.id) == [root.id]
        assert root.status is NodeStatus.COMPLETED

    def test_retired_children_do_not_block_completion(self) -> None:
        plan = _plan()
        root = plan.add_node(NodeKind.TASK, "root")
        dropped = plan.add_node(NodeKind.ACTION, "dropped", parent=root.id)
        done = plan.add_node(NodeKind.ACTION, "done", parent=root.id)
        root.status = NodeStatus.EXPANDED
        dropped.status = NodeStatus.CANCELLED
        done.status = NodeStatus.COMPLETED

        assert plan.settle() == [root.id]
        assert plan.is_complete()

    def test_to_dict(self) -> None:
        plan = _plan()
        first = _timed_action(plan, "first")
        plan.node(first).duration = 1.0

        data = plan.to_dict()

        assert data["status"] == PlanStatus.PLANNING.value
        assert data["nodes"] == 1
        (row,) = data["schedule"]
        assert row["action"] == "first()"
        assert row["start"] == [0.0, math.inf]
        assert row["end"] == [1.0, math.inf]
        assert row["after"] == []

    def test_project_applies_unfinished_actions_in_schedule_order(self) -> None:
        domain = Domain("walls")

        @domain.action(params=[])
        def sand(state: State) -> dict[Any, Any]:
            return {("wall", "sanded"): True}

        @domain.action(params=[])
        def paint_red(state: State) -> dict[Any, Any]:
            return {("wall", "color"): "red"}

        @domain.action(params=[])
        def paint_blue(state: State) -> dict[Any, Any]:
            return {("wall", "color"): "blue"}

        plan = Plan(domain, TemporalNetwork(), goals=[], initial_state=State())
        sanded = _timed_action(plan, "sand")
        blue = _timed_action(plan, "paint_blue")
        red = _timed_action(plan, "paint_red")
        plan.network.add_constraint(plan.node(red).end, plan.node(blue).start, 0, math.inf)
        plan.node(sanded).status = NodeStatus.COMPLETED

        projected = plan.project(State())

        assert projected.get("wall", "color") == "blue"
        assert projected.get("wall", "sanded") is None
