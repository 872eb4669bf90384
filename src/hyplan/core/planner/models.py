"""Plan data model — an arena of task nodes paired with one Temporal Network.

Nodes reference each other and their time points by integer index only;
there are no object back-pointers between the node arena and the network.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from hyplan.core.domain.models import Goal, Multigoal  # noqa: TC001
from hyplan.core.state.state import State  # noqa: TC001

if TYPE_CHECKING:
    from hyplan.core.domain.domain import Domain
    from hyplan.core.temporal.network import TemporalNetwork


class NodeKind(str, Enum):
    """What a task node stands for."""

    GOAL = "goal"
    MULTIGOAL = "multigoal"
    TASK = "task"
    ACTION = "action"


class NodeStatus(str, Enum):
    """Lifecycle of a task node."""

    PENDING = "pending"
    EXPANDED = "expanded"
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"


RETIRED_STATUSES = frozenset({NodeStatus.REJECTED, NodeStatus.CANCELLED})
"""Nodes in these states were superseded and no longer belong to the live plan."""


class PlanStatus(str, Enum):
    """Coordinator-level state machine over a plan."""

    PLANNING = "planning"
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    REPLANNING = "replanning"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskNode(BaseModel):
    """A goal, compound task or primitive action in the plan forest."""

    model_config = ConfigDict(validate_assignment=False)

    id: int
    kind: NodeKind
    name: str
    args: tuple[Any, ...] = ()
    goal: Goal | Multigoal | None = None
    parent: int | None = None
    children: list[int] = []
    status: NodeStatus = NodeStatus.PENDING
    start: int = -1
    end: int = -1
    method: str | None = None
    agent: str | None = None
    duration: float | None = None
    writes: tuple[tuple[str, str], ...] = ()
    attempt: int = 0
    reason: str = ""

    @property
    def live(self) -> bool:
        return self.status not in RETIRED_STATUSES

    @property
    def signature(self) -> tuple[Any, ...]:
        """Identity of the *task* this node decomposes, independent of node id."""
        if self.goal is not None:
            return self.goal.signature
        return (self.kind.value, self.name, self.args)

    @property
    def label(self) -> str:
        if self.goal is not None:
            return str(self.goal)
        rendered = ", ".join(repr(a) for a in self.args)
        return f"{self.name}({rendered})"


class Plan:
    """An ordered forest of :class:`TaskNode` objects and its Temporal Network.

    A plan is owned by exactly one coordinator at a time; nothing in it is
    shared process-wide.
    """

    def __init__(
        self,
        domain: Domain,
        network: TemporalNetwork,
        *,
        goals: list[Any],
        initial_state: State,
        plan_id: str | None = None,
    ) -> None:
        self.id = plan_id or uuid4().hex[:12]
        self.domain = domain
        self.network = network
        self.goals = goals
        self.initial_state = initial_state
        self.expected_state = initial_state
        self.nodes: list[TaskNode] = []
        self.roots: list[int] = []
        self.status = PlanStatus.PLANNING
        self.replans = 0

    # ------------------------------------------------------------------
    # Arena
    # ------------------------------------------------------------------

    def node(self, node_id: int) -> TaskNode:
        return self.nodes[node_id]

    def add_node(
        self,
        kind: NodeKind,
        name: str,
        *,
        args: tuple[Any, ...] = (),
        goal: Goal | Multigoal | None = None,
        parent: int | None = None,
        agent: str | None = None,
    ) -> TaskNode:
        """Append a node to the arena and link it under *parent* (or as a root)."""
        node = TaskNode(
            id=len(self.nodes),
            kind=kind,
            name=name,
            args=args,
            goal=goal,
            parent=parent,
            agent=agent,
        )
        self.nodes.append(node)
        if parent is None:
            self.roots.append(node.id)
        else:
            self.nodes[parent].children.append(node.id)
        return node

    def truncate(self, size: int) -> None:
        """Drop every node with id ``>= size`` (backtracking)."""
        if size >= len(self.nodes):
            return
        del self.nodes[size:]
        self.roots = [r for r in self.roots if r < size]
        for node in self.nodes:
            if node.children and node.children[-1] >= size:
                node.children = [c for c in node.children if c < size]

    def subtree(self, node_id: int) -> list[int]:
        """Return *node_id* and all its descendants, pre-order."""
        order: list[int] = []
        stack = [node_id]
        while stack:
            current = stack.pop()
            order.append(current)
            stack.extend(reversed(self.nodes[current].children))
        return order

    def ancestors(self, node_id: int) -> list[int]:
        """Return the ids from the parent of *node_id* up to its root."""
        chain: list[int] = []
        parent = self.nodes[node_id].parent
        while parent is not None:
            chain.append(parent)
            parent = self.nodes[parent].parent
        return chain

    def previous_sibling(self, node_id: int) -> TaskNode | None:
        """Return the last live sibling created before *node_id* under the same parent."""
        node = self.nodes[node_id]
        if node.parent is None:
            return None
        for sibling_id in reversed(self.nodes[node.parent].children):
            if sibling_id < node_id and self.nodes[sibling_id].live:
                return self.nodes[sibling_id]
        return None

    def last_action_for(self, agent: str, *, before: int) -> TaskNode | None:
        """Return the most recently created live action targeting *agent*."""
        for node in reversed(self.nodes[:before]):
            if node.kind is NodeKind.ACTION and node.agent == agent and node.live:
                return node
        return None

    def last_writer(self, key: tuple[str, str], *, before: int) -> TaskNode | None:
        """Return the most recently created live action whose effects set *key*."""
        for node in reversed(self.nodes[:before]):
            if node.kind is NodeKind.ACTION and node.live and key in node.writes:
                return node
        return None

    def repair_target(self, node_id: int) -> TaskNode | None:
        """Return the nearest goal/task node at or above *node_id*."""
        node = self.nodes[node_id]
        if node.kind is not NodeKind.ACTION:
            return node
        for ancestor in self.ancestors(node_id):
            if self.nodes[ancestor].kind is not NodeKind.ACTION:
                return self.nodes[ancestor]
        return None

    # ------------------------------------------------------------------
    # Scheduling views
    # ------------------------------------------------------------------

    def actions(self, *, live_only: bool = True) -> list[TaskNode]:
        return [
            n
            for n in self.nodes
            if n.kind is NodeKind.ACTION and (n.live or not live_only)
        ]

    def start_bounds(self, node_id: int) -> tuple[float, float]:
        return self.network.bounds_of(self.nodes[node_id].start)

    def end_bounds(self, node_id: int) -> tuple[float, float]:
        return self.network.bounds_of(self.nodes[node_id].end)

    def schedule(self) -> list[TaskNode]:
        """Live actions by earliest start bound, ties broken by insertion order."""
        return sorted(self.actions(), key=lambda n: (self.start_bounds(n.id)[0], n.id))

    def project(self, state: State) -> State:
        """Apply the effects of every live, unfinished action to *state* in schedule order."""
        for node in self.schedule():
            if node.status is NodeStatus.COMPLETED:
                continue
            spec = self.domain.get_action(node.name)
            state = state.with_facts(spec.effects_for(state, node.args))
        return state

    def predecessors(self, node_id: int) -> list[int]:
        """Return the live actions that must complete before *node_id* may start.

        An action ``a`` precedes ``x`` when the network entails
        ``a.end <= x.start``.  Zero-length actions forced to coincide are
        ordered by insertion so the relation never deadlocks.
        """
        node = self.nodes[node_id]
        net = self.network
        result: list[int] = []
        for other in self.actions():
            if other.id == node_id:
                continue
            if not net.entails_before(other.end, node.start):
                continue
            if other.id < node_id or not net.entails_before(node.end, other.start):
                result.append(other.id)
        return result

    def ready(self) -> list[TaskNode]:
        """Scheduled actions whose predecessors have all completed, in dispatch order."""
        return [
            n
            for n in self.schedule()
            if n.status is NodeStatus.SCHEDULED
            and all(self.nodes[p].status is NodeStatus.COMPLETED for p in self.predecessors(n.id))
        ]

    def is_complete(self) -> bool:
        """``True`` when every live action has completed."""
        return all(n.status is NodeStatus.COMPLETED for n in self.actions())

    def propagate_completion(self, node_id: int) -> list[int]:
        """Mark ancestors completed once all their live children are; return them."""
        completed: list[int] = []
        for ancestor_id in self.ancestors(node_id):
            ancestor = self.nodes[ancestor_id]
            if ancestor.status is not NodeStatus.EXPANDED:
                break
            children = [self.nodes[c] for c in ancestor.children if self.nodes[c].live]
            if not all(c.status is NodeStatus.COMPLETED for c in children):
                break
            ancestor.status = NodeStatus.COMPLETED
            completed.append(ancestor_id)
        return completed

    def settle(self) -> list[int]:
        """Complete every expanded node whose live children are all completed.

        Handles goals that already held at planning time (no children).
        """
        completed: list[int] = []
        for node in reversed(self.nodes):
            if node.status is not NodeStatus.EXPANDED:
                continue
            children = [self.nodes[c] for c in node.children if self.nodes[c].live]
            if all(c.status is NodeStatus.COMPLETED for c in children):
                node.status = NodeStatus.COMPLETED
                completed.append(node.id)
        return completed

    def to_dict(self) -> dict[str, Any]:
        """Summarise the plan for display and JSON output."""
        rows: list[dict[str, Any]] = []
        for node in self.schedule():
            start = self.start_bounds(node.id)
            end = self.end_bounds(node.id)
            rows.append(
                {
                    "id": node.id,
                    "action": node.label,
                    "agent": node.agent,
                    "status": node.status.value,
                    "start": list(start),
                    "end": list(end),
                    "duration": node.duration,
                    "after": self.predecessors(node.id),
                }
            )
        return {
            "id": self.id,
            "status": self.status.value,
            "replans": self.replans,
            "nodes": len(self.nodes),
            "schedule": rows,
        }
