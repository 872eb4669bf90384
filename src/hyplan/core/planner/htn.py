"""HTN decomposition planner with a blacklist of failed (task, state) pairs.

Search is a depth-first walk expressed with generators: solving a subtree
yields every end state it can reach, one at a time, and rolls back its own
arena nodes and temporal constraints before trying the next alternative.
Consumers that need a different continuation simply ask the generator for
its next value, which is how backtracking crosses subtree boundaries.

Temporal structure created for every node:

* ``end - start = duration`` for actions, ``end - start >= 0`` otherwise;
* a child lies within its parent's interval;
* a method's subtasks run in order (previous live sibling ends first);
* actions targeting the same agent never overlap (arena order);
* goal and multigoal deadlines bound the node's end relative to the origin.

A constraint that makes the network inconsistent is a *local* failure and
simply rejects that candidate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from hyplan.core.domain.domain import Domain
from hyplan.core.domain.models import Goal, Multigoal, split_multigoal
from hyplan.core.errors import DomainValidationError, PlanningFailure, TemporalInconsistencyError
from hyplan.core.planner.models import NodeKind, NodeStatus, Plan, TaskNode
from hyplan.core.state.state import State, freeze_value
from hyplan.core.temporal.network import (
    DEFAULT_FULL_RECOMPUTE_THRESHOLD,
    ORIGIN,
    NetworkSnapshot,
    TemporalNetwork,
)
from hyplan.core.temporal.units import INFINITY, from_ticks
from hyplan.utils.telemetry import (
    ATTR_BACKTRACKS,
    ATTR_BLACKLIST_SIZE,
    ATTR_EXPANSIONS,
    ATTR_GOALS,
    ATTR_NODE_ID,
    ATTR_NODES,
    ATTR_PLAN_ID,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_MAX_DEPTH = 64

BlacklistKey = tuple[tuple[Any, ...], frozenset[Any]]


class Blacklist:
    """Set of ``(task signature, state signature)`` pairs known to fail."""

    def __init__(self) -> None:
        self._entries: set[BlacklistKey] = set()

    def add(self, task: tuple[Any, ...], state: State) -> None:
        self._entries.add((task, state.signature()))

    def contains(self, task: tuple[Any, ...], state: State) -> bool:
        return (task, state.signature()) in self._entries

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class SearchStats:
    expansions: int = 0
    backtracks: int = 0
    pruned: int = 0
    # rejections caused by timing or the depth limit rather than by state
    context_failures: int = 0


@dataclass
class _Mark:
    size: int
    network: NetworkSnapshot


class HTNPlanner:
    """Decomposes goals and tasks into a temporally consistent plan.

    Args:
        max_depth: Deepest decomposition level explored before a branch is
            abandoned.
        full_recompute_threshold: Passed to every new
            :class:`~hyplan.core.temporal.network.TemporalNetwork`.
        horizon: Upper bound (seconds) on every time point.
    """

    def __init__(
        self,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        full_recompute_threshold: int = DEFAULT_FULL_RECOMPUTE_THRESHOLD,
        horizon: float = INFINITY,
    ) -> None:
        self.max_depth = max_depth
        self.full_recompute_threshold = full_recompute_threshold
        self.horizon = horizon
        self.blacklist = Blacklist()
        self.stats = SearchStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def decompose(
        self,
        domain: Domain,
        state: State,
        goals: Sequence[Goal | Multigoal | tuple[Any, ...]],
        *,
        plan_id: str | None = None,
    ) -> Plan:
        """Build a plan whose root nodes achieve *goals* from *state*.

        *goals* may mix :class:`Goal` and :class:`Multigoal` objects and task
        tuples ``(name, *args)``.  Roots are solved in order; only resource
        (agent) sequencing and shared state order them in time.  Every goal
        must still hold in the final state, otherwise search backtracks.

        Raises:
            PlanningFailure: If no decomposition exists.
            DomainValidationError: If a method produces an unknown subtask.
        """
        self.blacklist.clear()
        self.stats = SearchStats()
        network = TemporalNetwork(
            full_recompute_threshold=self.full_recompute_threshold,
            horizon=self.horizon,
        )
        plan = Plan(domain, network, goals=list(goals), initial_state=state, plan_id=plan_id)

        with _tracer.start_as_current_span("hyplan.planner.decompose") as span:
            span.set_attribute(ATTR_PLAN_ID, plan.id)
            span.set_attribute(ATTR_GOALS, len(plan.goals))
            final = next(
                (
                    end
                    for end in self._solve_all(plan, list(goals), None, state, 0)
                    if _achieves(plan.goals, end)
                ),
                None,
            )
            self._record(span, plan)

        if final is None:
            logger.info(
                "No decomposition for %d goal(s) after %d expansion(s)",
                len(plan.goals),
                self.stats.expansions,
            )
            raise PlanningFailure(f"no decomposition achieves {_describe(plan.goals)}")

        plan.expected_state = final
        logger.info(
            "Plan %s: %d node(s), %d action(s), %d expansion(s), %d backtrack(s)",
            plan.id,
            len(plan.nodes),
            len(plan.actions()),
            self.stats.expansions,
            self.stats.backtracks,
        )
        return plan

    def repair(self, plan: Plan, node_id: int, state: State) -> State:
        """Re-decompose goal/task *node_id* of *plan* from *state*, in place.

        Children of the node that are still live (completed work) are kept
        and new subtasks are sequenced after them.  The network must be open.

        Returns:
            The state the repaired subtree is expected to produce.

        Raises:
            PlanningFailure: If the node cannot be re-decomposed.
        """
        node = plan.node(node_id)
        if node.kind is NodeKind.ACTION:
            raise PlanningFailure(f"action {node.label} cannot be re-decomposed", node_id=node_id)

        self.blacklist.clear()
        self.stats = SearchStats()
        depth = len(plan.ancestors(node_id))
        with _tracer.start_as_current_span("hyplan.planner.repair") as span:
            span.set_attribute(ATTR_PLAN_ID, plan.id)
            span.set_attribute(ATTR_NODE_ID, node_id)
            final = next(self._expand(plan, node, state, depth), None)
            self._record(span, plan)

        if final is None:
            node.status = NodeStatus.FAILED
            raise PlanningFailure(f"cannot repair {node.label}", node_id=node_id)
        logger.info("Repaired node %d (%s) of plan %s", node_id, node.label, plan.id)
        return final

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _solve_all(
        self,
        plan: Plan,
        items: list[Any],
        parent: int | None,
        state: State,
        depth: int,
    ) -> Iterator[State]:
        """Solve *items* in order, threading state; yield each reachable end state."""
        if not items:
            yield state
            return
        head, rest = items[0], items[1:]
        for after in self._solve(plan, head, parent, state, depth):
            yield from self._solve_all(plan, rest, parent, after, depth)

    def _solve(
        self,
        plan: Plan,
        item: Any,
        parent: int | None,
        state: State,
        depth: int,
    ) -> Iterator[State]:
        if depth > self.max_depth:
            logger.debug("Depth limit %d reached at %r", self.max_depth, item)
            self.stats.context_failures += 1
            return

        kind, name, args, goal = _classify(plan.domain, item)
        mark = self._mark(plan)

        if kind is NodeKind.ACTION:
            spec = plan.domain.get_action(name)
            reason = spec.check(state, args)
            if reason is not None:
                logger.debug("Action %s%r not applicable: %s", name, args, reason)
                return
            effects = spec.effects_for(state, args)
            try:
                node = self._create(plan, kind, name, args, None, parent, state)
                node.writes = tuple(effects)
                self._link_causes(plan, node)
            except TemporalInconsistencyError as exc:
                logger.debug("Action %s%r rejected by the network: %s", name, args, exc)
                self.stats.context_failures += 1
                self._rollback(plan, mark)
                return
            yield state.with_facts(effects)
            self._rollback(plan, mark)
            return

        try:
            node = self._create(plan, kind, name, args, goal, parent, state)
        except TemporalInconsistencyError as exc:
            logger.debug("%s rejected by the network: %s", item, exc)
            self.stats.context_failures += 1
            self._rollback(plan, mark)
            return
        yield from self._expand(plan, node, state, depth)
        self._rollback(plan, mark)

    def _expand(self, plan: Plan, node: TaskNode, state: State, depth: int) -> Iterator[State]:
        """Try every method of a goal/task node; yield each verified end state."""
        if self.blacklist.contains(node.signature, state):
            self.stats.pruned += 1
            logger.debug("Blacklisted: %s", node.label)
            return

        if node.goal is not None and node.goal.holds_in(state):
            node.status = NodeStatus.EXPANDED
            node.method = None
            yield state
            return

        produced = False
        context_failures = self.stats.context_failures
        mark = self._mark(plan)
        for method_name, subtasks in self._candidates(plan.domain, node, state):
            node.method = method_name
            node.status = NodeStatus.EXPANDED
            self.stats.expansions += 1
            logger.debug("Expanding %s with %s", node.label, method_name)
            for after in self._solve_all(plan, subtasks, node.id, state, depth + 1):
                if node.goal is not None and not node.goal.holds_in(after):
                    logger.debug(
                        "Method %s finished without achieving %s", method_name, node.goal
                    )
                    continue
                produced = True
                node.method = method_name
                node.status = NodeStatus.EXPANDED
                yield after
            self._rollback(plan, mark)
            self.stats.backtracks += 1

        node.method = None
        node.status = NodeStatus.PENDING
        if produced:
            return
        # A subtree that lost to a deadline, an agent chain or the depth
        # limit may succeed elsewhere with the same state.
        if self.stats.context_failures != context_failures:
            logger.debug("Not blacklisting %s: failure depended on timing or depth", node.label)
            return
        self.blacklist.add(node.signature, state)

    def _candidates(
        self, domain: Domain, node: TaskNode, state: State
    ) -> Iterator[tuple[str, list[Any]]]:
        if isinstance(node.goal, Multigoal):
            methods = domain.multigoal_methods_for()
            if not methods:
                yield "split_multigoal", split_multigoal(state, node.goal)
                return
            for mm in methods:
                subtasks = mm.expand(state, node.goal)
                if subtasks is not None:
                    yield mm.name, subtasks
            return
        if node.goal is not None:
            for gm in domain.goal_methods_for(node.goal.predicate):
                subtasks = gm.expand(state, node.goal)
                if subtasks is not None:
                    yield gm.name, subtasks
            return
        for method in domain.methods_for(node.name):
            subtasks = method.expand(state, node.args)
            if subtasks is not None:
                yield method.name, subtasks

    # ------------------------------------------------------------------
    # Arena + network bookkeeping
    # ------------------------------------------------------------------

    def _create(
        self,
        plan: Plan,
        kind: NodeKind,
        name: str,
        args: tuple[Any, ...],
        goal: Goal | Multigoal | None,
        parent: int | None,
        state: State,
    ) -> TaskNode:
        """Append a node and its temporal structure; may raise TemporalInconsistencyError."""
        agent: str | None = None
        duration: int | None = None
        if kind is NodeKind.ACTION:
            spec = plan.domain.get_action(name)
            agent = spec.agent_for(args)
            duration = spec.duration_for(state, args)

        node = plan.add_node(kind, name, args=args, goal=goal, parent=parent, agent=agent)
        net = plan.network
        owner = node.id
        node.start = net.add_time_point(owner=owner)
        node.end = net.add_time_point(owner=owner)

        if duration is not None:
            node.duration = from_ticks(duration)
            seconds = node.duration
            net.add_constraint(node.start, node.end, seconds, seconds, owner=owner)
        else:
            net.add_constraint(node.start, node.end, 0, INFINITY, owner=owner)

        if parent is not None:
            container = plan.node(parent)
            net.add_constraint(container.start, node.start, 0, INFINITY, owner=owner)
            net.add_constraint(node.end, container.end, 0, INFINITY, owner=owner)
            previous = plan.previous_sibling(node.id)
            if previous is not None:
                net.add_constraint(previous.end, node.start, 0, INFINITY, owner=owner)

        if goal is not None and goal.deadline is not None:
            net.add_constraint(ORIGIN, node.end, 0, goal.deadline, owner=owner)

        if agent is not None:
            busy = plan.last_action_for(agent, before=node.id)
            if busy is not None:
                net.add_constraint(busy.end, node.start, 0, INFINITY, owner=owner)
        return node

    def _link_causes(self, plan: Plan, node: TaskNode) -> None:
        """Order *node* after the actions that established its declared preconditions."""
        spec = plan.domain.get_action(node.name)
        linked: set[int] = set()
        for fact in spec.expected_facts(node.args):
            writer = plan.last_writer(fact.key, before=node.id)
            if writer is None or writer.id in linked:
                continue
            linked.add(writer.id)
            plan.network.add_constraint(writer.end, node.start, 0, INFINITY, owner=node.id)

    def _mark(self, plan: Plan) -> _Mark:
        return _Mark(size=len(plan.nodes), network=plan.network.snapshot())

    def _rollback(self, plan: Plan, mark: _Mark) -> None:
        plan.truncate(mark.size)
        plan.network.restore(mark.network)

    def _record(self, span: Any, plan: Plan) -> None:
        span.set_attribute(ATTR_NODES, len(plan.nodes))
        span.set_attribute(ATTR_EXPANSIONS, self.stats.expansions)
        span.set_attribute(ATTR_BACKTRACKS, self.stats.backtracks)
        span.set_attribute(ATTR_BLACKLIST_SIZE, len(self.blacklist))


def _classify(
    domain: Domain, item: Any
) -> tuple[NodeKind, str, tuple[Any, ...], Goal | Multigoal | None]:
    if isinstance(item, Multigoal):
        return NodeKind.MULTIGOAL, item.name, (), item
    if isinstance(item, Goal):
        return NodeKind.GOAL, item.predicate, (item.subject, item.value), item
    if isinstance(item, (tuple, list)) and item:
        parts = freeze_value(item)
        name = parts[0]
        if isinstance(name, str):
            if domain.is_action(name):
                return NodeKind.ACTION, name, parts[1:], None
            if domain.is_task(name):
                return NodeKind.TASK, name, parts[1:], None
        raise DomainValidationError(f"unknown task {name!r} in {item!r}")
    raise DomainValidationError(f"malformed subtask {item!r}")


def _describe(goals: Sequence[Any]) -> str:
    rendered = [str(g) if isinstance(g, (Goal, Multigoal)) else repr(tuple(g)) for g in goals]
    return ", ".join(rendered) or "no goals"


def _achieves(goals: Sequence[Any], state: State) -> bool:
    """Re-check every top-level goal together; later roots may undo earlier ones."""
    for goal in goals:
        if isinstance(goal, (Goal, Multigoal)) and not goal.holds_in(state):
            logger.debug("Final state no longer satisfies %s", goal)
            return False
    return True
