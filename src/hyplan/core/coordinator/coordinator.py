"""Hybrid Coordinator — drives a plan through planning, execution and repair.

A single control loop owns the plan and the State Store's current pointer.
Intents run concurrently behind an :class:`IntentDispatcher`; their
results come back through an :class:`asyncio.Queue` and are handled one at
a time, so node statuses and state versions are only ever written here.

Result handling:

* ``Completed`` — effects are committed exactly once (the ledger guards
  against duplicate delivery) and completion propagates up the tree.
* ``Rejected`` — the enclosing goal/task is repaired locally from the
  current state; completed work is preserved.
* ``Failed`` — the action is retried with a new attempt up to its declared
  ``retries``; after that :class:`IntentFailedError` surfaces.
* ``Cancelled`` — never changes state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from opentelemetry import trace
from pydantic import BaseModel

from hyplan.core.coordinator.events import EventBus, EventKind, Listener, PlanEvent
from hyplan.core.errors import PlanningFailure
from hyplan.core.planner.htn import HTNPlanner
from hyplan.core.planner.models import NodeKind, NodeStatus, Plan, PlanStatus, TaskNode
from hyplan.core.state.models import Fact
from hyplan.execution.errors import DispatcherUnavailableError, IntentFailedError
from hyplan.execution.ledger import IntentLedger
from hyplan.execution.models import (
    Cancelled,
    Completed,
    Failed,
    Intent,
    IntentStatus,
    Rejected,
    make_intent_id,
)
from hyplan.utils.telemetry import (
    ATTR_GOALS,
    ATTR_NODE_ID,
    ATTR_PLAN_ID,
    ATTR_PLAN_STATUS,
    ATTR_REASON,
    ATTR_REPLANS,
    get_tracer,
)

if TYPE_CHECKING:
    from hyplan.core.domain.domain import Domain
    from hyplan.core.domain.models import Goal, Multigoal
    from hyplan.core.state.state import State
    from hyplan.core.state.store import StateStore
    from hyplan.execution.dispatcher import IntentDispatcher
    from hyplan.execution.models import IntentResult

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

DEFAULT_MAX_REPLANS = 10


@dataclass
class _ResultMessage:
    intent: Intent
    result: IntentResult


@dataclass
class _InterruptMessage:
    reason: str
    node_id: int | None = None


_Message = _ResultMessage | _InterruptMessage


class ExecutionReport(BaseModel):
    """Outcome of running a plan to completion."""

    plan_id: str
    status: PlanStatus
    replans: int = 0
    state_version: int = 0
    facts: list[Fact] = []
    intents: list[Intent] = []
    events: list[PlanEvent] = []

    def fact(self, subject: str, predicate: str, default: Any = None) -> Any:
        for f in self.facts:
            if f.subject == subject and f.predicate == predicate:
                return f.value
        return default


class Coordinator:
    """Plans, dispatches and repairs one plan at a time.

    Usage::

        store = StateStore(initial_state)
        ledger = IntentLedger()
        executor = LocalExecutor(domain, store, ledger)
        coordinator = Coordinator(executor, store=store, ledger=ledger)

        plan = coordinator.plan(domain, goals=[Goal(subject="alex", predicate="loc", value="park")])
        report = await coordinator.run(plan)
    """

    def __init__(
        self,
        dispatcher: IntentDispatcher,
        *,
        store: StateStore,
        ledger: IntentLedger | None = None,
        planner: HTNPlanner | None = None,
        max_replans: int = DEFAULT_MAX_REPLANS,
        listeners: list[Listener] | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.store = store
        self.ledger = ledger if ledger is not None else IntentLedger()
        self.planner = planner or HTNPlanner()
        self.max_replans = max_replans
        self.events = EventBus(listeners)
        self._queue: asyncio.Queue[_Message] | None = None
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._to_cancel: list[str] = []

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        domain: Domain,
        state: State | None = None,
        goals: Sequence[Goal | Multigoal | tuple[Any, ...]] = (),
    ) -> Plan:
        """Decompose *goals*, freeze the network and schedule every action.

        *state* defaults to the store's current state.

        Raises:
            PlanningFailure: If no decomposition exists.
        """
        state = state if state is not None else self.store.current
        plan_id = uuid4().hex[:12]
        with _tracer.start_as_current_span("hyplan.coordinator.plan") as span:
            span.set_attribute(ATTR_PLAN_ID, plan_id)
            span.set_attribute(ATTR_GOALS, len(goals))
            self._publish(EventKind.PLAN_STARTED, plan_id, data={"goals": len(goals)})
            try:
                plan = self.planner.decompose(domain, state, goals, plan_id=plan_id)
            except PlanningFailure as exc:
                self._publish(EventKind.PLAN_FAILED, plan_id, reason=exc.reason)
                raise
            self._schedule(plan)
        return plan

    def replan(self, plan: Plan, failed_node_id: int, reason: str) -> Plan:
        """Locally repair the goal/task enclosing *failed_node_id*.

        Non-completed descendants of the repair target are cancelled and
        their constraints retracted; the target is re-decomposed from the
        current state.  If that fails the repair escalates to the next
        ancestor, up to the root.

        Raises:
            PlanningFailure: If the replan budget is spent or the root
                cannot be repaired.
        """
        with _tracer.start_as_current_span("hyplan.coordinator.replan") as span:
            span.set_attribute(ATTR_PLAN_ID, plan.id)
            span.set_attribute(ATTR_NODE_ID, failed_node_id)
            span.set_attribute(ATTR_REASON, reason)

            if plan.replans >= self.max_replans:
                message = f"replan limit of {self.max_replans} reached ({reason})"
                self._fail(plan, message, node_id=failed_node_id)
                raise PlanningFailure(message, node_id=failed_node_id)

            plan.replans += 1
            plan.status = PlanStatus.REPLANNING
            self._publish(EventKind.REPLAN_TRIGGERED, plan.id, node_id=failed_node_id, reason=reason)
            plan.network.reopen()

            failed = plan.node(failed_node_id)
            target = plan.repair_target(failed_node_id)
            if target is None:
                # A root action has nothing to re-decompose: try it again.
                failed.status = NodeStatus.PENDING
            while target is not None:
                self._retract(plan, target)
                try:
                    self.planner.repair(plan, target.id, self.store.current)
                    plan.expected_state = plan.project(self.store.current)
                    break
                except PlanningFailure as exc:
                    logger.warning("Repair of %s failed: %s", target.label, exc.reason)
                    target = plan.repair_target(target.parent) if target.parent is not None else None
                    if target is None:
                        plan.network.freeze()
                        message = f"cannot repair plan after node {failed_node_id}: {reason}"
                        self._fail(plan, message, node_id=failed_node_id)
                        raise PlanningFailure(message, node_id=failed_node_id) from exc

            self._schedule(plan)
            span.set_attribute(ATTR_REPLANS, plan.replans)
        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, plan: Plan) -> AsyncIterator[Intent]:
        """Dispatch the plan's actions, yielding each intent as it is sent.

        Raises:
            PlanningFailure: If a repair fails at the root.
            IntentFailedError: If an action exhausts its retries.
        """
        if plan.status is not PlanStatus.SCHEDULED:
            raise ValueError(f"Plan {plan.id} is {plan.status.value}, expected scheduled")

        queue: asyncio.Queue[_Message] = asyncio.Queue()
        self._queue = queue
        plan.status = PlanStatus.EXECUTING
        span = _tracer.start_span("hyplan.coordinator.execute")
        span.set_attribute(ATTR_PLAN_ID, plan.id)
        try:
            while True:
                for node in plan.ready():
                    with trace.use_span(span):
                        intent = self._dispatch(plan, node, queue)
                    yield intent

                if plan.is_complete():
                    with trace.use_span(span):
                        self._complete(plan)
                    break

                if not self._in_flight:
                    message = "no action is ready and none is in flight"
                    with trace.use_span(span):
                        self._fail(plan, message)
                    raise PlanningFailure(message)

                queued = await queue.get()
                with trace.use_span(span):
                    await self._handle(plan, queued)
                if plan.status is PlanStatus.SCHEDULED:
                    plan.status = PlanStatus.EXECUTING
        finally:
            await self._shutdown()
            span.set_attribute(ATTR_PLAN_STATUS, plan.status.value)
            span.set_attribute(ATTR_REPLANS, plan.replans)
            span.end()

    async def run(self, plan: Plan) -> ExecutionReport:
        """Drain :meth:`execute` and report the outcome."""
        async for _intent in self.execute(plan):
            pass
        return self.report(plan)

    async def run_problem(
        self,
        domain: Domain,
        goals: Sequence[Goal | Multigoal | tuple[Any, ...]],
        state: State | None = None,
    ) -> ExecutionReport:
        """Plan and execute in one call."""
        return await self.run(self.plan(domain, state, goals))

    async def interrupt(self, reason: str, node_id: int | None = None) -> None:
        """Request a replan of *node_id* (or every unfinished root) while executing.

        In-flight intents of the affected subtree are cancelled first.
        """
        if self._queue is None:
            raise RuntimeError("No plan is executing")
        await self._queue.put(_InterruptMessage(reason=reason, node_id=node_id))

    def report(self, plan: Plan) -> ExecutionReport:
        current = self.store.current
        return ExecutionReport(
            plan_id=plan.id,
            status=plan.status,
            replans=plan.replans,
            state_version=current.version,
            facts=current.facts(),
            intents=[i for i in self.ledger.intents() if i.plan_id == plan.id],
            events=[e for e in self.events.history if e.plan_id == plan.id],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, plan: Plan, node: TaskNode, queue: asyncio.Queue[_Message]) -> Intent:
        spec = plan.domain.get_action(node.name)
        node.attempt += 1
        earliest, latest = plan.start_bounds(node.id)
        intent = Intent(
            id=make_intent_id(plan.id, node.id, node.attempt),
            plan_id=plan.id,
            node_id=node.id,
            attempt=node.attempt,
            action=node.name,
            args=node.args,
            agent=node.agent,
            preconditions=tuple(spec.expected_facts(node.args)),
            duration=node.duration or 0.0,
            earliest_start=earliest,
            latest_start=latest,
        )
        self.ledger.record(intent)
        node.status = NodeStatus.EXECUTING
        self._in_flight[intent.id] = asyncio.create_task(
            self._submit(intent, queue), name=f"intent-{intent.id}"
        )
        logger.debug("Dispatched %s as %s", intent.label, intent.id)
        return intent

    async def _submit(self, intent: Intent, queue: asyncio.Queue[_Message]) -> None:
        try:
            result: IntentResult = await self.dispatcher.submit(intent)
        except DispatcherUnavailableError as exc:
            result = Failed(intent_id=intent.id, error=exc.reason)
        except Exception as exc:
            logger.exception("Dispatcher raised while submitting %s", intent.id)
            result = Failed(intent_id=intent.id, error=f"{type(exc).__name__}: {exc}")
        await queue.put(_ResultMessage(intent=intent, result=result))

    async def _handle(self, plan: Plan, message: _Message) -> None:
        if isinstance(message, _InterruptMessage):
            await self._interrupt(plan, message)
            return

        intent, result = message.intent, message.result
        self._in_flight.pop(intent.id, None)
        node = plan.node(intent.node_id)
        if intent.attempt != node.attempt or node.status is not NodeStatus.EXECUTING:
            logger.debug("Discarding %s result of superseded intent %s", result.kind, intent.id)
            return

        if isinstance(result, Completed):
            self._on_completed(plan, node, intent, result)
        elif isinstance(result, Rejected):
            await self._on_rejected(plan, node, intent, result.reason)
        elif isinstance(result, Failed):
            self._on_failed(plan, node, intent, result)
        elif isinstance(result, Cancelled):
            self.ledger.mark(intent.id, IntentStatus.CANCELLED)
            node.status = NodeStatus.CANCELLED
            await self._repair(plan, node.id, result.reason or "cancelled by executor")

    def _on_completed(self, plan: Plan, node: TaskNode, intent: Intent, result: Completed) -> None:
        if self.ledger.is_completed(intent.id):
            return
        if result.effects:
            self.store.apply(result.effects)
        self.ledger.mark(intent.id, IntentStatus.COMPLETED)
        node.status = NodeStatus.COMPLETED
        self._publish(
            EventKind.NODE_COMPLETED,
            plan.id,
            node_id=node.id,
            data={"label": node.label, "state_version": self.store.version},
        )
        plan.propagate_completion(node.id)

    async def _on_rejected(self, plan: Plan, node: TaskNode, intent: Intent, reason: str) -> None:
        self.ledger.mark(intent.id, IntentStatus.REJECTED)
        node.status = NodeStatus.REJECTED
        node.reason = reason
        self._publish(
            EventKind.NODE_REJECTED, plan.id, node_id=node.id, reason=reason, data={"label": node.label}
        )
        await self._repair(plan, node.id, reason)

    def _on_failed(self, plan: Plan, node: TaskNode, intent: Intent, result: Failed) -> None:
        self.ledger.mark(intent.id, IntentStatus.FAILED)
        node.reason = result.error
        retries = plan.domain.get_action(node.name).retries
        if node.attempt <= retries:
            logger.warning(
                "Intent %s failed (%s); retrying (%d/%d)",
                intent.id,
                result.error,
                node.attempt,
                retries,
            )
            node.status = NodeStatus.SCHEDULED
            return
        node.status = NodeStatus.FAILED
        self._fail(plan, f"{node.label} failed: {result.error}", node_id=node.id)
        raise IntentFailedError(node.id, result.error, attempts=node.attempt)

    async def _interrupt(self, plan: Plan, message: _InterruptMessage) -> None:
        if message.node_id is not None:
            targets = [message.node_id]
        else:
            targets = list(plan.roots)
        for node_id in targets:
            node = plan.node(node_id)
            if not node.live or node.status is NodeStatus.COMPLETED:
                continue
            for sub_id in plan.subtree(node_id):
                sub = plan.node(sub_id)
                if sub.kind is NodeKind.ACTION and sub.status is NodeStatus.EXECUTING:
                    sub.status = NodeStatus.CANCELLED
                    self._to_cancel.append(make_intent_id(plan.id, sub.id, sub.attempt))
            await self._flush_cancellations()
            await self._repair(plan, node_id, message.reason)

    async def _repair(self, plan: Plan, node_id: int, reason: str) -> None:
        try:
            self.replan(plan, node_id, reason)
        finally:
            await self._flush_cancellations()

    def _retract(self, plan: Plan, target: TaskNode) -> None:
        """Cancel the non-completed descendants of *target* and drop their timing."""
        owners: list[int] = []
        for node_id in plan.subtree(target.id)[1:]:
            node = plan.node(node_id)
            if node.status is NodeStatus.COMPLETED:
                continue
            if node.status is NodeStatus.EXECUTING:
                self._to_cancel.append(make_intent_id(plan.id, node.id, node.attempt))
            if node.live:
                node.status = NodeStatus.CANCELLED
            owners.append(node_id)
        removed = plan.network.retract(owners)
        target.status = NodeStatus.PENDING
        target.method = None
        logger.debug(
            "Retracted %d node(s) and %d constraint(s) under %s", len(owners), removed, target.label
        )

    async def _flush_cancellations(self) -> None:
        while self._to_cancel:
            intent_id = self._to_cancel.pop(0)
            self.ledger.mark(intent_id, IntentStatus.CANCELLED)
            try:
                await self.dispatcher.cancel(intent_id)
            except DispatcherUnavailableError as exc:
                logger.warning("Could not cancel %s: %s", intent_id, exc.reason)

    async def _shutdown(self) -> None:
        pending = dict(self._in_flight)
        self._in_flight.clear()
        for intent_id in pending:
            self.ledger.mark(intent_id, IntentStatus.CANCELLED)
            try:
                await self.dispatcher.cancel(intent_id)
            except DispatcherUnavailableError as exc:
                logger.warning("Could not cancel %s: %s", intent_id, exc.reason)
        for task in pending.values():
            task.cancel()
        if pending:
            await asyncio.gather(*pending.values(), return_exceptions=True)
        self._to_cancel.clear()
        self._queue = None

    def _schedule(self, plan: Plan) -> None:
        plan.network.freeze()
        plan.settle()
        for node in plan.schedule():
            if node.status is not NodeStatus.PENDING:
                continue
            node.status = NodeStatus.SCHEDULED
            earliest, latest = plan.start_bounds(node.id)
            self._publish(
                EventKind.NODE_SCHEDULED,
                plan.id,
                node_id=node.id,
                data={
                    "label": node.label,
                    "agent": node.agent,
                    "earliest_start": earliest,
                    "latest_start": latest,
                },
            )
        plan.status = PlanStatus.SCHEDULED

    def _complete(self, plan: Plan) -> None:
        plan.settle()
        plan.status = PlanStatus.COMPLETED
        self._publish(
            EventKind.PLAN_COMPLETED,
            plan.id,
            data={"state_version": self.store.version, "replans": plan.replans},
        )

    def _fail(self, plan: Plan, reason: str, *, node_id: int | None = None) -> None:
        plan.status = PlanStatus.FAILED
        self._publish(EventKind.PLAN_FAILED, plan.id, node_id=node_id, reason=reason)

    def _publish(
        self,
        kind: EventKind,
        plan_id: str,
        *,
        node_id: int | None = None,
        reason: str = "",
        data: dict[str, Any] | None = None,
    ) -> None:
        self.events.publish(
            PlanEvent(kind=kind, plan_id=plan_id, node_id=node_id, reason=reason, data=data or {})
        )
