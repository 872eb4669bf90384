"""Domain — the registry of actions, task methods, goal and multigoal methods.

Domains can be assembled from spec objects or with decorators::

    domain = Domain("travel")

    @domain.action(params=["agent", "target"], duration=travel_time)
    def move(state, agent, target):
        return {(agent, "position"): target}

    @domain.method("deliver", params=["agent", "item", "dest"])
    def deliver_by_hand(state, agent, item, dest):
        return [("pickup", agent, item), Goal(subject=agent, predicate="position", value=dest)]

    @domain.goal_method("position")
    def go_there(state, agent, target):
        return [("move", agent, target)]

    @domain.multigoal_method()
    def nearest_first(state, multigoal):
        return sorted(multigoal.unsatisfied(state), key=lambda g: distance_to(state, g))

Methods are tried in priority order (lower first), then declaration order.
A domain without multigoal methods splits a multigoal into its unsatisfied
goals.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, cast

from hyplan.core.domain.models import (
    ActionSpec,
    Condition,
    Goal,
    GoalMethodSpec,
    MethodSpec,
    Multigoal,
    MultigoalMethodSpec,
)
from hyplan.core.errors import DomainValidationError

logger = logging.getLogger(__name__)


class Domain:
    """A named collection of planning operators."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self.actions: dict[str, ActionSpec] = {}
        self.methods: dict[str, list[MethodSpec]] = {}
        self.goal_methods: dict[str, list[GoalMethodSpec]] = {}
        self.multigoal_methods: list[MultigoalMethodSpec] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_action(self, spec: ActionSpec) -> ActionSpec:
        if spec.name in self.actions:
            raise DomainValidationError(f"Duplicate action: {spec.name}")
        self.actions[spec.name] = spec
        return spec

    def add_method(self, spec: MethodSpec) -> MethodSpec:
        existing = self.methods.setdefault(spec.task, [])
        if any(m.name == spec.name for m in existing):
            raise DomainValidationError(f"Duplicate method {spec.name!r} for task {spec.task!r}")
        existing.append(spec)
        return spec

    def add_goal_method(self, spec: GoalMethodSpec) -> GoalMethodSpec:
        existing = self.goal_methods.setdefault(spec.predicate, [])
        if any(m.name == spec.name for m in existing):
            raise DomainValidationError(
                f"Duplicate goal method {spec.name!r} for predicate {spec.predicate!r}"
            )
        existing.append(spec)
        return spec

    def add_multigoal_method(self, spec: MultigoalMethodSpec) -> MultigoalMethodSpec:
        if any(m.name == spec.name for m in self.multigoal_methods):
            raise DomainValidationError(f"Duplicate multigoal method {spec.name!r}")
        self.multigoal_methods.append(spec)
        return spec

    def action(
        self,
        *,
        params: Sequence[str] = (),
        preconditions: Sequence[Condition | Callable[..., bool]] = (),
        duration: Any = 0,
        agent: str | None = None,
        retries: int = 0,
        execute: Callable[..., Any] | None = None,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function as an action's effect formula."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_action(
                ActionSpec(
                    name=name or fn.__name__,
                    params=list(params),
                    preconditions=list(preconditions),
                    effects=fn,
                    duration=duration,
                    agent=agent,
                    retries=retries,
                    execute=execute,
                    description=(fn.__doc__ or "").strip(),
                )
            )
            return fn

        return decorator

    def method(
        self,
        task: str,
        *,
        params: Sequence[str] = (),
        priority: int = 0,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function as a subtask generator for *task*."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_method(
                MethodSpec(
                    name=name or fn.__name__,
                    task=task,
                    params=list(params),
                    subtasks=fn,
                    priority=priority,
                    description=(fn.__doc__ or "").strip(),
                )
            )
            return fn

        return decorator

    def goal_method(
        self,
        predicate: str,
        *,
        priority: int = 0,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function as a strategy for *predicate* goals."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_goal_method(
                GoalMethodSpec(
                    name=name or fn.__name__,
                    predicate=predicate,
                    subtasks=fn,
                    priority=priority,
                    description=(fn.__doc__ or "").strip(),
                )
            )
            return fn

        return decorator

    def multigoal_method(
        self,
        *,
        priority: int = 0,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function ``(state, multigoal)`` as a multigoal strategy."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_multigoal_method(
                MultigoalMethodSpec(
                    name=name or fn.__name__,
                    subtasks=fn,
                    priority=priority,
                    description=(fn.__doc__ or "").strip(),
                )
            )
            return fn

        return decorator

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def is_action(self, name: str) -> bool:
        return name in self.actions

    def is_task(self, name: str) -> bool:
        return name in self.methods

    def get_action(self, name: str) -> ActionSpec:
        try:
            return self.actions[name]
        except KeyError:
            raise KeyError(f"Unknown action: {name}") from None

    def methods_for(self, task: str) -> list[MethodSpec]:
        """Return the methods for *task* in priority order (stable)."""
        return sorted(self.methods.get(task, []), key=lambda m: m.priority)

    def goal_methods_for(self, predicate: str) -> list[GoalMethodSpec]:
        """Return the goal methods for *predicate* in priority order (stable)."""
        return sorted(self.goal_methods.get(predicate, []), key=lambda m: m.priority)

    def multigoal_methods_for(self) -> list[MultigoalMethodSpec]:
        """Return the multigoal methods in priority order (stable)."""
        return sorted(self.multigoal_methods, key=lambda m: m.priority)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check static references between operators.

        Callable subtask generators can only be checked at planning time;
        static subtask lists are checked here.

        Raises:
            DomainValidationError: Listing every problem found.
        """
        problems: list[str] = []
        overlap = set(self.actions) & set(self.methods)
        for name in sorted(overlap):
            problems.append(f"{name!r} is both an action and a compound task")

        static: list[tuple[str, list[Any]]] = []
        for task, methods in self.methods.items():
            static.extend(
                (f"method {m.name!r} of {task!r}", m.subtasks)
                for m in methods
                if not callable(m.subtasks)
            )
        for predicate, goal_methods in self.goal_methods.items():
            static.extend(
                (f"goal method {m.name!r} of {predicate!r}", m.subtasks)
                for m in goal_methods
                if not callable(m.subtasks)
            )
        static.extend(
            (f"multigoal method {m.name!r}", m.subtasks)
            for m in self.multigoal_methods
            if not callable(m.subtasks)
        )

        for owner, subtasks in static:
            for item in cast("list[Any]", subtasks):
                problem = self._check_subtask(item)
                if problem:
                    problems.append(f"{owner}: {problem}")

        if problems:
            raise DomainValidationError("; ".join(problems))
        logger.debug(
            "Domain %s valid: %d actions, %d tasks, %d goal predicates",
            self.name,
            len(self.actions),
            len(self.methods),
            len(self.goal_methods),
        )

    def _check_subtask(self, item: Any) -> str | None:
        if isinstance(item, Multigoal):
            missing = sorted({g.predicate for g in item.goals} - set(self.goal_methods))
            if missing:
                return f"no goal method for predicate(s) {', '.join(map(repr, missing))}"
            return None
        if isinstance(item, Goal):
            if item.predicate not in self.goal_methods:
                return f"no goal method for predicate {item.predicate!r}"
            return None
        if not isinstance(item, (tuple, list)) or not item:
            return f"malformed subtask {item!r}"
        head = cast("Sequence[Any]", item)[0]
        if not isinstance(head, str) or not (self.is_action(head) or self.is_task(head)):
            return f"unknown task {head!r}"
        if self.is_action(head) and len(item) - 1 != len(self.actions[head].params):
            return f"{head!r} expects {len(self.actions[head].params)} argument(s)"
        return None
