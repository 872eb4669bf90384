"""Domain definition models — actions, methods, goal methods and (multi)goals.

Domains are *data* handed to the planner: each primitive action declares
its preconditions, effects and a duration formula; each method declares
when it applies and which subtasks it expands into.  Declarative pieces
(:class:`Condition` lists, static subtask lists) use ``$param``
placeholders which are bound to the call's arguments, the same
``string.Template`` syntax the rest of the code base uses for templating.
A placeholder that makes up the *whole* string is replaced by the bound
value itself, so non-string arguments (coordinates, numbers) survive.

Example::

    walk = ActionSpec(
        name="walk",
        params=["person", "src", "dst"],
        preconditions=[Condition(subject="$person", predicate="loc", value="$src")],
        effects=[Condition(subject="$person", predicate="loc", value="$dst")],
        duration="PT5S",
    )
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from string import Template
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from hyplan.core.state.models import Fact
from hyplan.core.state.state import FactKey, State, freeze_value
from hyplan.core.temporal.units import to_duration

_WHOLE_PLACEHOLDER = re.compile(r"^\$(?:(\w+)|\{(\w+)\})$")


def bind(value: Any, bindings: Mapping[str, Any]) -> Any:
    """Substitute ``$name`` placeholders in *value* from *bindings*."""
    if isinstance(value, str):
        whole = _WHOLE_PLACEHOLDER.match(value)
        if whole:
            name = whole.group(1) or whole.group(2)
            return bindings.get(name, value)
        return Template(value).safe_substitute({k: str(v) for k, v in bindings.items()})
    if isinstance(value, (list, tuple)):
        return tuple(bind(v, bindings) for v in cast("list[Any]", value))
    return value


class Goal(BaseModel):
    """A desired predicate value: ``state[subject, predicate] == value``.

    ``deadline`` (seconds after the plan origin) bounds when the goal must
    be achieved.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    predicate: str
    value: Any = None
    deadline: float | None = None

    @field_validator("value", mode="before")
    @classmethod
    def freeze_goal_value(cls, value: Any) -> Any:
        return freeze_value(value)

    def holds_in(self, state: State) -> bool:
        return state.get(self.subject, self.predicate) == self.value

    @property
    def signature(self) -> tuple[Any, ...]:
        return ("goal", self.predicate, self.subject, self.value)

    def __str__(self) -> str:
        return f"{self.subject}.{self.predicate} = {self.value!r}"


class Multigoal(BaseModel):
    """A conjunction of goals that must all hold in the same state.

    Achieving the goals one by one is not enough: a later goal may undo an
    earlier one, so a multigoal is verified as a whole once its method's
    subtasks have run.
    """

    model_config = ConfigDict(frozen=True)

    goals: tuple[Goal, ...]
    name: str = "multigoal"
    deadline: float | None = None

    @field_validator("goals")
    @classmethod
    def require_goals(cls, goals: tuple[Goal, ...]) -> tuple[Goal, ...]:
        if not goals:
            raise ValueError("a multigoal needs at least one goal")
        return goals

    def holds_in(self, state: State) -> bool:
        return all(g.holds_in(state) for g in self.goals)

    def unsatisfied(self, state: State) -> list[Goal]:
        return [g for g in self.goals if not g.holds_in(state)]

    @property
    def signature(self) -> tuple[Any, ...]:
        return ("multigoal", self.name, tuple(g.signature for g in self.goals))

    def __str__(self) -> str:
        return f"{self.name}[{'; '.join(str(g) for g in self.goals)}]"


class Condition(BaseModel):
    """A templated fact used for declarative preconditions and effects."""

    subject: str
    predicate: str
    value: Any = None

    def bind(self, bindings: Mapping[str, Any]) -> Fact:
        return Fact(
            subject=str(bind(self.subject, bindings)),
            predicate=str(bind(self.predicate, bindings)),
            value=freeze_value(bind(self.value, bindings)),
        )


ActionCallable = Callable[..., Any]


class _Spec(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    params: list[str] = []
    description: str = ""

    def bindings(self, args: tuple[Any, ...]) -> dict[str, Any]:
        if len(args) != len(self.params):
            raise ValueError(
                f"{self.name} expects {len(self.params)} argument(s), got {len(args)}"
            )
        return dict(zip(self.params, args))


class ActionSpec(_Spec):
    """A primitive, directly executable action.

    * ``preconditions`` — :class:`Condition` templates and/or callables
      ``(state, *args) -> bool``.
    * ``effects`` — :class:`Condition` templates, or a callable
      ``(state, *args) -> {(subject, predicate): value}``.
    * ``duration`` — seconds (number, numeric string or ISO-8601) or a
      formula ``(state, *args) -> seconds``.
    * ``agent`` — name of the parameter holding the target agent
      (defaults to the first parameter).
    * ``retries`` — how many times a ``Failed`` execution may be retried.
    * ``execute`` — optional runtime hook ``(state, *args)`` invoked by
      executors just before effects are committed.
    """

    preconditions: list[Condition | ActionCallable] = []
    effects: list[Condition] | ActionCallable = []
    duration: Any = 0
    agent: str | None = None
    retries: int = 0
    execute: ActionCallable | None = None

    @model_validator(mode="after")
    def validate_spec(self) -> ActionSpec:
        if not callable(self.duration):
            to_duration(self.duration)
        if self.agent is not None and self.agent not in self.params:
            msg = f"action {self.name!r} agent parameter {self.agent!r} is not a parameter"
            raise ValueError(msg)
        if self.retries < 0:
            raise ValueError("retries must be non-negative")
        return self

    def agent_for(self, args: tuple[Any, ...]) -> str | None:
        """Return the target agent of a call with *args*."""
        bindings = self.bindings(args)
        if self.agent is not None:
            return str(bindings[self.agent])
        return str(args[0]) if args else None

    def expected_facts(self, args: tuple[Any, ...]) -> list[Fact]:
        """Bind the declarative preconditions into concrete facts."""
        bindings = self.bindings(args)
        return [c.bind(bindings) for c in self.preconditions if isinstance(c, Condition)]

    def check(self, state: State, args: tuple[Any, ...]) -> str | None:
        """Return ``None`` if the action is applicable, else the reason it is not."""
        bindings = self.bindings(args)
        for pre in self.preconditions:
            if isinstance(pre, Condition):
                fact = pre.bind(bindings)
                actual = state.get(fact.subject, fact.predicate)
                if actual != fact.value:
                    return (
                        f"{fact.subject}.{fact.predicate} is {actual!r}, "
                        f"expected {fact.value!r}"
                    )
            elif not pre(state, *args):
                label = getattr(pre, "__name__", "precondition")
                return f"{label} does not hold for {self.name}{args!r}"
        return None

    def effects_for(self, state: State, args: tuple[Any, ...]) -> dict[FactKey, Any]:
        """Return the facts this action writes when applied in *state*."""
        if callable(self.effects):
            produced = self.effects(state, *args) or {}
            return dict(cast("Mapping[FactKey, Any]", produced))
        bindings = self.bindings(args)
        facts = [c.bind(bindings) for c in self.effects]
        return {f.key: f.value for f in facts}

    def duration_for(self, state: State, args: tuple[Any, ...]) -> int:
        """Evaluate the duration formula and normalise it to ticks."""
        raw = self.duration(state, *args) if callable(self.duration) else self.duration
        return to_duration(raw)


class MethodSpec(_Spec):
    """A decomposition of a compound task into ordered subtasks.

    ``subtasks`` is either a static list of subtask templates or a callable
    ``(state, *args) -> list | None``; ``None`` means "not applicable".
    """

    task: str
    applicable: ActionCallable | None = None
    subtasks: list[Any] | ActionCallable = []
    priority: int = 0

    def expand(self, state: State, args: tuple[Any, ...]) -> list[Any] | None:
        bindings = self.bindings(args)
        if self.applicable is not None and not self.applicable(state, *args):
            return None
        if callable(self.subtasks):
            result = self.subtasks(state, *args)
            return None if result is None else list(cast("list[Any]", result))
        return [_bind_subtask(item, bindings) for item in self.subtasks]


class GoalMethodSpec(_Spec):
    """A strategy for achieving one goal predicate.

    Callables receive ``(state, subject, value)``; static subtask templates
    may use ``$subject`` and ``$value``.
    """

    predicate: str
    params: list[str] = ["subject", "value"]
    applicable: ActionCallable | None = None
    subtasks: list[Any] | ActionCallable = []
    priority: int = 0

    def expand(self, state: State, goal: Goal) -> list[Any] | None:
        if self.applicable is not None and not self.applicable(state, goal.subject, goal.value):
            return None
        if callable(self.subtasks):
            result = self.subtasks(state, goal.subject, goal.value)
            return None if result is None else list(cast("list[Any]", result))
        bindings = {"subject": goal.subject, "value": goal.value}
        return [_bind_subtask(item, bindings) for item in self.subtasks]


class MultigoalMethodSpec(_Spec):
    """A strategy for achieving a :class:`Multigoal`.

    Callables receive ``(state, multigoal)`` and usually return the goals
    still to achieve, in a workable order.
    """

    params: list[str] = ["multigoal"]
    applicable: ActionCallable | None = None
    subtasks: list[Any] | ActionCallable = []
    priority: int = 0

    def expand(self, state: State, multigoal: Multigoal) -> list[Any] | None:
        if self.applicable is not None and not self.applicable(state, multigoal):
            return None
        if callable(self.subtasks):
            result = self.subtasks(state, multigoal)
            return None if result is None else list(cast("list[Any]", result))
        return list(self.subtasks)


def split_multigoal(state: State, multigoal: Multigoal) -> list[Any]:
    """Default multigoal strategy: the unsatisfied goals in declared order."""
    return list(multigoal.unsatisfied(state))


def _bind_subtask(item: Any, bindings: Mapping[str, Any]) -> Any:
    if isinstance(item, Multigoal):
        return item.model_copy(
            update={"goals": tuple(_bind_subtask(g, bindings) for g in item.goals)}
        )
    if isinstance(item, Goal):
        return Goal(
            subject=str(bind(item.subject, bindings)),
            predicate=item.predicate,
            value=bind(item.value, bindings),
            deadline=item.deadline,
        )
    return bind(item, bindings)
