"""Intent and intent-result models exchanged across the dispatcher boundary.

Results are a tagged union on ``kind`` so they survive a JSON round trip
through an external job queue::

    result = parse_result({"kind": "rejected", "intent_id": "p:3#1", "reason": "target_gone"})
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from hyplan.core.state.models import Fact


def make_intent_id(plan_id: str, node_id: int, attempt: int) -> str:
    """Derive the stable intent id ``"<plan id>:<node id>#<attempt>"``."""
    return f"{plan_id}:{node_id}#{attempt}"


class Intent(BaseModel):
    """Immutable request to execute one primitive action.

    ``preconditions`` are the facts the planner expected to hold; executors
    re-check them against the live state before acting.  Timing fields are
    the planned bounds in seconds after the plan origin.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    plan_id: str
    node_id: int
    attempt: int = 1
    action: str
    args: tuple[Any, ...] = ()
    agent: str | None = None
    preconditions: tuple[Fact, ...] = ()
    duration: float = 0.0
    earliest_start: float = 0.0
    latest_start: float = float("inf")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def label(self) -> str:
        rendered = ", ".join(repr(a) for a in self.args)
        return f"{self.action}({rendered})"


class Completed(BaseModel):
    """The action ran; ``effects`` are the facts to commit.

    ``duplicate`` marks a re-submission of an intent that had already
    completed: it carries no effects.
    """

    kind: Literal["completed"] = "completed"
    intent_id: str
    effects: list[Fact] = []
    duplicate: bool = False


class Rejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    intent_id: str
    reason: str


class Failed(BaseModel):
    kind: Literal["failed"] = "failed"
    intent_id: str
    error: str


class Cancelled(BaseModel):
    kind: Literal["cancelled"] = "cancelled"
    intent_id: str
    reason: str = ""


IntentResult = Annotated[Completed | Rejected | Failed | Cancelled, Field(discriminator="kind")]

_RESULT_ADAPTER: TypeAdapter[Completed | Rejected | Failed | Cancelled] = TypeAdapter(IntentResult)


def parse_result(data: dict[str, Any] | str | bytes) -> Completed | Rejected | Failed | Cancelled:
    """Validate a serialised result (dict or JSON) into its variant."""
    if isinstance(data, (str, bytes)):
        return _RESULT_ADAPTER.validate_json(data)
    return _RESULT_ADAPTER.validate_python(data)


class IntentStatus(str, Enum):
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {IntentStatus.COMPLETED, IntentStatus.REJECTED, IntentStatus.FAILED, IntentStatus.CANCELLED}
)
