"""Intent execution protocol — idempotent, rejectable intents and their dispatchers."""

from hyplan.execution.dispatcher import IntentDispatcher, RetryingDispatcher
from hyplan.execution.errors import (
    DispatcherUnavailableError,
    ExecutionError,
    IntentFailedError,
    IntentRejectedError,
)
from hyplan.execution.ledger import IntentLedger
from hyplan.execution.local import LocalExecutor
from hyplan.execution.models import (
    Cancelled,
    Completed,
    Failed,
    Intent,
    IntentResult,
    IntentStatus,
    Rejected,
    make_intent_id,
    parse_result,
)

__all__ = [
    "Cancelled",
    "Completed",
    "DispatcherUnavailableError",
    "ExecutionError",
    "Failed",
    "Intent",
    "IntentDispatcher",
    "IntentFailedError",
    "IntentLedger",
    "IntentRejectedError",
    "IntentResult",
    "IntentStatus",
    "LocalExecutor",
    "Rejected",
    "RetryingDispatcher",
    "make_intent_id",
    "parse_result",
]
