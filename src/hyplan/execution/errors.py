"""Shared error types for the intent execution layer."""


class ExecutionError(Exception):
    """Base error for all execution-layer failures."""

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(reason)


class IntentRejectedError(ExecutionError):
    """An intent's preconditions do not hold at execution time.

    Runtime hooks raise this to reject an intent; the coordinator recovers
    by replanning locally.
    """

    def __init__(self, reason: str, *, intent_id: str | None = None) -> None:
        self.intent_id = intent_id
        super().__init__(reason)


class IntentFailedError(ExecutionError):
    """An intent kept failing after its retries were exhausted."""

    def __init__(self, node_id: int, error: str, *, attempts: int = 1) -> None:
        self.node_id = node_id
        self.error = error
        self.attempts = attempts
        super().__init__(
            f"Intent for node {node_id} failed after {attempts} attempt(s)"
            + (f": {error}" if error else "")
        )


class DispatcherUnavailableError(ExecutionError):
    """The dispatcher boundary could not be reached."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Dispatcher unavailable" + (f": {detail}" if detail else ""))
