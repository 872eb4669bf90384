"""IntentLedger — the idempotency record shared by coordinator and executors."""

from __future__ import annotations

import logging

from hyplan.execution.models import TERMINAL_STATUSES, Intent, IntentStatus

logger = logging.getLogger(__name__)


class IntentLedger:
    """Maps intent ids to their latest known status.

    The coordinator records every dispatched intent and marks its outcome;
    executors consult the ledger so re-submitting an intent never applies
    its effects twice.
    """

    def __init__(self) -> None:
        self._intents: dict[str, Intent] = {}
        self._status: dict[str, IntentStatus] = {}

    def record(self, intent: Intent) -> None:
        """Register *intent* as dispatched (no-op if it is already known)."""
        if intent.id in self._intents:
            return
        self._intents[intent.id] = intent
        self._status[intent.id] = IntentStatus.DISPATCHED

    def mark(self, intent_id: str, status: IntentStatus) -> None:
        previous = self._status.get(intent_id)
        if previous in TERMINAL_STATUSES and previous is not status:
            logger.debug("Intent %s already %s; ignoring %s", intent_id, previous.value, status.value)
            return
        self._status[intent_id] = status

    def status(self, intent_id: str) -> IntentStatus | None:
        return self._status.get(intent_id)

    def get(self, intent_id: str) -> Intent:
        try:
            return self._intents[intent_id]
        except KeyError:
            raise KeyError(f"Unknown intent: {intent_id}") from None

    def is_completed(self, intent_id: str) -> bool:
        return self._status.get(intent_id) is IntentStatus.COMPLETED

    def intents(self) -> list[Intent]:
        """Return every recorded intent in dispatch order."""
        return list(self._intents.values())

    def __contains__(self, intent_id: object) -> bool:
        return intent_id in self._intents

    def __len__(self) -> int:
        return len(self._intents)
