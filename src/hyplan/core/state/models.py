"""State data models — facts exchanged between planning, execution and storage."""

from typing import Any

from pydantic import BaseModel


class Fact(BaseModel):
    """A single ``(subject, predicate, value)`` triple."""

    subject: str
    predicate: str
    value: Any = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.subject, self.predicate)


class StateSnapshot(BaseModel):
    """Serialisable form of a :class:`~hyplan.core.state.state.State` version."""

    version: int = 0
    facts: list[Fact] = []
