"""Tests for plan events and the EventBus."""

from __future__ import annotations

import logging

import pytest

from hyplan.core.coordinator.events import EventBus, EventKind, PlanEvent


def _event(kind: EventKind = EventKind.NODE_COMPLETED, **kwargs: object) -> PlanEvent:
    return PlanEvent(kind=kind, plan_id="p1", **kwargs)  # type: ignore[arg-type]


class TestPlanEvent:
    def test_describe(self) -> None:
        event = _event(
            EventKind.NODE_REJECTED,
            node_id=3,
            reason="target_gone",
            data={"label": "pickup('robot', 'box')"},
        )
        assert event.describe() == "node_rejected node=3 pickup('robot', 'box') (target_gone)"

    def test_describe_minimal(self) -> None:
        assert _event(EventKind.PLAN_STARTED).describe() == "plan_started"

    def test_serialises(self) -> None:
        data = _event(node_id=1).model_dump(mode="json")
        assert data["kind"] == "node_completed"
        assert data["plan_id"] == "p1"


class TestEventBus:
    def test_publish_records_history_and_notifies(self) -> None:
        received: list[PlanEvent] = []
        bus = EventBus([received.append])
        event = _event()

        bus.publish(event)

        assert bus.history == [event]
        assert received == [event]

    def test_unsubscribe(self) -> None:
        received: list[PlanEvent] = []
        bus = EventBus()
        unsubscribe = bus.subscribe(received.append)

        bus.publish(_event())
        unsubscribe()
        bus.publish(_event())
        unsubscribe()

        assert len(received) == 1
        assert len(bus.history) == 2

    def test_listener_errors_are_contained(self, caplog: pytest.LogCaptureFixture) -> None:
        def explode(event: PlanEvent) -> None:
            raise RuntimeError("boom")

        received: list[PlanEvent] = []
        bus = EventBus([explode, received.append])

        with caplog.at_level(logging.ERROR, logger="hyplan.core.coordinator.events"):
            bus.publish(_event())

        assert len(received) == 1
        assert "Event listener" in caplog.text

    @pytest.mark.parametrize(
        ("kind", "level"),
        [
            (EventKind.NODE_COMPLETED, logging.INFO),
            (EventKind.REPLAN_TRIGGERED, logging.WARNING),
            (EventKind.PLAN_FAILED, logging.ERROR),
        ],
    )
    def test_log_level_follows_kind(
        self, kind: EventKind, level: int, caplog: pytest.LogCaptureFixture
    ) -> None:
        bus = EventBus()
        with caplog.at_level(logging.INFO, logger="hyplan.core.coordinator.events"):
            bus.publish(_event(kind))

        (record,) = [r for r in caplog.records if r.name == "hyplan.core.coordinator.events"]
        assert record.levelno == level
