from datetime import datetime

from core.events import BUDGET_EDITED, BUDGET_LOADED, Event, EventBus


def test_event_creation():
    event = Event(
        name=BUDGET_EDITED,
        ts=datetime.now().isoformat(),
        payload={"category_id": 8, "budget": 60000},
    )
    assert event.name == BUDGET_EDITED
    assert event.payload["budget"] == 60000


def test_publish_without_subscribers_returns_empty():
    assert EventBus().publish(BUDGET_LOADED, {"month": "2026-10"}) == []


def test_multiple_subscribers_same_event():
    bus = EventBus()
    seen = []

    def first(event: Event, payload: dict) -> dict:
        seen.append(("first", payload["month"]))
        return {"handler": 1}

    def second(event: Event, payload: dict) -> dict:
        seen.append(("second", event.name))
        return {"handler": 2}

    bus.subscribe(BUDGET_LOADED, first)
    bus.subscribe(BUDGET_LOADED, second)
    results = bus.publish(BUDGET_LOADED, {"month": "2026-10"})

    assert results == [{"handler": 1}, {"handler": 2}]
    assert seen == [("first", "2026-10"), ("second", BUDGET_LOADED)]


def test_unsubscribe():
    bus = EventBus()

    def handler(event: Event, payload: dict) -> dict:
        return {"called": True}

    bus.subscribe(BUDGET_EDITED, handler)
    bus.unsubscribe(BUDGET_EDITED, handler)
    bus.unsubscribe(BUDGET_LOADED, handler)
    assert bus.publish(BUDGET_EDITED, {}) == []
