"""Tests for the in-process event bus."""

import uuid
from unittest.mock import MagicMock

import pytest

from app.core.events import EventBus, OrderCancelled, OrderDelivered


def _boom(session, event):
    raise RuntimeError("handler failed")


def test_handlers_run_in_registration_order():
    bus = EventBus()
    seen = []
    bus.subscribe(OrderDelivered, lambda s, e: seen.append("first"))
    bus.subscribe(OrderDelivered, lambda s, e: seen.append("second"))
    bus.subscribe(OrderCancelled, lambda s, e: seen.append("other"))

    bus.publish(MagicMock(), OrderDelivered(order_id=uuid.uuid4(), actor_id="system"))

    assert seen == ["first", "second"]


def test_best_effort_failure_is_swallowed():
    bus = EventBus()
    session = MagicMock()
    after = []
    bus.subscribe(OrderDelivered, _boom)
    bus.subscribe(OrderDelivered, lambda s, e: after.append(e))

    bus.publish(session, OrderDelivered(order_id=uuid.uuid4(), actor_id="system"))

    assert len(after) == 1
    session.rollback.assert_called_once()


def test_critical_failure_propagates():
    bus = EventBus()
    session = MagicMock()
    bus.subscribe(OrderDelivered, _boom, critical=True)

    with pytest.raises(RuntimeError):
        bus.publish(session, OrderDelivered(order_id=uuid.uuid4(), actor_id="system"))
    session.rollback.assert_called_once()
