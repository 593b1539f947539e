"""Tests for driver dispatch: fleet selection, broadcast and claim arbitration."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.actor import Actor
from app.core.auth import actor_for
from app.core.errors import AlreadyTaken, DomainError, DriverNotEligible, InvalidTransition
from app.models.driver import Driver
from app.services import fsm
from app.services.dispatch_service import (
    EXCLUSIVE_FLEET,
    GENERAL_FLEET,
    collect_tokens,
    select_targets,
)


def _driver_actor(driver) -> Actor:
    return Actor(role="driver", id=str(driver.id))


@pytest.fixture
def searching_order(services, session, place_order, merchant_user):
    """An order that has reached searching_driver."""
    order = place_order()
    actor = actor_for(merchant_user)
    for status in (fsm.CONFIRMED, fsm.PREPARING, fsm.READY):
        order = services.orders.transition(session, order.id, status, actor)
    assert order.status == fsm.SEARCHING_DRIVER
    return order


class TestFleetSelection:
    def test_exclusive_fleet_wins(self):
        merchant_id = uuid.uuid4()
        own = Driver(id=uuid.uuid4(), assigned_restaurant_id=merchant_id)
        general = Driver(id=uuid.uuid4())

        fleet, targets = select_targets([general, own], merchant_id)

        assert fleet == EXCLUSIVE_FLEET
        assert targets == [own]

    def test_general_fleet_excludes_other_restaurants(self):
        general = Driver(id=uuid.uuid4())
        elsewhere = Driver(id=uuid.uuid4(), assigned_restaurant_id=uuid.uuid4())

        fleet, targets = select_targets([general, elsewhere], uuid.uuid4())

        assert fleet == GENERAL_FLEET
        assert targets == [general]

    def test_tokens_are_deduplicated(self):
        a = Driver(id=uuid.uuid4(), fcm_tokens=["t1", "t2"])
        b = Driver(id=uuid.uuid4(), fcm_tokens=["t2", "", "t3"])
        assert collect_tokens([a, b]) == ["t1", "t2", "t3"]


class TestBroadcast:
    def test_ready_order_goes_to_exclusive_fleet_only(
        self, services, session, place_order, merchant, merchant_user, make_driver, push
    ):
        make_driver(assigned_restaurant_id=merchant.id, fcm_tokens=["own"])
        make_driver(fcm_tokens=["general"])

        order = place_order()
        for status in (fsm.CONFIRMED, fsm.PREPARING, fsm.READY):
            services.orders.transition(session, order.id, status, actor_for(merchant_user))

        offer = push.calls[-1]
        assert offer["tokens"] == ["own"]
        assert offer["title"] == f"New order from {merchant.name}!"
        assert "25" in offer["body"]

    def test_ineligible_drivers_are_skipped(self, services, session, searching_order, make_driver):
        make_driver(is_online=False, fcm_tokens=["offline"])
        make_driver(is_blocked_due_to_cash=True, fcm_tokens=["cash"])
        make_driver(is_verified=False, fcm_tokens=["unverified"])
        make_driver(is_blocked=True, fcm_tokens=["blocked"])
        make_driver(is_available=False, fcm_tokens=["busy"])
        make_driver(fcm_tokens=["ok"])

        summary = services.dispatch.broadcast(session, searching_order)

        assert summary["fleet"] == GENERAL_FLEET
        assert summary["drivers"] == 1
        assert summary["tokens"] == 1
        assert summary["success_count"] == 1

    def test_nobody_to_notify_keeps_searching(self, services, session, searching_order, push):
        push.calls.clear()
        summary = services.dispatch.broadcast(session, searching_order)

        assert summary["tokens"] == 0
        assert push.calls == []
        order = services.orders.order_repo.refresh(session, searching_order.id)
        assert order.status == fsm.SEARCHING_DRIVER

    def test_rebroadcast_requires_waiting_order(self, services, session, place_order):
        order = place_order()
        with pytest.raises(DomainError):
            services.dispatch.rebroadcast(session, order.id)

    def test_sweep_rebroadcasts_stuck_orders(self, services, session, searching_order, driver, push):
        push.calls.clear()
        later = datetime.now(timezone.utc) + timedelta(minutes=15)

        assert services.dispatch.sweep_stuck_searches(session, now=later) == 1
        assert push.calls[-1]["data"]["orderId"] == str(searching_order.id)

        # clock restarted: nothing is stuck right after the sweep
        assert services.dispatch.sweep_stuck_searches(session, now=later) == 0

    def test_sweep_ignores_fresh_orders(self, services, session, searching_order):
        assert services.dispatch.sweep_stuck_searches(session) == 0


class TestClaim:
    def test_first_claim_wins(self, services, session, searching_order, make_driver):
        a = make_driver()
        b = make_driver()

        order = services.dispatch.accept_order(session, searching_order.id, _driver_actor(a))
        assert order.driver_id == a.id
        assert order.timestamps["assignedToDriverAt"] is not None

        with pytest.raises(AlreadyTaken) as exc:
            services.dispatch.accept_order(session, searching_order.id, _driver_actor(b))
        assert exc.value.detail["code"] == "already_taken"

        session.refresh(a)
        session.refresh(b)
        assert a.current_order_id == searching_order.id
        assert a.is_available is False
        assert b.current_order_id is None
        assert b.is_available is True

    def test_conditional_claim_has_one_winner(self, services, session, searching_order, make_driver):
        a = make_driver()
        b = make_driver()
        repo = services.orders.order_repo

        assert repo.claim(session, searching_order.id, {"driver_id": a.id, "status": fsm.ASSIGNED_TO_DRIVER})
        assert not repo.claim(
            session, searching_order.id, {"driver_id": b.id, "status": fsm.ASSIGNED_TO_DRIVER}
        )
        session.commit()

        assert repo.refresh(session, searching_order.id).driver_id == a.id

    def test_driver_from_other_restaurant_is_refused(self, services, session, searching_order, make_driver):
        other = make_driver(assigned_restaurant_id=uuid.uuid4())
        with pytest.raises(DriverNotEligible):
            services.dispatch.accept_order(session, searching_order.id, _driver_actor(other))

    def test_busy_driver_is_refused(self, services, session, searching_order, make_driver):
        busy = make_driver(current_order_id=uuid.uuid4(), is_available=False)
        with pytest.raises(DriverNotEligible):
            services.dispatch.accept_order(session, searching_order.id, _driver_actor(busy))

    def test_cash_blocked_driver_is_refused(self, services, session, searching_order, make_driver):
        blocked = make_driver(is_blocked_due_to_cash=True)
        with pytest.raises(DriverNotEligible):
            services.dispatch.accept_order(session, searching_order.id, _driver_actor(blocked))

    def test_order_not_yet_offered(self, services, session, place_order, driver):
        order = place_order()
        with pytest.raises(InvalidTransition):
            services.dispatch.accept_order(session, order.id, _driver_actor(driver))
