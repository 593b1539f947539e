# app/services/dispatch_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlmodel import Session

from app.core.actor import Actor
from app.core.config import Settings
from app.core.errors import (
    AlreadyTaken,
    DomainError,
    DriverNotEligible,
    DriverNotFound,
    InvalidTransition,
    OrderNotFound,
)
from app.core.events import OrderReadyForDispatch
from app.core.push import PushClient
from app.models.driver import Driver
from app.models.order import Order
from app.repositories.cas import compare_and_set
from app.repositories.driver_repo import DriverRepository
from app.repositories.merchant_repo import MerchantRepository
from app.repositories.order_repo import OrderRepository
from app.services import fsm

logger = logging.getLogger(__name__)

EXCLUSIVE_FLEET = "exclusive"
GENERAL_FLEET = "general"


def select_targets(
    candidates: list[Driver],
    merchant_id: uuid.UUID,
) -> tuple[str, list[Driver]]:
    """
    Exclusivity-first fleet selection.

    - Any eligible driver of this merchant's exclusive fleet => only them.
    - Otherwise the general fleet (drivers with no assigned restaurant).
    - Drivers exclusive to another restaurant never see this order.
    """
    exclusive = [d for d in candidates if d.assigned_restaurant_id == merchant_id]
    if exclusive:
        return EXCLUSIVE_FLEET, exclusive
    return GENERAL_FLEET, [d for d in candidates if d.assigned_restaurant_id is None]


def collect_tokens(drivers: list[Driver]) -> list[str]:
    """Push tokens of all drivers, deduplicated, first-seen order kept."""
    seen: dict[str, None] = {}
    for driver in drivers:
        for token in driver.fcm_tokens or []:
            if token:
                seen.setdefault(token, None)
    return list(seen)


class DispatchService:
    """
    Driver dispatch.

    Responsibilities:
      - Broadcast an order entering searching_driver to the eligible fleet
      - Arbitrate concurrent claims: exactly one driver wins (conditional write)
      - Re-broadcast orders left waiting for a driver too long
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        driver_repo: DriverRepository,
        merchant_repo: MerchantRepository,
        push: PushClient,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.driver_repo = driver_repo
        self.merchant_repo = merchant_repo
        self.push = push
        self.settings = settings

    # ---- Broadcast ----

    def broadcast(self, session: Session, order: Order) -> dict[str, Any]:
        """
        Fan out one multicast offer for `order`.

        Never raises for delivery problems; an order with nobody to notify
        simply stays in searching_driver.
        """
        summary: dict[str, Any] = {
            "fleet": None,
            "drivers": 0,
            "tokens": 0,
            "success_count": 0,
            "failure_count": 0,
        }

        merchant = self.merchant_repo.get_by_id(session, order.merchant_id)
        if merchant is None:
            logger.warning(f"Broadcast skipped for order {order.id}: merchant not found")
            return summary

        candidates = self.driver_repo.list_dispatch_candidates(session)
        fleet, targets = select_targets(candidates, order.merchant_id)
        tokens = collect_tokens(targets)
        summary.update(fleet=fleet, drivers=len(targets), tokens=len(tokens))

        if not tokens:
            logger.warning(
                f"No reachable drivers for order {order.order_number} "
                f"({fleet} fleet, {len(targets)} eligible)"
            )
            return summary

        logger.info(f"Sending order {order.order_number} to {fleet.upper()} fleet")
        delivery_fee = order.totals.get("deliveryFee") or 0
        result = self.push.notify(
            tokens,
            title=f"New order from {merchant.name}!",
            body=f"Estimated earnings: ${delivery_fee} - tap to accept",
            data={"type": "order_searching", "orderId": str(order.id)},
        )
        summary.update(
            success_count=result.get("success_count", 0),
            failure_count=result.get("failure_count", 0),
        )
        logger.info(
            f"Broadcast sent to {len(tokens)} devices for order {order.order_number}. "
            f"Success: {summary['success_count']}, failed: {summary['failure_count']}"
        )
        return summary

    def handle_ready_for_dispatch(
        self,
        session: Session,
        event: OrderReadyForDispatch,
    ) -> None:
        order = self.order_repo.refresh(session, event.order_id)
        if order is None or order.status != fsm.SEARCHING_DRIVER:
            return
        self.broadcast(session, order)

    def rebroadcast(self, session: Session, order_id: uuid.UUID) -> dict[str, Any]:
        """Admin: push the offer again and restart the waiting clock."""
        order = self.order_repo.refresh(session, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status != fsm.SEARCHING_DRIVER or order.driver_id is not None:
            raise DomainError(f"Order is {order.status}, not waiting for a driver")

        self.order_repo.touch_search(session, order_id, datetime.now(timezone.utc))
        session.commit()
        return self.broadcast(session, self.order_repo.refresh(session, order_id))

    def sweep_stuck_searches(self, session: Session, now: datetime | None = None) -> int:
        """
        Re-broadcast every order that has waited for a driver longer than
        SEARCH_REBROADCAST_MINUTES. Returns how many were re-broadcast.
        """
        now = now or datetime.now(timezone.utc)
        threshold = now - timedelta(minutes=self.settings.SEARCH_REBROADCAST_MINUTES)

        count = 0
        for order in self.order_repo.list_stuck_searching(session, threshold):
            if not self.order_repo.touch_search(session, order.id, now):
                session.rollback()
                continue
            session.commit()
            try:
                self.broadcast(session, self.order_repo.refresh(session, order.id))
                count += 1
            except Exception as e:
                logger.warning(f"Re-broadcast failed for order {order.id}: {e}")
        if count:
            logger.info(f"Re-broadcast {count} orders still searching for a driver")
        return count

    # ---- Claim arbitration ----

    def accept_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Actor,
    ) -> Order:
        """
        A driver claims an order.

        The order row is written with a single conditional UPDATE
        (status = searching_driver AND driver_id IS NULL); the driver row
        is switched to busy in the same transaction, also conditionally.

        Raises:
            OrderNotFound, DriverNotFound
            DriverNotEligible: driver may not take orders right now
            InvalidTransition: order is not (yet) offered to drivers
            AlreadyTaken: another driver won; nothing was written
        """
        order = self.order_repo.refresh(session, order_id)
        if order is None:
            raise OrderNotFound(order_id)

        driver = self.driver_repo.get_by_id(session, actor.user_id)
        if driver is None:
            raise DriverNotFound(actor.id)
        self._ensure_can_claim(driver, order)

        if order.driver_id is not None:
            raise AlreadyTaken(order_id)
        if order.status != fsm.SEARCHING_DRIVER:
            raise InvalidTransition(order.status, fsm.ASSIGNED_TO_DRIVER)
        fsm.ensure_transition(order.status, fsm.ASSIGNED_TO_DRIVER, actor.role)

        values = fsm.build_transition_values(
            order.status_history,
            order.timestamps,
            fsm.ASSIGNED_TO_DRIVER,
            str(driver.id),
            datetime.now(timezone.utc),
        )
        values["driver_id"] = driver.id

        if not self.order_repo.claim(session, order_id, values):
            session.rollback()
            logger.info(f"Driver {driver.id} lost the race for order {order_id}")
            raise AlreadyTaken(order_id)

        took_driver = compare_and_set(
            session,
            Driver,
            driver.id,
            expected={"current_order_id": None},
            values={"is_available": False, "current_order_id": order_id},
        )
        if not took_driver:
            session.rollback()
            raise DriverNotEligible("Driver already has an active order")

        session.commit()
        logger.info(f"Order {order.order_number} claimed by driver {driver.id}")
        return self.order_repo.refresh(session, order_id)

    @staticmethod
    def _ensure_can_claim(driver: Driver, order: Order) -> None:
        if driver.is_blocked:
            raise DriverNotEligible("Driver account is blocked")
        if not driver.is_verified:
            raise DriverNotEligible("Driver is not verified")
        if driver.is_blocked_due_to_cash:
            raise DriverNotEligible("Cash limit reached - settle your balance first")
        if not driver.is_online:
            raise DriverNotEligible("Driver is offline")
        if driver.current_order_id is not None:
            raise DriverNotEligible("Driver already has an active order")
        if (
            driver.assigned_restaurant_id is not None
            and driver.assigned_restaurant_id != order.merchant_id
        ):
            raise DriverNotEligible("Driver belongs to another restaurant's fleet")
