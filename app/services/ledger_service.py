# app/services/ledger_service.py
import logging
import math
import uuid
from typing import Any

from sqlmodel import Session

from app.core.errors import DriverNotFound, InvalidAmount
from app.core.events import OrderDelivered
from app.models.driver import Driver, LedgerEntry
from app.models.order import Order
from app.repositories.driver_repo import DriverRepository
from app.repositories.order_repo import OrderRepository

logger = logging.getLogger(__name__)

LIQUIDATION_TYPE = "debt_liquidation_office"


def _parse_amount(amount: Any) -> float:
    """Positive, finite number; bools and numeric strings are rejected."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount(amount)
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmount(amount)
    return float(amount)


class LedgerService:
    """
    Per-driver cash-in-hand ledger.

    Every read-modify-write of a driver's balance happens inside one
    transaction with the driver row locked, so two settlements (or a
    settlement and a liquidation) cannot lose each other's update.

    Rules:
      - Only cash orders delivered by a driver who is NOT in the order
        merchant's exclusive fleet add liability (exclusive-fleet cash is
        settled with the merchant directly).
      - Liability per order = total - deliveryFee (the driver keeps the fee).
      - Reaching max_cash_limit blocks the driver and takes them offline.
    """

    def __init__(self, driver_repo: DriverRepository, order_repo: OrderRepository):
        self.driver_repo = driver_repo
        self.order_repo = order_repo

    # ---- Delivery settlement ----

    def settle_on_delivery(
        self,
        session: Session,
        driver_id: uuid.UUID,
        order: Order,
    ) -> Driver | None:
        """
        Apply one delivered order to the driver: stats, cash liability,
        cash block, release from the order. One transaction.
        """
        driver = self.driver_repo.get_for_update(session, driver_id)
        if driver is None:
            session.rollback()
            logger.warning(f"Settlement skipped: driver {driver_id} not found")
            return None

        delivery_fee = float(order.totals.get("deliveryFee") or 0)
        total = float(order.totals.get("total") or 0)
        exclusive_for_order = driver.assigned_restaurant_id == order.merchant_id

        if order.payment.get("method") == "cash" and not exclusive_for_order:
            driver.cash_in_hand = round(driver.cash_in_hand + (total - delivery_fee), 2)
            if driver.cash_in_hand >= driver.max_cash_limit:
                driver.is_blocked_due_to_cash = True

        driver.total_deliveries += 1
        driver.today_deliveries += 1
        driver.today_earnings = round(driver.today_earnings + delivery_fee, 2)
        driver.current_order_id = None
        driver.is_available = not driver.is_blocked_due_to_cash
        if driver.is_blocked_due_to_cash:
            driver.is_online = False
            logger.warning(
                f"Driver {driver.id} blocked: cash in hand {driver.cash_in_hand} "
                f">= limit {driver.max_cash_limit}"
            )

        session.add(driver)
        session.commit()
        session.refresh(driver)
        return driver

    def handle_order_delivered(self, session: Session, event: OrderDelivered) -> None:
        if event.driver_id is None:
            return
        order = self.order_repo.refresh(session, event.order_id)
        if order is None:
            return
        self.settle_on_delivery(session, event.driver_id, order)

    # ---- Office liquidation ----

    def liquidate(
        self,
        session: Session,
        driver_id: uuid.UUID,
        amount_paid: Any,
        admin_id: uuid.UUID | None,
    ) -> dict[str, Any]:
        """
        Driver hands cash in at the office.

        Balance is floored at 0; the cash block is lifted once the balance is
        strictly below the limit (the driver must go online again themselves).
        An immutable LedgerEntry is written in the same transaction.

        Raises:
            DriverNotFound, InvalidAmount: checked inside the transaction;
            nothing is written.
        """
        try:
            driver = self.driver_repo.get_for_update(session, driver_id)
            if driver is None:
                raise DriverNotFound(driver_id)
            amount = _parse_amount(amount_paid)

            previous_debt = driver.cash_in_hand
            new_debt = round(max(previous_debt - amount, 0.0), 2)

            driver.cash_in_hand = new_debt
            if new_debt < driver.max_cash_limit:
                driver.is_blocked_due_to_cash = False
            session.add(driver)

            self.driver_repo.add_ledger_entry(
                session,
                LedgerEntry(
                    type=LIQUIDATION_TYPE,
                    driver_id=driver.id,
                    amount=amount,
                    previous_debt=previous_debt,
                    new_debt=new_debt,
                    admin_id=admin_id,
                ),
            )
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info(
            f"Driver {driver_id} liquidated {amount} by admin {admin_id}: "
            f"{previous_debt} -> {new_debt}"
        )
        return {
            "success": True,
            "message": "Debt settled successfully",
            "driver_id": driver_id,
            "previous_debt": previous_debt,
            "new_debt": new_debt,
        }
